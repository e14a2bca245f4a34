""" settings.py

Run settings, validated once at startup. Command line options are passed in as init values and win over the environment.
Options left off the command line fall back to STEAM_ARCHIVE_<NAME> environment variables, then to the defaults below.
The GitHub Actions variables and the envelope key are read from the environment only.
"""
from argparse import Namespace
from typing import Literal, Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .credential_cipher import RSA_PRIVATE_KEY_ENV
from .errors import ConfigurationError
from .scheduler.task_scheduler import (DEFAULT_CONCURRENT_ACCOUNTS,
                                       DEFAULT_CONCURRENT_MANIFESTS)
from .storage.account_store import DEFAULT_RETENTION_DAYS
from .storage.git_transport import GitTransport

MODE_DOWNLOAD = "download"  # full refresh of every stored account, with manifests and pruning.
MODE_ACCOUNT = "account"  # targeted pass over the accounts in an operator supplied file.
MODES = (MODE_DOWNLOAD, MODE_ACCOUNT)

ENV_PREFIX = "STEAM_ARCHIVE_"
SUMMARY_ENV = "GITHUB_STEP_SUMMARY"
REPOSITORY_SLUG_ENV = "GITHUB_REPOSITORY"


class ArchiveSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore", frozen=True, hide_input_in_errors=True)

    mode: Literal["download", "account"] = MODE_DOWNLOAD
    key: str = Field(min_length=1, repr=False, description="Base64 AES key for credentials at rest")
    account_file: Optional[str] = None
    token: Optional[str] = Field(None, repr=False)
    concurrent_accounts: int = Field(DEFAULT_CONCURRENT_ACCOUNTS, ge=1)
    concurrent_manifests: int = Field(DEFAULT_CONCURRENT_MANIFESTS, ge=1)
    index: int = Field(0, ge=0)
    number: int = Field(1, ge=1)
    repository: str = "."
    remote: Optional[str] = "origin"
    branch: str = "main"
    retention_days: int = Field(DEFAULT_RETENTION_DAYS, ge=1)
    session_factory: str = Field(min_length=1, description="'module:attribute' building a SteamSession")

    summary_path: Optional[str] = Field(None, validation_alias=SUMMARY_ENV)
    repository_slug: Optional[str] = Field(None, validation_alias=REPOSITORY_SLUG_ENV)
    rsa_private_key: Optional[str] = Field(None, validation_alias=RSA_PRIVATE_KEY_ENV, repr=False)

    @field_validator("remote")
    @classmethod
    def _empty_remote_is_local_only(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @model_validator(mode="after")
    def _check_mode_and_shard(self) -> "ArchiveSettings":
        if self.mode == MODE_ACCOUNT and not self.account_file:
            raise ValueError("account mode needs an account file")
        if self.index >= self.number:
            raise ValueError(f"shard index {self.index} is not valid for {self.number} instance(s)")
        return self

    @property
    def push_url(self) -> Optional[str]:
        if self.token and self.repository_slug:
            return GitTransport.authenticated_url(self.token, self.repository_slug)
        return None

    def __repr__(self) -> str:
        return f"ArchiveSettings(mode={self.mode!r}, repository={self.repository!r}, accounts={self.concurrent_accounts}, manifests={self.concurrent_manifests}, shard={self.index}/{self.number})"

    @classmethod
    def from_args(cls, args: Namespace) -> "ArchiveSettings":
        """Build and validate the settings. Any problem here is fatal before work starts."""
        given = {
            "mode": args.mode,
            "key": args.key,
            "account_file": args.account,
            "token": args.token,
            "concurrent_accounts": args.concurrent_account,
            "concurrent_manifests": args.concurrent_manifest,
            "index": args.index,
            "number": args.number,
            "repository": args.repository,
            "remote": args.remote,
            "branch": args.branch,
            "retention_days": args.retention_days,
            "session_factory": args.session_factory,
        }
        try:
            return cls(**{name: value for name, value in given.items() if value is not None})
        except ValidationError as e:
            raise ConfigurationError(describe_errors(e)) from e


def describe_errors(error: ValidationError) -> str:
    """One line per problem. Input values are left out since they may be secrets."""
    problems = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        problems.append(f"{location}: {detail['msg']}" if location else detail["msg"])
    return "Invalid settings: " + "; ".join(problems)
