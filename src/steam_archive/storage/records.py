from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, NamedTuple, Optional

ACCOUNTS_PREFIX = "accounts"
DEPOTS_PREFIX = "depots"
TAG_PREFIX = "manifest"

_TAG_PATTERN = re.compile(r"^manifest/(\d+)/(\d+)/(\d+)/(\d+)$")
_ACCOUNT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_@-][A-Za-z0-9_.@-]*$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AccountRecord(NamedTuple):
    account_name:  str                 # unique key of the record.
    password:      Optional[str]       # plaintext in memory only. encrypted before it reaches the repository.
    refresh_token: Optional[str]       # long lived token Steam hands out after a login. plaintext in memory only.
    last_refresh:  Optional[datetime]  # last time the account authenticated successfully.

    @staticmethod
    def blob_key(account_name: str) -> str:
        if not _ACCOUNT_NAME_PATTERN.match(account_name):
            raise ValueError(f"{account_name!r} is not a usable account name")
        return f"{ACCOUNTS_PREFIX}/{account_name}.json"

    @property
    def key(self) -> str:
        return AccountRecord.blob_key(self.account_name)

    def to_dict(self, encrypt) -> Dict[str, Any]:
        """Serialize with the sensitive fields passed through `encrypt`."""
        return {
            "account_name": self.account_name,
            "password": encrypt(self.password) if self.password is not None else None,
            "refresh_token": encrypt(self.refresh_token) if self.refresh_token is not None else None,
            "last_refresh": self.last_refresh.isoformat() if self.last_refresh else None,
        }

    @staticmethod
    def from_dict(lookup: Dict[str, Any], decrypt) -> AccountRecord:
        password = lookup.get("password")
        refresh_token = lookup.get("refresh_token")
        return AccountRecord(
            lookup["account_name"],
            decrypt(password) if password else None,
            decrypt(refresh_token) if refresh_token else None,
            _parse_time(lookup.get("last_refresh")),
        )

    def __repr__(self) -> str:
        # never leak credentials into logs.
        return f"AccountRecord(account_name={self.account_name!r})"


class ManifestKey(NamedTuple):
    app_id: int
    depot_id: int
    manifest_id: int

    @property
    def directory(self) -> str:
        return f"{DEPOTS_PREFIX}/{self.app_id}/{self.depot_id}"

    @property
    def payload_key(self) -> str:
        return f"{self.directory}/{self.manifest_id}.manifest"

    @property
    def metadata_key(self) -> str:
        return f"{self.directory}/{self.manifest_id}.json"

    @property
    def depot_pointer_key(self) -> str:
        return f"{self.directory}.json"

    @property
    def tag_prefix(self) -> str:
        return f"{TAG_PREFIX}/{self.app_id}/{self.depot_id}/{self.manifest_id}/"

    def __str__(self) -> str:
        return f"{self.app_id}/{self.depot_id}/{self.manifest_id}"


class ManifestRecord(NamedTuple):
    key:           ManifestKey
    payload:       bytes
    discovered_at: datetime

    def metadata(self) -> Dict[str, Any]:
        return {
            "app_id": self.key.app_id,
            "depot_id": self.key.depot_id,
            "manifest_id": str(self.key.manifest_id),  # manifest gids overflow js numbers.
            "discovered_at": self.discovered_at.isoformat(),
            "size": len(self.payload),
        }

    @staticmethod
    def from_metadata(key: ManifestKey, payload: bytes, metadata: Optional[Dict[str, Any]]) -> ManifestRecord:
        discovered_at = _parse_time(metadata.get("discovered_at")) if metadata else None
        return ManifestRecord(key, payload, discovered_at or utc_now())

    def __repr__(self) -> str:
        return f"ManifestRecord(key={self.key}, size={len(self.payload)})"


class RetentionTag(NamedTuple):
    """A tag that keeps a manifest commit reachable. The creation time is part of the name so
    pruning never has to look at the tag object itself."""
    key:        ManifestKey
    created_at: datetime

    @property
    def name(self) -> str:
        return f"{self.key.tag_prefix}{int(self.created_at.timestamp())}"

    @staticmethod
    def for_key(key: ManifestKey, created_at: Optional[datetime] = None) -> RetentionTag:
        return RetentionTag(key, created_at or utc_now())

    @staticmethod
    def from_name(name: str) -> Optional[RetentionTag]:
        match = _TAG_PATTERN.match(name)
        if match is None:
            return None
        app_id, depot_id, manifest_id, epoch = (int(x) for x in match.groups())
        return RetentionTag(ManifestKey(app_id, depot_id, manifest_id), datetime.fromtimestamp(epoch, timezone.utc))

    def is_expired(self, now: datetime, retention_days: int) -> bool:
        return now - self.created_at > timedelta(days=retention_days)
