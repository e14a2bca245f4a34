""" __main__.py

Entry point. Parses the command line, validates the settings, and runs one pass in the chosen mode.

Exit status is 1 if setup fails (bad arguments, bad key, missing account file, unresolvable session factory) or if the storage layer fails while pruning or
reporting. Individual accounts or manifests failing does not change the exit status; those show up in the summary report.
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from . import __version__
from .credential_cipher import CredentialCipher
from .errors import ConfigurationError, CryptoError, StorageError
from .scheduler.account_source import load_account_file, shard
from .scheduler.task_scheduler import (DEFAULT_CONCURRENT_ACCOUNTS,
                                       DEFAULT_CONCURRENT_MANIFESTS,
                                       TaskScheduler)
from .session.loader import SessionFactory, load_session_factory
from .settings import MODE_DOWNLOAD, MODES, ArchiveSettings
from .storage.account_store import DEFAULT_RETENTION_DAYS, AccountStore
from .storage.git_transport import GitTransport

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Options left unset fall back to STEAM_ARCHIVE_<OPTION> in the environment, then to the defaults shown."""
    parser = argparse.ArgumentParser(prog="steam-archive", description="Archive Steam account credentials and depot manifests into a git repository.")
    parser.add_argument("mode", nargs="?", default=MODE_DOWNLOAD, choices=MODES, help="download: refresh every stored account and archive manifests. account: log on with the accounts in --account.")
    parser.add_argument("-a", "--account", help="Account file (JSON, optionally RSA enveloped).")
    parser.add_argument("-t", "--token", help="Token used to push to the repository.")
    parser.add_argument("-k", "--key", help="Base64 AES key for credentials at rest.")
    parser.add_argument("-c", "--concurrent-account", type=int, help=f"Accounts processed at once (default {DEFAULT_CONCURRENT_ACCOUNTS}).")
    parser.add_argument("-p", "--concurrent-manifest", type=int, help=f"Manifests downloaded at once per account (default {DEFAULT_CONCURRENT_MANIFESTS}).")
    parser.add_argument("-i", "--index", type=int, help="Index of this instance when the account list is split (default 0).")
    parser.add_argument("-n", "--number", type=int, help="Number of instances the account list is split across (default 1).")
    parser.add_argument("-r", "--repository", help="Working tree of the archive repository (default .).")
    parser.add_argument("--remote", help="Remote to push to (default origin). Empty to keep everything local.")
    parser.add_argument("--branch", help="Branch holding account records and depot pointers (default main).")
    parser.add_argument("--retention-days", type=int, help=f"Age after which manifest tags are pruned (default {DEFAULT_RETENTION_DAYS}).")
    parser.add_argument("--session-factory", help="'module:attribute' building a SteamSession for an account.")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def write_summary(report: str, summary_path: Optional[str]):
    if summary_path is None:
        logger.warning("GITHUB_STEP_SUMMARY is not set, summary not written")
        return
    with open(summary_path, "a", encoding="utf-8") as summary_file:
        summary_file.write(report)
    logger.info("Wrote summary to GITHUB_STEP_SUMMARY")


async def run_pass(settings: ArchiveSettings, cipher: CredentialCipher, session_factory: SessionFactory) -> str:
    entries = None
    if settings.mode != MODE_DOWNLOAD:
        # read before touching the repository so a bad file fails setup, not the pass.
        entries = shard(load_account_file(settings.account_file, cipher), settings.index, settings.number)
        logger.info("Instance %d/%d handles %d account(s)", settings.index, settings.number, len(entries))

    transport = GitTransport(settings.repository, settings.remote, settings.branch, settings.push_url)
    await transport.ensure_repository()
    store = AccountStore(transport, cipher, settings.retention_days)
    scheduler = TaskScheduler(store, session_factory, settings.concurrent_accounts, settings.concurrent_manifests)

    if entries is None:
        report = await scheduler.run_full_refresh()
    else:
        report = await scheduler.run_targeted(entries)
    write_summary(report, settings.summary_path)
    logger.info("%s pass finished", settings.mode)
    return report


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        settings = ArchiveSettings.from_args(args)
        cipher = CredentialCipher(settings.key, settings.rsa_private_key)
        session_factory = load_session_factory(settings.session_factory)
    except (ConfigurationError, CryptoError) as e:
        logger.critical("Setup failed: %s", e)
        return 1
    logger.info("Starting %r", settings)

    try:
        asyncio.run(run_pass(settings, cipher, session_factory))
    except ConfigurationError as e:
        logger.critical("Setup failed: %s", e)
        return 1
    except (StorageError, CryptoError) as e:
        logger.critical("Pass aborted, the repository is not in a trustworthy state: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
