""" task_scheduler.py

Drives one archival pass with two levels of bounded concurrency.

Outer level: at most `concurrent_accounts` accounts are connected at once. Dispatch blocks on a free slot before the account's task is created, and the slot is handed back
only after the session is disconnected.
Inner level: each account gets its own pool of `concurrent_manifests` download slots, so up to accounts * manifests downloads can be in flight.
Downloaded manifests are not written by the download tasks. They are handed to the DeferredManifestWriter, which is joined after every account has finished.

Failure policy per account:
    terminal denial (see session.outcomes)   -> the account is removed from the store, logged as a warning.
    anything else                            -> logged as an error, the stored record is left alone, the account is tried again next pass.
Neither stops the pass or any other account. Only a storage failure while pruning or reporting aborts a pass.
"""
import asyncio
import logging
from typing import List, Optional, Sequence, Set

from ..errors import CryptoError, StorageError
from ..session.loader import SessionFactory
from ..session.outcomes import (AuthSuccess, TerminalDenial, TransientFailure,
                                classify_auth_error)
from ..session.steam_session import DepotManifestRef, SteamSession
from ..storage.account_store import AccountStore
from ..storage.records import AccountRecord, ManifestKey, ManifestRecord, utc_now
from .account_source import AccountEntry
from .account_state import AccountState, AccountUnit
from .deferred_writer import DeferredManifestWriter

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENT_ACCOUNTS = 4
DEFAULT_CONCURRENT_MANIFESTS = 16


class TaskScheduler:

    def __init__(self, store: AccountStore, session_factory: SessionFactory,
                 concurrent_accounts: int = DEFAULT_CONCURRENT_ACCOUNTS, concurrent_manifests: int = DEFAULT_CONCURRENT_MANIFESTS):
        if concurrent_accounts < 1 or concurrent_manifests < 1:
            raise ValueError("concurrency limits must be at least 1")
        self._store = store
        self._session_factory = session_factory
        self._concurrent_accounts = concurrent_accounts
        self._concurrent_manifests = concurrent_manifests
        self._account_slots = asyncio.Semaphore(concurrent_accounts)
        self._claimed_manifests: Set[ManifestKey] = set()  # manifests some account is already fetching in this pass.

    #region passes
    async def run_full_refresh(self) -> str:
        """Refresh every stored account and archive its manifests, then prune. Returns the summary report."""
        accounts = await self._store.list_accounts(randomize_order=True)
        logger.info("Found %d account(s) to process", len(accounts))
        await self._run_pass(accounts, download=True)

        logger.info("Pruning expired tags")
        await self._store.prune_expired_tags()
        return self._store.report_tracking_status()

    async def run_targeted(self, entries: Sequence[AccountEntry]) -> str:
        """Log on with the given accounts and store their credentials. Nothing is downloaded and nothing is pruned."""
        accounts: List[AccountRecord] = []
        for entry in entries:
            account = await self._prepare_targeted(entry)
            if account is not None:
                accounts.append(account)
        await self._run_pass(accounts, download=False)
        return self._store.report_tracking_status()

    async def _prepare_targeted(self, entry: AccountEntry) -> Optional[AccountRecord]:
        try:
            previous = await self._store.get_account(entry.account_name)
        except ValueError as e:
            logger.error("Skipping account %s: %s", entry.account_name, e)
            return None
        except (CryptoError, StorageError) as e:
            logger.error("Stored record for %s is unreadable, logging on from scratch: %s", entry.account_name, e)
            previous = None
        if previous is not None:
            return previous._replace(password=entry.password)
        return AccountRecord(entry.account_name, entry.password, None, None)

    async def _run_pass(self, accounts: Sequence[AccountRecord], download: bool):
        writer = DeferredManifestWriter(self._store)
        writer.start()
        tasks: List[asyncio.Task] = []
        total = len(accounts)
        for index, account in enumerate(accounts, 1):
            await self._account_slots.acquire()
            logger.info("[%d/%d] Processing account %s", index, total, account.account_name)
            tasks.append(asyncio.create_task(self._run_account(account, download, writer)))

        await asyncio.gather(*tasks)
        logger.info("All account tasks finished, waiting for pending manifest writes")
        await writer.close()
        self._claimed_manifests.clear()
    #endregion
    #region one account
    async def _run_account(self, account: AccountRecord, download: bool, writer: DeferredManifestWriter) -> AccountUnit:
        unit = AccountUnit(account.account_name)
        tracking = self._store.tracking
        session: Optional[SteamSession] = None
        try:
            session = self._session_factory(account)
            unit.transition(AccountState.CONNECTING)
            await session.connect()
            try:
                outcome = await session.authenticate(account)
            except Exception as e:
                outcome = classify_auth_error(e)

            if isinstance(outcome, TerminalDenial):
                unit.transition(AccountState.TERMINAL_FAILURE)
                logger.warning("%s - account %s is denied, removing it", outcome.result.name, account.account_name)
                await self._store.remove_account(account)
            elif isinstance(outcome, TransientFailure):
                raise outcome.error
            elif isinstance(outcome, AuthSuccess):
                unit.transition(AccountState.AUTHENTICATED)
                logger.info("Account %s logged on", account.account_name)
                # credentials are stored before any of this account's manifests are queued.
                await self._store.write_account(outcome.account)
                if download:
                    unit.transition(AccountState.DOWNLOADING)
                    await self._download_manifests(session, account.account_name, writer)
            else:
                raise TypeError(f"session returned {outcome!r} instead of an AuthOutcome")
        except Exception as e:
            unit.transition(AccountState.TRANSIENT_FAILURE)
            logger.error("Error while processing account %s: %s", account.account_name, e)
        finally:
            unit.transition(AccountState.DISCONNECTING)
            if session is not None:
                try:
                    await session.disconnect()
                except Exception as e:
                    logger.warning("Disconnecting account %s failed: %s", account.account_name, e)
            unit.transition(AccountState.DONE)
            logger.info("Account %s disconnected", account.account_name)
            tracking.accounts_processed += 1
            if unit.failure == AccountState.TRANSIENT_FAILURE:
                tracking.accounts_failed += 1
            self._account_slots.release()
        return unit

    async def _download_manifests(self, session: SteamSession, account_name: str, writer: DeferredManifestWriter):
        refs = await session.list_owned_depot_manifests()
        pending: List[DepotManifestRef] = []
        for ref in refs:
            if ref.key in self._claimed_manifests:
                self._store.tracking.manifests_skipped += 1
                continue
            # claim before the lookup, which may suspend.
            self._claimed_manifests.add(ref.key)
            if await self._store.has_manifest(*ref):
                self._store.tracking.manifests_skipped += 1
                continue
            pending.append(ref)
        logger.info("Account %s owns %d depot manifest(s), %d not archived yet", account_name, len(refs), len(pending))

        slots = asyncio.Semaphore(self._concurrent_manifests)
        await asyncio.gather(*(self._download_manifest(session, account_name, ref, slots, writer) for ref in pending))
        logger.info("Finished manifest downloads for account %s", account_name)

    async def _download_manifest(self, session: SteamSession, account_name: str, ref: DepotManifestRef, slots: asyncio.Semaphore, writer: DeferredManifestWriter):
        async with slots:
            try:
                payload = await session.download_manifest(ref.app_id, ref.depot_id, ref.manifest_id)
            except Exception as e:
                logger.error("Failed to download manifest %s for account %s: %s", ref.key, account_name, e)
                self._store.tracking.manifests_failed += 1
                # let another account try it.
                self._claimed_manifests.discard(ref.key)
                return
        writer.enqueue(ManifestRecord(ref.key, payload, utc_now()))
    #endregion
