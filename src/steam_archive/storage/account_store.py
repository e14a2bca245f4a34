""" account_store.py

The versioned storage engine. Account records and manifests are persisted through a RepositoryTransport, which is expected to behave like git.

Layout of the head tree:
    accounts/<account name>.json          one record per account, secrets encrypted by the CredentialCipher
    depots/<app>/<depot>.json             pointer to the depot's active manifest

Manifests themselves live in parentless commits holding depots/<app>/<depot>/<manifest>.manifest and its .json metadata.
Each of those commits is kept alive by a retention tag, manifest/<app>/<depot>/<manifest>/<epoch>. Once the tag expires and is pruned the commit is garbage,
unless the depot pointer in the head still names that manifest, in which case the tag is kept.

All mutations go through one lock because the transport cannot handle concurrent commits. Reads never take it.
"""
import asyncio
import json
import logging
import random
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set

from ..credential_cipher import CredentialCipher
from ..errors import CryptoError, StorageError
from .records import (ACCOUNTS_PREFIX, AccountRecord, ManifestKey,
                      ManifestRecord, RetentionTag, utc_now)
from .tracking import TrackingStatus
from .transport import RepositoryTransport

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


def _dump(data: Dict) -> bytes:
    return (json.dumps(data, indent=2, sort_keys=True) + "\n").encode("utf-8")


class AccountStore:
    """Key-value view over the repository. Owns every persisted entity; nothing else writes to the transport."""

    def __init__(self, transport: RepositoryTransport, cipher: CredentialCipher, retention_days: int = DEFAULT_RETENTION_DAYS, clock: Callable[[], datetime] = utc_now):
        self._transport = transport
        self._cipher = cipher
        self._retention_days = retention_days
        self._clock = clock
        self._write_lock = asyncio.Lock()
        self._account_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._manifest_tags: Optional[Dict[ManifestKey, Set[str]]] = None  # lazily built from the tag list. updated in place by writes and prunes.
        self._manifest_tags_lock = asyncio.Lock()
        self._unpublished = False
        self._tracking = TrackingStatus()

    @property
    def tracking(self) -> TrackingStatus:
        return self._tracking

    #region accounts
    def _decode_account(self, data: bytes) -> AccountRecord:
        try:
            lookup = json.loads(data)
            return AccountRecord.from_dict(lookup, self._cipher.decrypt_field)
        except (ValueError, KeyError, TypeError) as e:
            raise StorageError(f"account record is corrupt: {e}") from e

    async def list_accounts(self, randomize_order: bool = False) -> List[AccountRecord]:
        """Every stored account. Records that cannot be decoded are logged and left out so one bad record does not stop a pass."""
        accounts: List[AccountRecord] = []
        for key in await self._transport.list_blobs(ACCOUNTS_PREFIX):
            if not key.endswith(".json"):
                continue
            data = await self._transport.read_blob(key)
            if data is None:
                continue  # removed between listing and reading.
            try:
                accounts.append(self._decode_account(data))
            except (CryptoError, StorageError) as e:
                logger.error("Skipping unreadable account record %s: %s", key, e)
        if randomize_order:
            random.shuffle(accounts)
        return accounts

    async def get_account(self, name: str) -> Optional[AccountRecord]:
        data = await self._transport.read_blob(AccountRecord.blob_key(name))
        if data is None:
            return None
        return self._decode_account(data)

    async def write_account(self, record: AccountRecord) -> bool:
        """Upsert the record. Skips the commit entirely if the stored refresh token is already the same. Returns whether anything was written."""
        async with self._account_locks[record.account_name]:
            try:
                stored = await self.get_account(record.account_name)
            except (CryptoError, StorageError) as e:
                logger.warning("Stored record for %s is unreadable, replacing it: %s", record.account_name, e)
                stored = None
            if stored is not None and stored.refresh_token == record.refresh_token:
                logger.debug("Refresh token for %s unchanged, not writing", record.account_name)
                self._tracking.accounts_unchanged += 1
                return False

            record = record._replace(last_refresh=self._clock())
            data = _dump(record.to_dict(self._cipher.encrypt_field))
            async with self._write_lock:
                await self._transport.write_blob(record.key, data)
                await self._publish(f"Update account {record.account_name}")
            self._tracking.accounts_written += 1
            logger.info("Stored account %s", record.account_name)
            return True

    async def remove_account(self, record: AccountRecord) -> bool:
        async with self._account_locks[record.account_name]:
            async with self._write_lock:
                if not await self._transport.delete_blob(record.key):
                    logger.debug("Account %s is not stored, nothing to remove", record.account_name)
                    return False
                await self._publish(f"Remove account {record.account_name}")
            self._tracking.accounts_removed += 1
            logger.info("Removed account %s", record.account_name)
            return True
    #endregion
    #region manifests
    async def _load_manifest_tags(self) -> Dict[ManifestKey, Set[str]]:
        if self._manifest_tags is None:
            async with self._manifest_tags_lock:
                if self._manifest_tags is None:
                    lookup: Dict[ManifestKey, Set[str]] = defaultdict(set)
                    for name in await self._transport.list_tags():
                        tag = RetentionTag.from_name(name)
                        if tag is not None:
                            lookup[tag.key].add(name)
                    self._manifest_tags = lookup
        return self._manifest_tags

    async def has_manifest(self, app_id: int, depot_id: int, manifest_id: int) -> bool:
        lookup = await self._load_manifest_tags()
        return bool(lookup.get(ManifestKey(app_id, depot_id, manifest_id)))

    async def get_manifest(self, app_id: int, depot_id: int, manifest_id: int) -> Optional[ManifestRecord]:
        key = ManifestKey(app_id, depot_id, manifest_id)
        lookup = await self._load_manifest_tags()
        tags = sorted(lookup.get(key, ()), key=lambda name: RetentionTag.from_name(name).created_at, reverse=True)
        for name in tags:
            payload = await self._transport.read_blob(key.payload_key, revision=name)
            if payload is None:
                continue
            metadata = await self._transport.read_blob(key.metadata_key, revision=name)
            return ManifestRecord.from_metadata(key, payload, json.loads(metadata) if metadata else None)
        return None

    async def write_manifest(self, app_id: int, depot_id: int, manifest_id: int, payload: bytes) -> bool:
        record = ManifestRecord(ManifestKey(app_id, depot_id, manifest_id), payload, self._clock())
        return bool(await self.write_manifests([record]))

    async def write_manifests(self, records: Iterable[ManifestRecord]) -> List[ManifestKey]:
        """Archive every record whose key is not present yet, in one head commit and one push. Returns the keys actually written.

        A manifest counts as written once its tag exists in the local repository; if the push then fails the StorageError is raised, and the tag is published by the next push that
        succeeds. Records that never got that far are counted as failed.
        """
        records = list(records)
        written: List[ManifestKey] = []
        skipped = 0
        try:
            async with self._write_lock:
                lookup = await self._load_manifest_tags()
                for record in records:
                    if lookup.get(record.key):
                        logger.debug("Manifest %s already archived", record.key)
                        skipped += 1
                        continue
                    commit_id = await self._transport.commit_tree(
                        {record.key.payload_key: record.payload, record.key.metadata_key: _dump(record.metadata())},
                        f"Manifest {record.key}",
                    )
                    tag = RetentionTag.for_key(record.key, self._clock())
                    await self._transport.create_tag(tag.name, commit_id)
                    lookup[record.key].add(tag.name)
                    pointer = {"manifest_id": str(record.key.manifest_id), "tag": tag.name, "discovered_at": record.discovered_at.isoformat()}
                    await self._transport.write_blob(record.key.depot_pointer_key, _dump(pointer))
                    written.append(record.key)

                if written:
                    await self._publish(f"Archive {len(written)} manifest(s)")
        except StorageError:
            self._tracking.manifests_failed += len(records) - len(written) - skipped
            raise
        finally:
            self._tracking.manifests_skipped += skipped
            self._tracking.manifests_written += len(written)
            self._tracking.new_manifests.extend(written)
            for key in written:
                logger.info("Archived manifest %s", key)
        return written

    async def _active_manifest_id(self, key: ManifestKey, cache: Dict[str, Optional[int]]) -> Optional[int]:
        pointer_key = key.depot_pointer_key
        if pointer_key not in cache:
            data = await self._transport.read_blob(pointer_key)
            try:
                cache[pointer_key] = int(json.loads(data)["manifest_id"]) if data else None
            except (ValueError, KeyError, TypeError) as e:
                raise StorageError(f"depot pointer {pointer_key} is corrupt: {e}") from e
        return cache[pointer_key]

    async def prune_expired_tags(self) -> int:
        """Delete retention tags older than the retention window. A tag for a manifest the head still points at is kept regardless of age."""
        now = self._clock()
        pruned = 0
        pointers: Dict[str, Optional[int]] = {}
        async with self._write_lock:
            lookup = await self._load_manifest_tags()
            for name in await self._transport.list_tags():
                tag = RetentionTag.from_name(name)
                if tag is None or not tag.is_expired(now, self._retention_days):
                    continue
                if await self._active_manifest_id(tag.key, pointers) == tag.key.manifest_id:
                    logger.debug("Keeping expired tag %s, the depot still points at it", name)
                    continue
                await self._transport.delete_tag(name)
                lookup[tag.key].discard(name)
                if not lookup[tag.key]:
                    del lookup[tag.key]
                pruned += 1
            if pruned or self._unpublished:
                # tags only, unless an earlier failed publish left changes staged.
                await self._publish("Commit changes left by a failed push")
        self._tracking.tags_pruned += pruned
        logger.info("Pruned %d expired tag(s)", pruned)
        return pruned
    #endregion

    async def _publish(self, message: str):
        """Commit whatever is staged and push. Must be called with the write lock held.

        Until a push succeeds the store remembers that the remote is behind, and the next prune publishes even if it pruned nothing.
        """
        self._unpublished = True
        try:
            await self._transport.commit_and_push(message)
        except StorageError:
            self._tracking.pushes_failed += 1
            raise
        self._unpublished = False

    def report_tracking_status(self) -> str:
        return self._tracking.render()
