import asyncio
import logging
from typing import List, Optional

from ..errors import StorageError
from ..storage.account_store import AccountStore
from ..storage.records import ManifestRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCH = 64

_CLOSE = object()


class DeferredManifestWriter:
    """Single consumer for manifest writes.

    Download tasks enqueue finished manifests and move on; one writer task drains the queue and persists whatever has piled up as one batch.
    That keeps slow commits and pushes out of the download pool and gives the store exactly one manifest writer.
    A failed batch is logged, it does not stop the writer.
    """

    def __init__(self, store: AccountStore, max_batch: int = DEFAULT_MAX_BATCH):
        self._store = store
        self._max_batch = max_batch
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self.batches_written = 0

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    def enqueue(self, record: ManifestRecord):
        if self._task is None:
            raise RuntimeError("writer not started")
        self._queue.put_nowait(record)

    async def close(self):
        """Wait for everything queued so far to be written, then stop the writer."""
        if self._task is None:
            return
        self._queue.put_nowait(_CLOSE)
        await self._task
        self._task = None

    async def _run(self):
        closing = False
        while not closing:
            item = await self._queue.get()
            batch: List[ManifestRecord] = []
            while True:
                if item is _CLOSE:
                    closing = True
                    break
                batch.append(item)
                if len(batch) >= self._max_batch or self._queue.empty():
                    break
                item = self._queue.get_nowait()
            if batch:
                await self._write(batch)

    async def _write(self, batch: List[ManifestRecord]):
        try:
            await self._store.write_manifests(batch)
            self.batches_written += 1
        except StorageError as e:
            # the store has already counted which records made it into the local repository.
            keys = ", ".join(str(record.key) for record in batch)
            logger.error("Failed to archive manifest batch [%s]: %s", keys, e)
