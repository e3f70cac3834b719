"""
Persistent Write Queue

Background submission of persistent tier writes.

- ``submit`` never waits on disk I/O; the fast tier already holds the artifact
- One worker drains a bounded queue; every failed or dropped write is kept in
  ``failures`` and counted in metrics
- A full queue drops the write
"""

import asyncio
from collections import deque
from dataclasses import dataclass

from og_cache.core.config.constants import Stage
from og_cache.core.exceptions import PersistentStorageError
from og_cache.core.logging.logger import get_logger, log_stage
from og_cache.infrastructure.cache.persistent_tier import PersistentTier
from og_cache.infrastructure.monitoring.metrics_collector import get_metrics_collector

logger = get_logger(__name__)

# Failures kept for inspection (admin/status, tests)
MAX_RECORDED_FAILURES = 100


@dataclass(frozen=True)
class WriteFailure:
    key: str
    reason: str
    error: str


class PersistentWriteQueue:
    """
    Bounded queue of pending persistent writes with one worker task.

    Usage:
        queue = PersistentWriteQueue(persistent_tier, maxsize=256)
        queue.start()
        queue.submit("key", b"...")   # never blocks
        await queue.join()            # wait for pending writes (tests, shutdown)
        await queue.stop()
    """

    def __init__(self, tier: PersistentTier, maxsize: int = 256):
        self._tier = tier
        self._queue: asyncio.Queue[tuple[str, bytes]] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task | None = None
        self._failures: deque[WriteFailure] = deque(maxlen=MAX_RECORDED_FAILURES)
        self._written = 0

    @property
    def failures(self) -> list[WriteFailure]:
        """Most recent failed or dropped writes, oldest first."""
        return list(self._failures)

    @property
    def written(self) -> int:
        return self._written

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the worker task on the running event loop."""
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="persistent-write-queue")

    def submit(self, key: str, payload: bytes) -> bool:
        """
        Enqueue a write without waiting.

        Returns False if the queue is full and the write was dropped.
        Must be called from the event loop; the worker starts on first use.
        """
        self.start()
        try:
            self._queue.put_nowait((key, payload))
        except asyncio.QueueFull:
            self._record_failure(key, "queue_full", "persistent write queue is full")
            return False
        return True

    async def join(self) -> None:
        """Wait until every submitted write has been attempted."""
        await self._queue.join()

    async def stop(self, drain: bool = True) -> None:
        """Stop the worker, by default after flushing pending writes."""
        if self._worker is None:
            return
        if drain and self.running:
            await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def _run(self) -> None:
        while True:
            key, payload = await self._queue.get()
            try:
                await self._tier.write_or_raise(key, payload)
                self._written += 1
            except PersistentStorageError as e:
                self._record_failure(key, "io_error", e.message)
            except Exception as e:
                # Worker must survive any single bad write
                self._record_failure(key, "io_error", str(e))
            finally:
                self._queue.task_done()

    def _record_failure(self, key: str, reason: str, error: str) -> None:
        self._failures.append(WriteFailure(key=key, reason=reason, error=error))
        get_metrics_collector().record_persistent_write_failure(reason)
        log_stage(
            logger,
            Stage.PERSISTENT_WRITE,
            "Failed to save to persistent cache",
            level="error",
            cache_key=key[:40],
            reason=reason,
            error=error,
        )
