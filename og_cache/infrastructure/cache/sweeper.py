"""
Cache Sweeper

Periodic background task that keeps the fast tier honest:

1. drop every entry whose own TTL has elapsed
2. if still over ``max_size``, drop the oldest entries by creation time

The sweeper is the only place the size bound is enforced; ``FastTier.put``
never evicts. It runs on its own timer, independent of requests, and may
interleave between a request's cache read and its write; a swept entry is
simply recreated by that write.
"""

import asyncio
from dataclasses import dataclass

from og_cache.core.config.constants import Stage
from og_cache.core.logging.logger import get_logger, log_stage
from og_cache.infrastructure.cache.fast_tier import FastTier
from og_cache.infrastructure.monitoring.metrics_collector import get_metrics_collector

logger = get_logger(__name__)


@dataclass(frozen=True)
class SweepResult:
    expired: int
    evicted: int
    size: int


class CacheSweeper:
    """
    Expires and trims a FastTier on a fixed period.

    Usage:
        sweeper = CacheSweeper(fast_tier, interval_seconds=7200)
        sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(self, tier: FastTier, interval_seconds: float):
        self._tier = tier
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> SweepResult:
        """Run one expiry + trim pass synchronously."""
        expired = self._tier.expire()
        evicted = self._tier.trim()
        size = self._tier.size()

        metrics = get_metrics_collector()
        metrics.record_sweep(expired, evicted)
        metrics.set_fast_tier_size(size)

        if expired or evicted:
            log_stage(
                logger,
                Stage.SWEEP,
                "Fast tier swept",
                expired=expired,
                evicted=evicted,
                size=size,
                max_size=self._tier.max_size,
            )
        return SweepResult(expired=expired, evicted=evicted, size=size)

    def start(self) -> None:
        """Schedule periodic sweeps on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="cache-sweeper")
        logger.info("Cache sweeper started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Cancel the periodic sweep task."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Cache sweeper stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.run_once()
            except Exception as e:
                logger.error("Cache sweep failed", error=str(e), exc_info=True)
