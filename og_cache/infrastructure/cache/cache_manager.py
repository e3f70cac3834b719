"""
Two-Tier Cache Manager

Architecture:
    CacheManager (Public API)
        ├── FastTier (bounded in-memory, per-entry TTL)
        ├── PersistentTier (directory of files, global TTL)
        ├── PersistentWriteQueue (background disk writes)
        ├── CacheSweeper (periodic expiry + trim of the fast tier)
        ├── CacheObserver (hit/miss counters, metrics, logging)
        └── CacheWarmer (startup pre-rendering)

Trust rules:
    - trusted store: standard TTL, fast tier + persistent tier
    - untrusted store: short TTL, fast tier only
    - promotion from disk always uses the standard TTL; only trusted writes
      reach disk

Concurrent misses for the same key share one render (single-flight).
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import aiofiles.os

from og_cache.core.config.constants import CacheSource, CacheStatus, Stage
from og_cache.core.config.settings import Settings
from og_cache.core.logging.logger import get_logger, log_stage
from og_cache.infrastructure.cache.fast_tier import FastTier
from og_cache.infrastructure.cache.keys import build_cache_key
from og_cache.infrastructure.cache.persistent_tier import PersistentTier
from og_cache.infrastructure.cache.sweeper import CacheSweeper
from og_cache.infrastructure.cache.write_queue import PersistentWriteQueue
from og_cache.infrastructure.monitoring.metrics_collector import get_metrics_collector

logger = get_logger(__name__)

RenderFn = Callable[[], Awaitable[bytes]]


@dataclass(frozen=True)
class CacheLookup:
    payload: bytes
    source: CacheSource


@dataclass(frozen=True)
class RenderResult:
    """Artifact plus the header data the HTTP layer needs."""

    payload: bytes
    status: CacheStatus
    ttl: int


@dataclass(frozen=True)
class ClearResult:
    fast_cleared: int
    persistent_cleared: int


@dataclass(frozen=True)
class DeleteResult:
    fast_deleted: bool
    persistent_deleted: bool


@dataclass(frozen=True)
class WarmResult:
    already_cached: int
    rendered: int
    failed: int


# =============================================================================
# OBSERVABILITY
# =============================================================================


class CacheObserver:
    """
    Counts lookups per tier and mirrors them into Prometheus and the log.
    """

    def __init__(self):
        self._fast_hits = 0
        self._persistent_hits = 0
        self._misses = 0

    def record_lookup(self, key: str, source: CacheSource | None) -> None:
        metrics = get_metrics_collector()
        if source is CacheSource.FAST:
            self._fast_hits += 1
            metrics.record_cache_lookup("fast")
            log_stage(logger, Stage.FAST_TIER_LOOKUP, "Fast tier hit", level="debug", cache_key=key[:40])
        elif source is CacheSource.PERSISTENT:
            self._persistent_hits += 1
            metrics.record_cache_lookup("persistent")
            log_stage(
                logger,
                Stage.PERSISTENT_TIER_LOOKUP,
                "Persistent tier hit, promoted",
                level="debug",
                cache_key=key[:40],
            )
        else:
            self._misses += 1
            metrics.record_cache_lookup("miss")
            log_stage(logger, Stage.CACHE_LOOKUP, "Cache miss", level="debug", cache_key=key[:40])

    def get_stats(self) -> dict[str, Any]:
        total = self._fast_hits + self._persistent_hits + self._misses
        hits = self._fast_hits + self._persistent_hits
        return {
            "fast_hits": self._fast_hits,
            "persistent_hits": self._persistent_hits,
            "misses": self._misses,
            "total_lookups": total,
            "hit_rate": round(hits / total, 3) if total > 0 else 0.0,
        }


# =============================================================================
# CACHE MANAGER
# =============================================================================


class CacheManager:
    """
    Orchestrates the fast and persistent tiers.

    Usage:
        cache = create_cache_manager(settings)
        await cache.initialize()

        result = await cache.get_or_render(key, render, trusted=True)
        result.status   # HIT-FAST | HIT-PERSISTENT | MISS

        await cache.shutdown()
    """

    def __init__(
        self,
        fast_tier: FastTier,
        persistent_tier: PersistentTier,
        write_queue: PersistentWriteQueue,
        sweeper: CacheSweeper,
        standard_ttl: int,
        short_ttl: int,
    ):
        """
        Args:
            fast_tier: In-memory tier
            persistent_tier: On-disk tier
            write_queue: Background writer for ``persistent_tier``
            sweeper: Periodic expiry/trim task for ``fast_tier``
            standard_ttl: TTL of trusted writes and promotions, in seconds
            short_ttl: TTL of untrusted writes, in seconds
        """
        self._fast = fast_tier
        self._persistent = persistent_tier
        self._write_queue = write_queue
        self._sweeper = sweeper
        self._standard_ttl = standard_ttl
        self._short_ttl = short_ttl
        self._observer = CacheObserver()
        self._warmer = CacheWarmer(self)
        self._inflight: dict[str, asyncio.Task] = {}
        self._initialized = False

    @property
    def fast_tier(self) -> FastTier:
        return self._fast

    @property
    def persistent_tier(self) -> PersistentTier:
        return self._persistent

    @property
    def write_queue(self) -> PersistentWriteQueue:
        return self._write_queue

    @property
    def sweeper(self) -> CacheSweeper:
        return self._sweeper

    @property
    def warmer(self) -> "CacheWarmer":
        return self._warmer

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the cache directory and start the background tasks."""
        if self._initialized:
            return
        await self._persistent.ensure_directory()
        self._write_queue.start()
        self._sweeper.start()
        self._initialized = True
        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Cache manager initialized",
            fast_max_size=self._fast.max_size,
            cache_dir=str(self._persistent.directory),
            standard_ttl=self._standard_ttl,
            short_ttl=self._short_ttl,
        )

    async def shutdown(self) -> None:
        """Stop the sweeper and flush pending persistent writes."""
        await self._sweeper.stop()
        await self._write_queue.stop(drain=True)
        self._initialized = False
        log_stage(logger, Stage.CLEANUP, "Cache manager shutdown")

    # -------------------------------------------------------------------------
    # Core Cache Operations
    # -------------------------------------------------------------------------

    def ttl_for(self, trusted: bool) -> int:
        return self._standard_ttl if trusted else self._short_ttl

    async def get_cached(self, key: str) -> CacheLookup | None:
        """
        Look up ``key`` in the fast tier, then the persistent tier.

        A persistent hit is promoted into the fast tier with the standard TTL,
        whatever the caller's trust.
        """
        entry = self._fast.get(key)
        if entry is not None:
            self._observer.record_lookup(key, CacheSource.FAST)
            return CacheLookup(entry.payload, CacheSource.FAST)

        payload = await self._persistent.read(key)
        if payload is not None:
            self._fast.put(key, payload, self._standard_ttl)
            get_metrics_collector().set_fast_tier_size(self._fast.size())
            self._observer.record_lookup(key, CacheSource.PERSISTENT)
            return CacheLookup(payload, CacheSource.PERSISTENT)

        self._observer.record_lookup(key, None)
        return None

    def store(self, key: str, payload: bytes, trusted: bool) -> int:
        """
        Cache a freshly rendered artifact.

        Always written to the fast tier. Trusted artifacts are also queued for
        the persistent tier; the caller never waits on that write.

        Returns:
            The TTL applied, in seconds
        """
        ttl = self.ttl_for(trusted)
        self._fast.put(key, payload, ttl)
        if trusted:
            self._write_queue.submit(key, payload)

        metrics = get_metrics_collector()
        metrics.record_cache_store(trusted)
        metrics.set_fast_tier_size(self._fast.size())
        log_stage(
            logger,
            Stage.CACHE_STORE,
            "Artifact cached",
            level="debug",
            cache_key=key[:40],
            trusted=trusted,
            ttl=ttl,
        )
        return ttl

    async def get_or_render(self, key: str, render: RenderFn, trusted: bool) -> RenderResult:
        """
        Cache-aside with miss coalescing.

        Lookup first. On a miss the first caller renders and stores; callers
        that miss on the same key while that render is in flight await its
        result instead of rendering again. A render failure propagates to
        every waiter and nothing is cached. Cancelling one caller does not
        cancel the shared render.

        Args:
            key: Cache key
            render: Coroutine function producing the artifact bytes
            trusted: Trust tier of the requesting caller

        Returns:
            RenderResult with the artifact, X-Cache-Status value and TTL
        """
        lookup = await self.get_cached(key)
        if lookup is not None:
            status = (
                CacheStatus.HIT_FAST if lookup.source is CacheSource.FAST else CacheStatus.HIT_PERSISTENT
            )
            return RenderResult(lookup.payload, status, self.ttl_for(trusted))

        task = self._inflight.get(key)
        if task is not None:
            get_metrics_collector().record_render_coalesced()
        else:
            task = asyncio.ensure_future(self._render_and_store(key, render, trusted))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._render_finished(key, done))

        # Shielded so a cancelled caller leaves the render running for the others
        payload, stored_trusted = await asyncio.shield(task)
        if trusted and not stored_trusted:
            # The shared render was stored untrusted; persist it for this caller
            self.store(key, payload, trusted)
        return RenderResult(payload, CacheStatus.MISS, self.ttl_for(trusted))

    async def _render_and_store(self, key: str, render: RenderFn, trusted: bool) -> tuple[bytes, bool]:
        started = time.perf_counter()
        payload = await render()
        duration = time.perf_counter() - started
        get_metrics_collector().record_render_duration(duration)
        log_stage(
            logger,
            Stage.RENDER,
            "Artifact rendered",
            cache_key=key[:40],
            duration_ms=round(duration * 1000, 2),
            bytes=len(payload),
        )
        self.store(key, payload, trusted)
        return payload, trusted

    def _render_finished(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark retrieved so a failure nobody awaited is not reported again
            task.exception()

    def inflight(self) -> int:
        """Number of renders currently in flight."""
        return len(self._inflight)

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    async def clear_all(self) -> ClearResult:
        """Empty both tiers."""
        fast_cleared = self._fast.clear()
        persistent_cleared = await self._persistent.clear()
        get_metrics_collector().set_fast_tier_size(0)
        log_stage(
            logger,
            Stage.CACHE_INVALIDATION,
            "All cache entries cleared",
            fast_cleared=fast_cleared,
            persistent_cleared=persistent_cleared,
        )
        return ClearResult(fast_cleared, persistent_cleared)

    async def delete_entry(self, key: str) -> DeleteResult:
        """Remove ``key`` from both tiers."""
        fast_deleted = self._fast.delete(key)
        persistent_deleted = await self._persistent.delete(key)
        get_metrics_collector().set_fast_tier_size(self._fast.size())
        log_stage(
            logger,
            Stage.CACHE_INVALIDATION,
            "Cache entry deleted",
            cache_key=key[:40],
            fast_deleted=fast_deleted,
            persistent_deleted=persistent_deleted,
        )
        return DeleteResult(fast_deleted, persistent_deleted)

    async def status(self) -> dict[str, Any]:
        """Entry counts and keys of both tiers."""
        fast_keys = self._fast.keys()
        persistent_keys = await self._persistent.list_keys()
        return {
            "fast_cache": {
                "entries": len(fast_keys),
                "max_size": self._fast.max_size,
                "keys": fast_keys,
            },
            "persistent_cache": {
                "entries": len(persistent_keys),
                "keys": persistent_keys,
            },
        }

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        """
        Get cache performance statistics.

        Returns:
            Dict with hit rates, fast tier utilization and write queue state
        """
        fast_size = self._fast.size()
        fast_max = self._fast.max_size
        return {
            **self._observer.get_stats(),
            "fast_size": fast_size,
            "fast_max_size": fast_max,
            "fast_capacity_utilization": round(fast_size / fast_max * 100, 2),
            "renders_in_flight": len(self._inflight),
            "persistent_writes": self._write_queue.written,
            "persistent_writes_pending": self._write_queue.pending,
            "persistent_write_failures": len(self._write_queue.failures),
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    async def health_check(self) -> dict[str, Any]:
        """
        Perform health check on the cache system.

        Returns:
            Dict with health status for both tiers and the background tasks
        """
        health = {
            "status": "healthy",
            "fast": {
                "status": "healthy",
                "size": self._fast.size(),
                "max_size": self._fast.max_size,
            },
            "persistent": {
                "status": "healthy",
                "directory": str(self._persistent.directory),
            },
            "write_queue": {
                "running": self._write_queue.running,
                "pending": self._write_queue.pending,
                "failures": len(self._write_queue.failures),
            },
            "sweeper": {
                "running": self._sweeper.running,
                "interval_seconds": self._sweeper.interval,
            },
        }

        if not await aiofiles.os.path.isdir(self._persistent.directory):
            health["status"] = "degraded"
            health["persistent"]["status"] = "missing_directory"

        if self._initialized and not (self._write_queue.running and self._sweeper.running):
            health["status"] = "degraded"

        return health


# =============================================================================
# CACHE WARMING
# =============================================================================


class CacheWarmer:
    """
    Pre-renders known popular artifacts into both tiers.

    Every parameter set goes through ``get_or_render`` as a trusted caller, so
    already-cached artifacts are left alone and new ones reach the disk.
    Individual failures are logged and skipped.
    """

    def __init__(self, manager: CacheManager):
        self._manager = manager

    async def warm(
        self,
        param_sets: Iterable[Sequence[str]],
        render: Callable[..., Awaitable[bytes]],
    ) -> WarmResult:
        """
        Args:
            param_sets: Ordered field tuples, one per artifact
            render: Coroutine function called with the fields of a tuple

        Returns:
            WarmResult counting cached, rendered and failed entries
        """
        already_cached = rendered = failed = 0

        for fields in param_sets:
            key = build_cache_key(*fields)
            try:
                result = await self._manager.get_or_render(
                    key, lambda fields=fields: render(*fields), trusted=True
                )
            except Exception as e:
                failed += 1
                log_stage(
                    logger,
                    Stage.WARMING,
                    "Failed to pre-warm artifact",
                    level="warning",
                    cache_key=key[:40],
                    error=str(e),
                )
                continue

            if result.status is CacheStatus.MISS:
                rendered += 1
            else:
                already_cached += 1

        log_stage(
            logger,
            Stage.WARMING,
            "Cache pre-warm complete",
            already_cached=already_cached,
            rendered=rendered,
            failed=failed,
        )
        return WarmResult(already_cached, rendered, failed)


# =============================================================================
# FACTORY
# =============================================================================


def create_cache_manager(settings: Settings) -> CacheManager:
    """Build a CacheManager and its collaborators from settings."""
    cache = settings.cache
    fast_tier = FastTier(max_size=cache.IMAGE_CACHE_MAX_SIZE)
    persistent_tier = PersistentTier(cache.CACHE_DIR, ttl_seconds=cache.DEFAULT_CACHE_TTL)
    return CacheManager(
        fast_tier=fast_tier,
        persistent_tier=persistent_tier,
        write_queue=PersistentWriteQueue(persistent_tier, maxsize=cache.CACHE_WRITE_QUEUE_SIZE),
        sweeper=CacheSweeper(fast_tier, interval_seconds=cache.CACHE_SWEEP_INTERVAL),
        standard_ttl=cache.DEFAULT_CACHE_TTL,
        short_ttl=cache.SHORT_CACHE_TTL,
    )
