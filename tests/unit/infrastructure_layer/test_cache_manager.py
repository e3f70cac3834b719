"""
Unit Tests for CacheManager

Tests cover:
- Tier lookup order and promotion
- Trust-dependent TTL and persistence
- Single-flight rendering
- Administration, statistics and health
- Cache warming
"""

import asyncio

import pytest
from test_fixtures import SHORT_TTL, STANDARD_TTL, CacheTestFactory, CountingRenderer

from og_cache.core.config.constants import CacheSource, CacheStatus
from og_cache.infrastructure.cache.cache_manager import (
    ClearResult,
    DeleteResult,
    WarmResult,
    create_cache_manager,
)


@pytest.mark.unit
class TestCacheLookup:
    """Test suite for get_cached and store."""

    @pytest.mark.asyncio
    async def test_miss_on_empty_cache(self, cache_manager):
        assert await cache_manager.get_cached("missing") is None

    @pytest.mark.asyncio
    async def test_trusted_store_reaches_both_tiers(self, cache_manager, persistent_tier):
        ttl = cache_manager.store("k", b"payload", trusted=True)
        await cache_manager.write_queue.join()

        assert ttl == STANDARD_TTL
        assert cache_manager.fast_tier.get("k").ttl_seconds == STANDARD_TTL
        assert await persistent_tier.read("k") == b"payload"

    @pytest.mark.asyncio
    async def test_untrusted_store_stays_in_memory(self, cache_manager, persistent_tier):
        ttl = cache_manager.store("k", b"payload", trusted=False)
        await cache_manager.write_queue.join()

        assert ttl == SHORT_TTL
        assert cache_manager.fast_tier.get("k").ttl_seconds == SHORT_TTL
        assert await persistent_tier.read("k") is None

    @pytest.mark.asyncio
    async def test_untrusted_entry_expires_after_short_ttl(self, cache_manager, clock):
        cache_manager.store("k", b"payload", trusted=False)

        clock.advance(SHORT_TTL + 1)

        assert await cache_manager.get_cached("k") is None

    @pytest.mark.asyncio
    async def test_fast_hit(self, cache_manager):
        cache_manager.store("k", b"payload", trusted=False)

        lookup = await cache_manager.get_cached("k")

        assert lookup.payload == b"payload"
        assert lookup.source is CacheSource.FAST

    @pytest.mark.asyncio
    async def test_persistent_hit_is_promoted_with_standard_ttl(self, cache_manager, cache_dir):
        CacheTestFactory.write_cache_file(cache_dir, "k", b"from-disk")

        lookup = await cache_manager.get_cached("k")

        assert lookup.source is CacheSource.PERSISTENT
        assert lookup.payload == b"from-disk"
        entry = cache_manager.fast_tier.get("k")
        assert entry.payload == b"from-disk"
        assert entry.ttl_seconds == STANDARD_TTL

    @pytest.mark.asyncio
    async def test_second_lookup_after_promotion_is_fast(self, cache_manager, cache_dir):
        CacheTestFactory.write_cache_file(cache_dir, "k", b"from-disk")

        await cache_manager.get_cached("k")
        lookup = await cache_manager.get_cached("k")

        assert lookup.source is CacheSource.FAST


@pytest.mark.unit
class TestGetOrRender:
    """Test suite for the cache-aside path."""

    @pytest.mark.asyncio
    async def test_statuses_miss_then_fast(self, cache_manager):
        render = CountingRenderer()

        first = await cache_manager.get_or_render("k", render, trusted=True)
        second = await cache_manager.get_or_render("k", render, trusted=True)

        assert first.status is CacheStatus.MISS
        assert second.status is CacheStatus.HIT_FAST
        assert first.payload == second.payload == b"rendered"
        assert render.calls == 1

    @pytest.mark.asyncio
    async def test_status_persistent(self, cache_manager, cache_dir):
        CacheTestFactory.write_cache_file(cache_dir, "k", b"from-disk")
        render = CountingRenderer()

        result = await cache_manager.get_or_render("k", render, trusted=False)

        assert result.status is CacheStatus.HIT_PERSISTENT
        assert result.payload == b"from-disk"
        assert render.calls == 0

    @pytest.mark.asyncio
    async def test_ttl_follows_caller_trust(self, cache_manager):
        render = CountingRenderer()

        untrusted = await cache_manager.get_or_render("k", render, trusted=False)
        trusted = await cache_manager.get_or_render("k", render, trusted=True)

        assert untrusted.ttl == SHORT_TTL
        assert trusted.ttl == STANDARD_TTL

    @pytest.mark.asyncio
    async def test_concurrent_misses_render_once(self, cache_manager):
        gate = asyncio.Event()
        render = CountingRenderer(gate=gate)

        tasks = [
            asyncio.create_task(cache_manager.get_or_render("k", render, trusted=True))
            for _ in range(3)
        ]
        await asyncio.sleep(0.05)
        assert cache_manager.inflight() == 1
        gate.set()
        results = await asyncio.gather(*tasks)

        assert render.calls == 1
        assert [r.payload for r in results] == [b"rendered"] * 3
        assert all(r.status is CacheStatus.MISS for r in results)
        assert cache_manager.inflight() == 0

    @pytest.mark.asyncio
    async def test_render_failure_reaches_every_waiter(self, cache_manager):
        gate = asyncio.Event()
        render = CountingRenderer(gate=gate, error=RuntimeError("renderer crashed"))

        tasks = [
            asyncio.create_task(cache_manager.get_or_render("k", render, trusted=True))
            for _ in range(3)
        ]
        await asyncio.sleep(0.05)
        gate.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert render.calls == 1
        assert all(isinstance(r, RuntimeError) for r in results)
        assert cache_manager.inflight() == 0
        assert await cache_manager.get_cached("k") is None

    @pytest.mark.asyncio
    async def test_failed_render_is_retried_by_next_caller(self, cache_manager):
        failing = CountingRenderer(error=RuntimeError("boom"))
        with pytest.raises(RuntimeError):
            await cache_manager.get_or_render("k", failing, trusted=True)

        result = await cache_manager.get_or_render("k", CountingRenderer(), trusted=True)

        assert result.status is CacheStatus.MISS

    @pytest.mark.asyncio
    async def test_trusted_waiter_persists_untrusted_render(self, cache_manager, persistent_tier):
        gate = asyncio.Event()
        render = CountingRenderer(gate=gate)

        leader = asyncio.create_task(cache_manager.get_or_render("k", render, trusted=False))
        await asyncio.sleep(0.05)
        waiter = asyncio.create_task(cache_manager.get_or_render("k", render, trusted=True))
        await asyncio.sleep(0.05)
        gate.set()
        leader_result, waiter_result = await asyncio.gather(leader, waiter)
        await cache_manager.write_queue.join()

        assert render.calls == 1
        assert leader_result.ttl == SHORT_TTL
        assert waiter_result.ttl == STANDARD_TTL
        assert await persistent_tier.read("k") == b"rendered"
        assert cache_manager.fast_tier.get("k").ttl_seconds == STANDARD_TTL

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_render(self, cache_manager):
        gate = asyncio.Event()
        render = CountingRenderer(gate=gate)

        first = asyncio.create_task(cache_manager.get_or_render("k", render, trusted=True))
        await asyncio.sleep(0.05)
        second = asyncio.create_task(cache_manager.get_or_render("k", render, trusted=True))
        await asyncio.sleep(0.05)
        first.cancel()
        gate.set()
        result = await second

        with pytest.raises(asyncio.CancelledError):
            await first
        assert result.status is CacheStatus.MISS
        assert result.payload == b"rendered"
        assert render.calls == 1
        assert cache_manager.inflight() == 0
        assert cache_manager.fast_tier.get("k").payload == b"rendered"


@pytest.mark.unit
class TestCacheAdministration:
    """Test suite for clear, delete and status."""

    @pytest.mark.asyncio
    async def test_clear_all(self, cache_manager, cache_dir):
        cache_manager.store("a", b"x", trusted=False)
        CacheTestFactory.write_cache_file(cache_dir, "b", b"x")

        result = await cache_manager.clear_all()

        assert result == ClearResult(fast_cleared=1, persistent_cleared=1)
        assert await cache_manager.get_cached("a") is None
        assert await cache_manager.get_cached("b") is None

    @pytest.mark.asyncio
    async def test_delete_entry(self, cache_manager):
        cache_manager.store("k", b"x", trusted=True)
        await cache_manager.write_queue.join()

        assert await cache_manager.delete_entry("k") == DeleteResult(True, True)
        assert await cache_manager.delete_entry("k") == DeleteResult(False, False)

    @pytest.mark.asyncio
    async def test_status_lists_both_tiers(self, cache_manager, cache_dir):
        cache_manager.store("mem", b"x", trusted=False)
        CacheTestFactory.write_cache_file(cache_dir, "disk", b"x")

        status = await cache_manager.status()

        assert status["fast_cache"] == {"entries": 1, "max_size": 100, "keys": ["mem"]}
        assert status["persistent_cache"] == {"entries": 1, "keys": ["disk"]}


@pytest.mark.unit
class TestCacheMonitoring:
    """Test suite for stats and health_check."""

    @pytest.mark.asyncio
    async def test_stats_hit_rate(self, cache_manager):
        render = CountingRenderer()
        await cache_manager.get_or_render("k", render, trusted=False)
        await cache_manager.get_or_render("k", render, trusted=False)

        stats = cache_manager.stats()

        assert stats["fast_hits"] == 1
        assert stats["misses"] == 1
        assert stats["total_lookups"] == 2
        assert stats["hit_rate"] == 0.5
        assert stats["fast_size"] == 1
        assert stats["renders_in_flight"] == 0

    def test_stats_without_lookups(self, cache_manager):
        assert cache_manager.stats()["hit_rate"] == 0.0

    @pytest.mark.asyncio
    async def test_health_degraded_without_directory(self, cache_manager):
        health = await cache_manager.health_check()

        assert health["status"] == "degraded"
        assert health["persistent"]["status"] == "missing_directory"

    @pytest.mark.asyncio
    async def test_health_after_initialize(self, cache_manager):
        await cache_manager.initialize()
        try:
            health = await cache_manager.health_check()
        finally:
            await cache_manager.shutdown()

        assert health["status"] == "healthy"
        assert health["write_queue"]["running"] is True
        assert health["sweeper"]["running"] is True

    @pytest.mark.asyncio
    async def test_shutdown_flushes_pending_writes(self, cache_manager, persistent_tier):
        await cache_manager.initialize()
        cache_manager.store("k", b"x", trusted=True)

        await cache_manager.shutdown()

        assert await persistent_tier.read("k") == b"x"


@pytest.mark.unit
class TestCacheWarmer:
    """Test suite for pre-rendering."""

    @pytest.mark.asyncio
    async def test_warm_renders_then_skips(self, cache_manager):
        render = CountingRenderer()
        param_sets = [CacheTestFactory.param_set(), CacheTestFactory.param_set(title="Other")]

        first = await cache_manager.warmer.warm(param_sets, render)
        second = await cache_manager.warmer.warm(param_sets, render)

        assert first == WarmResult(already_cached=0, rendered=2, failed=0)
        assert second == WarmResult(already_cached=2, rendered=0, failed=0)
        assert render.calls == 2

    @pytest.mark.asyncio
    async def test_warm_passes_fields_and_persists(self, cache_manager, persistent_tier):
        await cache_manager.warmer.warm([CacheTestFactory.param_set()], CountingRenderer())
        await cache_manager.write_queue.join()

        payload = await persistent_tier.read(CacheTestFactory.key())
        assert payload == b"rendered:Hello World|Anonymous|example.com|light"

    @pytest.mark.asyncio
    async def test_warm_counts_failures(self, cache_manager):
        render = CountingRenderer(error=RuntimeError("boom"))

        result = await cache_manager.warmer.warm([CacheTestFactory.param_set()], render)

        assert result == WarmResult(already_cached=0, rendered=0, failed=1)


@pytest.mark.unit
class TestCreateCacheManager:
    """Test suite for the settings factory."""

    def test_built_from_settings(self, test_settings, cache_dir):
        manager = create_cache_manager(test_settings)

        assert manager.fast_tier.max_size == 100
        assert manager.persistent_tier.directory == cache_dir
        assert manager.ttl_for(True) == STANDARD_TTL
        assert manager.ttl_for(False) == SHORT_TTL
