"""
Pytest Configuration and Shared Test Fixtures

This module provides reusable fixtures for all tests. All fixtures defined
here are automatically available to all test files.
"""

import fnmatch
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from og_cache.core.config.settings import Settings
from og_cache.infrastructure.cache.cache_manager import CacheManager
from og_cache.infrastructure.cache.fast_tier import FastTier
from og_cache.infrastructure.cache.persistent_tier import PersistentTier
from og_cache.infrastructure.cache.sweeper import CacheSweeper
from og_cache.infrastructure.cache.write_queue import PersistentWriteQueue
from og_cache.rendering.renderer import PlaceholderRenderer
from test_fixtures import SHORT_TTL, STANDARD_TTL

# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Manually advanced epoch clock, injectable wherever ``time.time`` is."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"


@pytest.fixture
def test_settings(cache_dir):
    """
    Real Settings pointing at a temporary cache directory.

    Init kwargs take priority over environment variables and .env.
    """
    return Settings(
        CACHE_DIR=str(cache_dir),
        DEFAULT_CACHE_TTL=STANDARD_TTL,
        SHORT_CACHE_TTL=SHORT_TTL,
        HTTP_CACHE_TTL=3600,
        IMAGE_CACHE_MAX_SIZE=100,
        RATE_LIMIT_REDIS_URL=None,
        RATE_LIMIT_WINDOW_MS=60000,
        RATE_LIMIT_MAX_REQUESTS=60,
        ADMIN_TOKEN="test-admin-token",
        ALLOWED_ORIGINS="https://blog.example.com,https://example.org",
        ENVIRONMENT="development",
        LOG_LEVEL="WARNING",
        LOG_FORMAT="console",
        PREWARM_SOURCE_URL=None,
    )


@pytest.fixture
def mock_settings():
    """
    Mock application settings for testing.

    Returns a MagicMock with the settings attributes the gateway reads.
    """
    settings = MagicMock(spec=Settings)

    settings.cache.DEFAULT_CACHE_TTL = STANDARD_TTL
    settings.cache.SHORT_CACHE_TTL = SHORT_TTL
    settings.cache.IMAGE_CACHE_MAX_SIZE = 100
    settings.cache.CACHE_DIR = "cache"
    settings.cache.CACHE_SWEEP_INTERVAL = 7200
    settings.cache.CACHE_WRITE_QUEUE_SIZE = 256

    settings.rate_limit.RATE_LIMIT_WINDOW_MS = 60000
    settings.rate_limit.RATE_LIMIT_MAX_REQUESTS = 60
    settings.rate_limit.RATE_LIMIT_REDIS_URL = None
    settings.rate_limit.RATE_LIMIT_PREFIX = "og-image-gen"
    settings.rate_limit.RATE_LIMIT_SOCKET_TIMEOUT = 2.0

    settings.app.ENVIRONMENT = "test"
    settings.app.APP_VERSION = "1.0.0-test"
    settings.app.APP_NAME = "OG Test"

    return settings


# ============================================================================
# Cache Fixtures
# ============================================================================


@pytest.fixture
def fast_tier(clock):
    return FastTier(max_size=100, clock=clock)


@pytest.fixture
def persistent_tier(cache_dir, clock):
    return PersistentTier(cache_dir, ttl_seconds=STANDARD_TTL, clock=clock)


@pytest.fixture
def write_queue(persistent_tier):
    return PersistentWriteQueue(persistent_tier, maxsize=16)


@pytest.fixture
def cache_manager(fast_tier, persistent_tier, write_queue):
    """
    CacheManager over real tiers on a temporary directory.

    Background tasks are not started; the write queue worker starts on first
    submit, and tests wait for it with ``write_queue.join()``.
    """
    return CacheManager(
        fast_tier=fast_tier,
        persistent_tier=persistent_tier,
        write_queue=write_queue,
        sweeper=CacheSweeper(fast_tier, interval_seconds=7200),
        standard_ttl=STANDARD_TTL,
        short_ttl=SHORT_TTL,
    )


@pytest.fixture
def renderer():
    return PlaceholderRenderer()


@pytest.fixture
def mock_cache_manager():
    """
    Mock CacheManager for isolated route testing.
    """
    cache = MagicMock(spec=CacheManager)
    cache.get_cached = AsyncMock(return_value=None)
    cache.get_or_render = AsyncMock()
    cache.clear_all = AsyncMock()
    cache.delete_entry = AsyncMock()
    cache.status = AsyncMock()
    cache.health_check = AsyncMock(return_value={"status": "healthy"})
    return cache


# ============================================================================
# Redis Stub
# ============================================================================


class InMemoryPipeline:
    """Queues commands and runs them in order on ``execute``."""

    def __init__(self, client: "InMemoryRedis"):
        self._client = client
        self._commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._commands.clear()
        return False

    def __getattr__(self, name):
        method = getattr(self._client, name)

        def queue(*args, **kwargs):
            self._commands.append((method, args, kwargs))
            return self

        return queue

    async def execute(self):
        self._client.check_available()
        self._client.transactions += 1
        results = []
        for method, args, kwargs in self._commands:
            results.append(await method(*args, **kwargs))
        self._commands.clear()
        return results


class InMemoryRedis:
    """
    In-memory Redis client stub for testing.

    Supports the sorted-set commands the sliding window limiter uses, plus
    ping. Set ``available = False`` to simulate an unreachable server.
    """

    def __init__(self):
        self.zsets: dict[str, dict[str, float]] = {}
        self.expirations_ms: dict[str, int] = {}
        self.available = True
        self.transactions = 0
        self.closed = False

    def check_available(self):
        if not self.available:
            raise RedisConnectionError("Connection refused")

    def pipeline(self, transaction=True):
        return InMemoryPipeline(self)

    async def ping(self):
        self.check_available()
        return True

    async def zremrangebyscore(self, key, min_score, max_score):
        self.check_available()
        zset = self.zsets.get(key, {})
        doomed = [m for m, s in zset.items() if float(min_score) <= s <= float(max_score)]
        for member in doomed:
            del zset[member]
        return len(doomed)

    async def zadd(self, key, mapping):
        self.check_available()
        zset = self.zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update({member: float(score) for member, score in mapping.items()})
        return added

    async def zcard(self, key):
        self.check_available()
        return len(self.zsets.get(key, {}))

    async def zrange(self, key, start, end, withscores=False):
        self.check_available()
        ordered = sorted(self.zsets.get(key, {}).items(), key=lambda item: (item[1], item[0]))
        stop = len(ordered) if end == -1 else end + 1
        window = ordered[start:stop]
        if withscores:
            return [(member, score) for member, score in window]
        return [member for member, _ in window]

    async def zrem(self, key, *members):
        self.check_available()
        zset = self.zsets.get(key, {})
        removed = 0
        for member in members:
            if zset.pop(member, None) is not None:
                removed += 1
        return removed

    async def pexpire(self, key, milliseconds):
        self.check_available()
        self.expirations_ms[key] = milliseconds
        return key in self.zsets

    async def keys(self, pattern="*"):
        return [k for k in self.zsets if fnmatch.fnmatch(k, pattern)]

    async def aclose(self):
        self.closed = True


@pytest.fixture
def in_memory_redis_client():
    return InMemoryRedis()
