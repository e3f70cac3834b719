"""Two-tier artifact cache: fast in-memory tier over a persistent disk tier."""

from og_cache.infrastructure.cache.cache_manager import (
    CacheLookup,
    CacheManager,
    CacheWarmer,
    ClearResult,
    DeleteResult,
    RenderResult,
    WarmResult,
    create_cache_manager,
)
from og_cache.infrastructure.cache.fast_tier import CacheEntry, FastTier
from og_cache.infrastructure.cache.keys import build_cache_key, entity_tag, sanitize_key
from og_cache.infrastructure.cache.persistent_tier import PersistentTier
from og_cache.infrastructure.cache.sweeper import CacheSweeper, SweepResult
from og_cache.infrastructure.cache.write_queue import PersistentWriteQueue, WriteFailure

__all__ = [
    "CacheEntry",
    "CacheLookup",
    "CacheManager",
    "CacheSweeper",
    "CacheWarmer",
    "ClearResult",
    "DeleteResult",
    "FastTier",
    "PersistentTier",
    "PersistentWriteQueue",
    "RenderResult",
    "SweepResult",
    "WarmResult",
    "WriteFailure",
    "build_cache_key",
    "create_cache_manager",
    "entity_tag",
    "sanitize_key",
]
