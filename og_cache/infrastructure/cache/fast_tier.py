"""
Fast Tier - bounded in-memory artifact storage.

Responsibility: In-process key → CacheEntry mapping where every entry carries
its own TTL.

Implementation Details:
- Plain dict; all operations are synchronous, so under a single event loop no
  two mutations can interleave and no lock is needed
- Expired entries are dropped lazily on read and in bulk by the sweeper
- ``put`` never evicts; the size bound is enforced only by ``trim`` (run by the
  sweeper), so the tier may hold more than ``max_size`` entries between sweeps
- Eviction order is insertion time (``created_at``), not last access; an entry
  re-promoted from disk gets a fresh ``created_at``
"""

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class CacheEntry:
    """A cached artifact with its own time-to-live."""

    payload: bytes
    created_at: float
    ttl_seconds: int

    def is_expired(self, now: float) -> bool:
        """Expired once strictly more than ``ttl_seconds`` have elapsed."""
        return now - self.created_at > self.ttl_seconds


class FastTier:
    """
    Bounded, volatile in-memory cache tier.

    Usage:
        tier = FastTier(max_size=100)
        tier.put("key", b"...", ttl_seconds=300)
        entry = tier.get("key")
    """

    def __init__(self, max_size: int, clock: Callable[[], float] = time.time):
        """
        Args:
            max_size: Entry bound enforced by ``trim``
            clock: Seconds since the epoch; injectable for tests
        """
        self._max_size = max_size
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key: str) -> CacheEntry | None:
        """
        Return the entry for ``key`` if present and unexpired.

        An expired entry is removed here, independent of the sweeper.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    def put(self, key: str, payload: bytes, ttl_seconds: int) -> CacheEntry:
        """Insert or overwrite ``key`` with a fresh creation time."""
        entry = CacheEntry(payload=payload, created_at=self._clock(), ttl_seconds=ttl_seconds)
        self._entries[key] = entry
        return entry

    def delete(self, key: str) -> bool:
        """Delete ``key``. Returns True if it was present."""
        return self._entries.pop(key, None) is not None

    def size(self) -> int:
        """Current number of entries, expired ones included until swept."""
        return len(self._entries)

    def keys(self) -> list[str]:
        """All keys in insertion order."""
        return list(self._entries)

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        removed = len(self._entries)
        self._entries.clear()
        return removed

    def expire(self, now: float | None = None) -> int:
        """Remove every entry whose own TTL has elapsed. Returns the number removed."""
        now = self._clock() if now is None else now
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def trim(self) -> int:
        """
        Bring the tier back to ``max_size`` by deleting the oldest entries.

        Entries are ordered by ``created_at`` ascending and the first
        ``size - max_size`` are removed. Returns the number removed.
        """
        excess = len(self._entries) - self._max_size
        if excess <= 0:
            return 0
        oldest = sorted(self._entries.items(), key=lambda item: item[1].created_at)[:excess]
        for key, _ in oldest:
            del self._entries[key]
        return excess
