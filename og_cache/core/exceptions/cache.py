"""
Cache-Related Exceptions

All exceptions related to the fast and persistent cache tiers.
"""

from og_cache.core.exceptions.base import OGCacheError


class CacheError(OGCacheError):
    """Base exception for cache-related errors."""
    pass


class PersistentStorageError(CacheError):
    """
    Raised when a persistent tier file operation fails.

    The persistent tier itself never lets this escape to a request; it is
    recorded by the write queue so failed background writes stay observable.

    Common causes:
    - Cache directory missing or not writable
    - Disk full
    - File removed concurrently
    """
    pass
