"""
Rate Limiting Exceptions

All exceptions related to admission control
"""

from og_cache.core.exceptions.base import OGCacheError


class RateLimitError(OGCacheError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised when a caller is rejected by the admission controller.

    The details carry the decision so the handler can render:
    - X-RateLimit-Limit: Maximum requests allowed
    - X-RateLimit-Remaining: Requests remaining
    - X-RateLimit-Reset: Time when limit resets (Unix timestamp)
    - Retry-After: Seconds until the caller may retry
    """
    pass


class AdmissionBackendError(RateLimitError):
    """
    Raised when the distributed admission backend cannot be reached.

    Caught inside the sliding window limiter, which fails open.
    """
    pass
