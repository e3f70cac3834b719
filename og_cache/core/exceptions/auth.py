"""
Authentication and Rendering Exceptions
"""

from og_cache.core.exceptions.base import OGCacheError


class AuthenticationError(OGCacheError):
    """Raised when an administrative call lacks a valid bearer credential."""
    pass


class RenderError(OGCacheError):
    """Raised when the external renderer fails to produce an artifact."""
    pass
