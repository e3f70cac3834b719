"""
Validation Exceptions

All exceptions related to request validation
"""

from og_cache.core.exceptions.base import OGCacheError


class ValidationError(OGCacheError):
    """
    Raised when request validation fails.

    This is the base class for all validation-related errors.
    """
    pass


class InvalidInputError(ValidationError):
    """
    Raised when input validation fails.

    Common causes:
    - Missing or blank title
    - Field longer than its limit
    - Unknown theme
    """
    pass
