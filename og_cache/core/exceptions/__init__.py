"""
Exception Module

Structured exception hierarchy for the OG image cache gateway.

Module Structure:
-----------------
- **base.py**: OGCacheError base class + ConfigurationError
- **cache.py**: Cache tier exceptions
- **rate_limit.py**: Admission control exceptions
- **validation.py**: Request validation exceptions
- **auth.py**: Administrative authentication and render exceptions

Usage:
------
```python
from og_cache.core.exceptions import PersistentStorageError, RateLimitExceededError
```
"""

from og_cache.core.exceptions.auth import AuthenticationError, RenderError
from og_cache.core.exceptions.base import ConfigurationError, OGCacheError
from og_cache.core.exceptions.cache import CacheError, PersistentStorageError
from og_cache.core.exceptions.rate_limit import (
    AdmissionBackendError,
    RateLimitError,
    RateLimitExceededError,
)
from og_cache.core.exceptions.validation import InvalidInputError, ValidationError

__all__ = [
    # Base
    "OGCacheError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "PersistentStorageError",
    # Rate Limit
    "RateLimitError",
    "RateLimitExceededError",
    "AdmissionBackendError",
    # Validation
    "ValidationError",
    "InvalidInputError",
    # Auth / render
    "AuthenticationError",
    "RenderError",
]
