"""
API Models Package

- og.py: ``GET /og`` query validation
- cache_admin.py: ``/cache`` response models
"""

from og_cache.application.api.models.cache_admin import (
    CacheClearResponse,
    CacheDeleteResponse,
    CacheStatusResponse,
    FastCacheStatus,
    PersistentCacheStatus,
)
from og_cache.application.api.models.og import OGImageParams, decode_html_entities

__all__ = [
    "CacheClearResponse",
    "CacheDeleteResponse",
    "CacheStatusResponse",
    "FastCacheStatus",
    "OGImageParams",
    "PersistentCacheStatus",
    "decode_html_entities",
]
