"""
Cache Administration Routes
===========================

Operational endpoints over both cache tiers. Every route is guarded by
``require_admin``: a missing or wrong bearer token is rejected with 401
before either tier is touched.

- GET    /cache        entry counts and keys of both tiers
- DELETE /cache        empty both tiers
- DELETE /cache/{key}  remove one entry (key is URL-decoded by the router)
"""

from fastapi import APIRouter, Depends

from og_cache.application.api.dependencies import CacheManagerDep
from og_cache.application.api.models.cache_admin import (
    CacheClearResponse,
    CacheDeleteResponse,
    CacheStatusResponse,
)
from og_cache.application.api.security import require_admin

router = APIRouter(prefix="/cache", tags=["Cache"], dependencies=[Depends(require_admin)])


@router.get("", response_model=CacheStatusResponse)
async def cache_status(cache_manager: CacheManagerDep):
    """Current contents of the fast and persistent tiers."""
    return await cache_manager.status()


@router.delete("", response_model=CacheClearResponse)
async def clear_cache(cache_manager: CacheManagerDep):
    """Remove every entry from both tiers."""
    result = await cache_manager.clear_all()
    return CacheClearResponse(
        message="Cache cleared successfully",
        fast_cleared_entries=result.fast_cleared,
        persistent_cleared_entries=result.persistent_cleared,
    )


@router.delete("/{key:path}", response_model=CacheDeleteResponse)
async def delete_cache_entry(key: str, cache_manager: CacheManagerDep):
    """Remove one key from both tiers."""
    result = await cache_manager.delete_entry(key)
    found = result.fast_deleted or result.persistent_deleted
    return CacheDeleteResponse(
        message="Cache entry deleted" if found else "Cache entry not found",
        key=key,
        fast_deleted=result.fast_deleted,
        persistent_deleted=result.persistent_deleted,
    )
