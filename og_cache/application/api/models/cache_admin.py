"""
Cache Administration Response Models
"""

from pydantic import BaseModel, Field


class FastCacheStatus(BaseModel):
    entries: int = Field(..., ge=0, description="Entries currently held, expired ones included until swept")
    max_size: int = Field(..., gt=0, description="Bound enforced by the sweeper")
    keys: list[str] = Field(default_factory=list, description="Cache keys in insertion order")


class PersistentCacheStatus(BaseModel):
    entries: int = Field(..., ge=0, description="Cached files on disk")
    keys: list[str] = Field(default_factory=list, description="Sanitized filename stems")


class CacheStatusResponse(BaseModel):
    """Response of ``GET /cache``."""

    fast_cache: FastCacheStatus
    persistent_cache: PersistentCacheStatus


class CacheClearResponse(BaseModel):
    """Response of ``DELETE /cache``."""

    message: str
    fast_cleared_entries: int = Field(..., ge=0)
    persistent_cleared_entries: int = Field(..., ge=0)


class CacheDeleteResponse(BaseModel):
    """Response of ``DELETE /cache/{key}``."""

    message: str
    key: str
    fast_deleted: bool
    persistent_deleted: bool
