"""
Health and Metrics Routes
=========================

- GET /health           quick status for load balancers
- GET /health/detailed  tier, write queue and sweeper state plus hit rates
- GET /metrics          Prometheus exposition
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Response
from pydantic import BaseModel

from og_cache.application.api.dependencies import CacheManagerDep, SettingsDep
from og_cache.infrastructure.monitoring.metrics_collector import get_metrics_collector

router = APIRouter(tags=["Health"])


class FastCacheHealth(BaseModel):
    size: int
    max_size: int


class HealthResponse(BaseModel):
    """
    Quick health check response.

    status is always "healthy" when the process can answer; dependency
    detail lives under /health/detailed.
    """

    status: str
    timestamp: str
    service: str
    version: str
    fast_cache: FastCacheHealth


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: SettingsDep, cache_manager: CacheManagerDep):
    """Liveness plus fast tier occupancy."""
    return HealthResponse(
        status="healthy",
        timestamp=_utc_timestamp(),
        service=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        fast_cache=FastCacheHealth(
            size=cache_manager.fast_tier.size(),
            max_size=cache_manager.fast_tier.max_size,
        ),
    )


@router.get("/health/detailed")
async def detailed_health(cache_manager: CacheManagerDep):
    """
    Detailed cache health for debugging and dashboards.

    Always 200; degradation is reported in the body.
    """
    health = await cache_manager.health_check()
    health["stats"] = cache_manager.stats()
    health["timestamp"] = _utc_timestamp()
    return health


@router.get("/metrics")
async def prometheus_metrics():
    """Prometheus text exposition of every registered metric."""
    metrics = get_metrics_collector()
    return Response(content=metrics.get_prometheus_metrics(), media_type=metrics.get_content_type())
