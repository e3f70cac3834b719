"""
FastAPI Dependencies
====================

Accessors for the application-level objects created in the lifespan manager
and stored on ``app.state``:

- settings: Settings the app was built with
- cache_manager: CacheManager (both tiers + background tasks)
- admission: AdmissionController chosen at startup
- renderer: ArtifactRenderer behind the cache

Routes declare them with the ``Annotated`` aliases at the bottom of this
module, so tests can swap any of them through ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, Request

from og_cache.core.config.settings import Settings
from og_cache.infrastructure.cache.cache_manager import CacheManager
from og_cache.rate_limiting.rate_limiter import AdmissionController
from og_cache.rendering.renderer import ArtifactRenderer


def _from_state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(
            f"{name} not initialized in app.state. "
            "This indicates the application lifespan startup didn't complete properly."
        )
    return value


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return _from_state(request, "settings")


def get_cache_manager(request: Request) -> CacheManager:
    """
    Retrieve the CacheManager created at startup.

    Raises:
        RuntimeError: If the lifespan manager has not run
    """
    return _from_state(request, "cache_manager")


def get_admission_controller(request: Request) -> AdmissionController:
    return _from_state(request, "admission")


def get_renderer(request: Request) -> ArtifactRenderer:
    return _from_state(request, "renderer")


# ============================================================================
# TYPE ALIASES
# ============================================================================

SettingsDep = Annotated[Settings, Depends(get_app_settings)]
CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
AdmissionDep = Annotated[AdmissionController, Depends(get_admission_controller)]
RendererDep = Annotated[ArtifactRenderer, Depends(get_renderer)]
