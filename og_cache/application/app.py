#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Configures the OG image cache gateway: lifespan-managed cache and admission
controller, middleware, exception handlers and routes.

Run:
    uvicorn og_cache.application.app:app --port 3000
"""

import asyncio
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from og_cache.application.api.middleware.error_handler import ErrorHandlingMiddleware
from og_cache.application.api.routes.cache_admin import router as cache_admin_router
from og_cache.application.api.routes.health import router as health_router
from og_cache.application.api.routes.og import router as og_router
from og_cache.core.config.constants import (
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_REQUEST_ID,
    Stage,
)
from og_cache.core.config.settings import Settings, get_settings
from og_cache.core.exceptions import (
    AuthenticationError,
    InvalidInputError,
    OGCacheError,
    RateLimitExceededError,
    RenderError,
)
from og_cache.core.logging.logger import (
    clear_request_id,
    get_logger,
    log_stage,
    set_request_id,
    setup_logging,
)
from og_cache.infrastructure.cache.cache_manager import create_cache_manager
from og_cache.infrastructure.monitoring.metrics_collector import get_metrics_collector
from og_cache.rate_limiting.rate_limiter import AdmissionController, create_admission_controller
from og_cache.rendering.prewarm import prewarm_cache
from og_cache.rendering.renderer import ArtifactRenderer, PlaceholderRenderer

logger = get_logger(__name__)


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: logging, cache tiers and background tasks, admission backend,
    optional pre-warm. Shutdown reverses it and flushes pending disk writes.
    """
    settings: Settings = app.state.settings
    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    log_stage(
        logger,
        Stage.INITIALIZATION,
        "Starting OG image cache gateway",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
    )

    cache_manager = create_cache_manager(settings)
    await cache_manager.initialize()
    app.state.cache_manager = cache_manager

    if app.state.admission is None:
        app.state.admission = await create_admission_controller(settings)

    prewarm_task = None
    if settings.app.PREWARM_SOURCE_URL:
        prewarm_task = asyncio.create_task(
            prewarm_cache(cache_manager, app.state.renderer, settings), name="cache-prewarm"
        )
    app.state.prewarm_task = prewarm_task

    logger.info("Application startup complete")

    try:
        yield
    finally:
        logger.info("Shutting down application")

        if prewarm_task is not None and not prewarm_task.done():
            prewarm_task.cancel()
            try:
                await prewarm_task
            except asyncio.CancelledError:
                pass

        await cache_manager.shutdown()
        await app.state.admission.close()
        await app.state.renderer.close()

        log_stage(logger, Stage.CLEANUP, "Application shutdown complete")


# ============================================================================
# Exception Handlers
# ============================================================================


async def invalid_input_handler(request: Request, exc: InvalidInputError):
    """400 with the first failing validation rule."""
    get_metrics_collector().record_error(type(exc).__name__, Stage.REQUEST_VALIDATION.value)
    return JSONResponse(status_code=400, content={"error": exc.message})


async def rate_limit_handler(request: Request, exc: RateLimitExceededError):
    """429 carrying the admission decision; ``reset`` is epoch milliseconds."""
    details = exc.details
    retry_after = int(details.get("retry_after", 1))
    reset_at = float(details.get("reset_at", 0))
    return JSONResponse(
        status_code=429,
        content={
            "error": exc.message,
            "limit": details.get("limit"),
            "remaining": details.get("remaining", 0),
            "reset": int(reset_at * 1000),
            "retry_after": retry_after,
        },
        headers={
            "Retry-After": str(retry_after),
            HEADER_RATE_LIMIT: str(details.get("limit")),
            HEADER_RATE_REMAINING: str(details.get("remaining", 0)),
            HEADER_RATE_RESET: str(int(reset_at)),
        },
    )


async def authentication_handler(request: Request, exc: AuthenticationError):
    logger.warning(
        "Unauthorized cache administration attempt",
        path=request.url.path,
        method=request.method,
        reason=exc.details.get("reason"),
    )
    return JSONResponse(status_code=401, content={"error": "Unauthorized"})


async def render_error_handler(request: Request, exc: RenderError):
    """500; the underlying message is only exposed in development."""
    log_stage(
        logger,
        Stage.RENDER,
        "Error generating OG image",
        level="error",
        error=exc.message,
        details=exc.details,
    )
    get_metrics_collector().record_error(type(exc).__name__, Stage.RENDER.value)

    content = {"error": "Internal server error while generating image"}
    if request.app.state.settings.app.ENVIRONMENT == "development":
        content["message"] = exc.message
    return JSONResponse(status_code=500, content=content)


async def gateway_error_handler(request: Request, exc: OGCacheError):
    logger.error(f"Gateway exception: {exc.message}", error_type=type(exc).__name__)
    get_metrics_collector().record_error(type(exc).__name__, "gateway")
    return JSONResponse(status_code=500, content=exc.to_dict())


# ============================================================================
# Application Factory
# ============================================================================


def create_app(
    settings: Settings | None = None,
    renderer: ArtifactRenderer | None = None,
    admission: AdmissionController | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration; defaults to the process-wide settings
        renderer: Artifact renderer; defaults to PlaceholderRenderer
        admission: Admission controller; default chosen from settings at startup

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Open Graph image service with a two-tier cache and admission control",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.renderer = renderer or PlaceholderRenderer()
    app.state.admission = admission
    app.state.cache_manager = None

    # Middleware runs in reverse registration order: the request-id middleware
    # below wraps error handling so 500 responses carry the id too.
    app.add_middleware(
        ErrorHandlingMiddleware,
        include_traceback=(settings.app.ENVIRONMENT == "development"),
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Bind a request id into the log context and echo it back."""
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)
        try:
            response = await call_next(request)
            response.headers[HEADER_REQUEST_ID] = request_id
            return response
        finally:
            clear_request_id()

    app.add_exception_handler(InvalidInputError, invalid_input_handler)
    app.add_exception_handler(RateLimitExceededError, rate_limit_handler)
    app.add_exception_handler(AuthenticationError, authentication_handler)
    app.add_exception_handler(RenderError, render_error_handler)
    app.add_exception_handler(OGCacheError, gateway_error_handler)

    app.include_router(health_router)
    app.include_router(og_router)
    app.include_router(cache_admin_router)

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "endpoints": {
                "og_image": "/og?title=Your Title&author=Author&website=example.com&theme=light",
                "cache": "/cache",
                "health": "/health",
                "metrics": "/metrics",
            },
        }

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "og_cache.application.app:app",
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
