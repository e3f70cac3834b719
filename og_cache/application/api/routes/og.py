"""
OG Image Route
==============

``GET /og?title=...&author=...&website=...&theme=...``

Request flow:
1. Validate and decode the query (400 on failure, nothing else runs)
2. Admission check for the caller identity (429 on rejection)
3. Trust tier from the Referer header
4. ``CacheManager.get_or_render``: fast tier → persistent tier → render
5. JPEG response with cache metadata headers

Headers:
- X-Cache-Status: HIT-FAST | HIT-PERSISTENT | MISS
- Cache-Control: public, max-age=T, s-maxage=T (T depends on trust)
- ETag, X-Cache-Key, X-Authorized, X-RateLimit-*
- Last-Modified on a miss
"""

import time
from email.utils import formatdate

from fastapi import APIRouter, Request, Response

from og_cache.application.api.dependencies import (
    AdmissionDep,
    CacheManagerDep,
    RendererDep,
    SettingsDep,
)
from og_cache.application.api.models.og import OGImageParams
from og_cache.application.api.security import is_trusted_origin
from og_cache.core.config.constants import (
    ARTIFACT_CONTENT_TYPE,
    HEADER_AUTHORIZED,
    HEADER_CACHE_KEY,
    HEADER_CACHE_STATUS,
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    CacheStatus,
    Stage,
)
from og_cache.core.exceptions import RateLimitExceededError, RenderError
from og_cache.core.logging.logger import get_logger, log_stage
from og_cache.infrastructure.cache.keys import build_cache_key, entity_tag
from og_cache.rate_limiting.rate_limiter import get_client_identity

logger = get_logger(__name__)

router = APIRouter(prefix="/og", tags=["OG Image"])


@router.get(
    "",
    response_class=Response,
    responses={
        200: {"content": {ARTIFACT_CONTENT_TYPE: {}}, "description": "Rendered or cached image"},
        400: {"description": "Invalid query parameters"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def get_og_image(
    request: Request,
    settings: SettingsDep,
    cache_manager: CacheManagerDep,
    admission: AdmissionDep,
    renderer: RendererDep,
) -> Response:
    """Serve the OG image for the query, rendering it only on a cache miss."""
    started = time.perf_counter()

    params = OGImageParams.from_query(request.query_params)

    identity = get_client_identity(request)
    decision = await admission.decide(identity)
    if not decision.admitted:
        raise RateLimitExceededError(
            "Too many requests",
            details={
                "limit": decision.limit,
                "remaining": decision.remaining,
                "reset_at": decision.reset_at,
                "retry_after": decision.retry_after,
            },
        )

    referer = request.headers.get("referer")
    trusted = is_trusted_origin(referer, settings.app.allowed_origins, settings.app.ENVIRONMENT)
    cache_key = build_cache_key(*params.key_fields())

    async def render() -> bytes:
        try:
            return await renderer.render(*params.key_fields())
        except RenderError:
            raise
        except Exception as e:
            raise RenderError.from_exception(e, message="Failed to render image", cache_key=cache_key[:40]) from e

    result = await cache_manager.get_or_render(cache_key, render, trusted)

    http_ttl = settings.HTTP_CACHE_TTL if trusted else settings.SHORT_CACHE_TTL
    headers = {
        "Cache-Control": f"public, max-age={http_ttl}, s-maxage={http_ttl}",
        "ETag": entity_tag(cache_key),
        HEADER_CACHE_KEY: cache_key,
        HEADER_CACHE_STATUS: result.status.value,
        HEADER_AUTHORIZED: str(trusted).lower(),
        HEADER_RATE_LIMIT: str(decision.limit),
        HEADER_RATE_REMAINING: str(decision.remaining),
        HEADER_RATE_RESET: str(int(decision.reset_at)),
    }
    if result.status is CacheStatus.MISS:
        headers["Last-Modified"] = formatdate(usegmt=True)

    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    log_stage(
        logger,
        Stage.CACHE_LOOKUP,
        "OG image served",
        cache_status=result.status.value,
        duration_ms=duration_ms,
        authorized=trusted,
        client=identity,
        referer=referer or "direct",
        user_agent=request.headers.get("user-agent", "unknown")[:100],
    )
    if not trusted:
        log_stage(
            logger,
            Stage.CACHE_LOOKUP,
            "Request from untrusted origin",
            level="warning",
            client=identity,
            referer=referer,
            user_agent=request.headers.get("user-agent", "unknown")[:50],
        )

    # Response sets Content-Length from the body
    return Response(content=result.payload, media_type=ARTIFACT_CONTENT_TYPE, headers=headers)
