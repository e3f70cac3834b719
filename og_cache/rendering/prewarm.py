"""
Startup Pre-warm

Fetches the popular-posts document (``daily``/``monthly``/``yearly`` lists of
``{"title": ...}`` objects), takes the first few titles of each list and
renders them into both cache tiers before traffic arrives.

Nothing here is fatal: a failed fetch or render is logged and skipped.
"""

from collections.abc import Sequence
from typing import Any

import httpx
import orjson
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from og_cache.core.config.constants import DEFAULT_THEME, PREWARM_POSTS_PER_LIST, Stage
from og_cache.core.config.settings import Settings
from og_cache.core.logging.logger import get_logger, log_stage
from og_cache.infrastructure.cache.cache_manager import CacheManager, WarmResult
from og_cache.rendering.renderer import ArtifactRenderer

logger = get_logger(__name__)

POPULAR_LISTS = ("daily", "monthly", "yearly")
FETCH_TIMEOUT_SECONDS = 10.0
FETCH_ATTEMPTS = 3


def extract_titles(document: Any, per_list: int = PREWARM_POSTS_PER_LIST) -> list[str]:
    """
    Titles from the first ``per_list`` posts of each popular list.

    Missing lists, non-list values and posts without a string title are
    skipped.
    """
    if not isinstance(document, dict):
        return []

    titles = []
    for name in POPULAR_LISTS:
        posts = document.get(name) or []
        if not isinstance(posts, list):
            continue
        for post in posts[:per_list]:
            title = post.get("title") if isinstance(post, dict) else None
            if isinstance(title, str) and title.strip():
                titles.append(title.strip())
    return titles


async def fetch_popular_titles(url: str, client: httpx.AsyncClient | None = None) -> list[str]:
    """
    Download and parse the popular-posts document.

    Connection errors and timeouts are retried with exponential backoff.

    Raises:
        httpx.HTTPError: On a non-2xx response or once retries are exhausted
        ValueError: If the body is not JSON
    """

    @retry(
        stop=stop_after_attempt(FETCH_ATTEMPTS),
        wait=wait_exponential_jitter(initial=0.5, max=4.0),
        retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
        reraise=True,
    )
    async def _do_request(http: httpx.AsyncClient) -> Any:
        response = await http.get(url)
        response.raise_for_status()
        return orjson.loads(response.content)

    if client is not None:
        document = await _do_request(client)
    else:
        async with httpx.AsyncClient(timeout=FETCH_TIMEOUT_SECONDS) as http:
            document = await _do_request(http)

    return extract_titles(document)


async def prewarm_cache(
    cache_manager: CacheManager,
    renderer: ArtifactRenderer,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> WarmResult | None:
    """
    Warm the cache from ``PREWARM_SOURCE_URL``.

    Returns None when pre-warm is not configured or the fetch failed.
    """
    app = settings.app
    if not app.PREWARM_SOURCE_URL:
        return None

    log_stage(logger, Stage.WARMING, "Pre-warming cache with popular posts", source=app.PREWARM_SOURCE_URL)
    try:
        titles = await fetch_popular_titles(app.PREWARM_SOURCE_URL, client=client)
    except (httpx.HTTPError, ValueError) as e:
        log_stage(
            logger,
            Stage.WARMING,
            "Failed to fetch popular posts, skipping pre-warm",
            level="warning",
            error=str(e),
        )
        return None

    param_sets: list[Sequence[str]] = [
        (title, app.PREWARM_AUTHOR, app.PREWARM_WEBSITE, DEFAULT_THEME) for title in titles
    ]
    return await cache_manager.warmer.warm(param_sets, renderer.render)
