"""
Artifact Renderers

The renderer is the expensive collaborator the cache sits in front of.
Producing real Open Graph images (HTML template + headless browser screenshot)
is outside this package; any implementation of ``ArtifactRenderer`` can be
passed to ``create_app``.
"""

import asyncio
from abc import ABC, abstractmethod

import orjson

from og_cache.core.config.constants import ARTIFACT_HEIGHT, ARTIFACT_WIDTH
from og_cache.core.exceptions import RenderError
from og_cache.core.logging.logger import get_logger

logger = get_logger(__name__)

# JPEG markers: start of image, comment segment, end of image
_SOI = b"\xff\xd8"
_COM = b"\xff\xfe"
_EOI = b"\xff\xd9"
_MAX_SEGMENT = 0xFFFF - 2


class ArtifactRenderer(ABC):
    """Turns a validated parameter tuple into image bytes."""

    @abstractmethod
    async def render(self, title: str, author: str, website: str, theme: str) -> bytes:
        """
        Render one artifact.

        Raises:
            RenderError: If the artifact could not be produced
        """

    async def close(self) -> None:
        """Release renderer resources (browser, pools)."""


class PlaceholderRenderer(ArtifactRenderer):
    """
    Deterministic stand-in renderer.

    Emits a JPEG-framed byte string whose comment segment holds the render
    parameters, so equal inputs give equal bytes and tests can tell artifacts
    apart. An optional delay simulates render latency.
    """

    def __init__(self, delay_seconds: float = 0.0):
        self.delay_seconds = delay_seconds
        self.render_count = 0

    async def render(self, title: str, author: str, website: str, theme: str) -> bytes:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        self.render_count += 1
        body = orjson.dumps(
            {
                "title": title,
                "author": author,
                "website": website,
                "theme": theme,
                "width": ARTIFACT_WIDTH,
                "height": ARTIFACT_HEIGHT,
            },
            option=orjson.OPT_SORT_KEYS,
        )
        if len(body) > _MAX_SEGMENT:
            raise RenderError("Render parameters too large", details={"bytes": len(body)})

        length = (len(body) + 2).to_bytes(2, "big")
        return _SOI + _COM + length + body + _EOI
