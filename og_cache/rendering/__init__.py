"""Artifact rendering collaborators and startup pre-warm."""

from og_cache.rendering.prewarm import extract_titles, fetch_popular_titles, prewarm_cache
from og_cache.rendering.renderer import ArtifactRenderer, PlaceholderRenderer

__all__ = [
    "ArtifactRenderer",
    "PlaceholderRenderer",
    "extract_titles",
    "fetch_popular_titles",
    "prewarm_cache",
]
