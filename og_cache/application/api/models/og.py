"""
OG Image Request Models
=======================

Query parameters of ``GET /og`` are validated by ``OGImageParams`` before any
admission or cache work happens.

Meta tags often carry HTML-escaped query strings
(``?title=Tom &amp; Jerry``), so the five entities the templates produce are
decoded first. Values are trimmed; empty optional fields fall back to their
defaults.
"""

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from og_cache.core.config.constants import (
    AUTHOR_MAX_LENGTH,
    DEFAULT_AUTHOR,
    DEFAULT_THEME,
    DEFAULT_WEBSITE,
    THEMES,
    TITLE_MAX_LENGTH,
    WEBSITE_MAX_LENGTH,
)
from og_cache.core.exceptions import InvalidInputError

HTML_ENTITIES = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)

_PYDANTIC_VALUE_ERROR_PREFIX = "Value error, "


def decode_html_entities(value: str) -> str:
    """Decode ``&amp; &lt; &gt; &quot; &#39;``, in that order."""
    for entity, char in HTML_ENTITIES:
        value = value.replace(entity, char)
    return value


class OGImageParams(BaseModel):
    """
    Validated render parameters.

    Field order is the cache key order: title, author, website, theme.
    """

    model_config = ConfigDict(frozen=True)

    title: str | None = Field(default=None, validate_default=True)
    author: str | None = Field(default=None, validate_default=True)
    website: str | None = Field(default=None, validate_default=True)
    theme: str | None = Field(default=None, validate_default=True)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if v is None or not v.strip():
            raise ValueError("Title is required and must be a non-empty string")
        if len(v) > TITLE_MAX_LENGTH:
            raise ValueError(f"Title must be {TITLE_MAX_LENGTH} characters or less")
        return v.strip()

    @field_validator("author")
    @classmethod
    def validate_author(cls, v):
        if v is not None and len(v) > AUTHOR_MAX_LENGTH:
            raise ValueError(f"Author must be a string of {AUTHOR_MAX_LENGTH} characters or less")
        return (v or "").strip() or DEFAULT_AUTHOR

    @field_validator("website")
    @classmethod
    def validate_website(cls, v):
        if v is not None and len(v) > WEBSITE_MAX_LENGTH:
            raise ValueError(f"Website must be a string of {WEBSITE_MAX_LENGTH} characters or less")
        return (v or "").strip() or DEFAULT_WEBSITE

    @field_validator("theme")
    @classmethod
    def validate_theme(cls, v):
        if not v:
            return DEFAULT_THEME
        if v not in THEMES:
            raise ValueError('Theme must be either "light" or "dark"')
        return v

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> "OGImageParams":
        """
        Decode and validate raw query parameters.

        Raises:
            InvalidInputError: With the first failing rule as its message
        """
        decoded = {
            name: decode_html_entities(query[name])
            for name in ("title", "author", "website", "theme")
            if name in query
        }
        try:
            return cls(**decoded)
        except ValidationError as e:
            first = e.errors()[0]
            message = str(first.get("msg", "Invalid parameters")).removeprefix(_PYDANTIC_VALUE_ERROR_PREFIX)
            raise InvalidInputError(
                message,
                details={"field": ".".join(str(p) for p in first.get("loc", ()))},
            ) from e

    def key_fields(self) -> tuple[str, str, str, str]:
        """Ordered fields the cache key is built from."""
        return (self.title, self.author, self.website, self.theme)
