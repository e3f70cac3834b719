#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
OG image cache gateway. Configuration is read once at startup; nothing in the
request path re-reads the environment.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Easy testing with override mechanisms
"""

from typing import Literal
from urllib.parse import urlparse

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

REDIS_URL_SCHEMES = ("redis", "rediss", "unix")


class CacheSettings(BaseSettings):
    """
    Two-tier cache configuration.

    DEFAULT_CACHE_TTL applies to trusted writes, to promotions from disk and
    to the age check of the persistent tier. SHORT_CACHE_TTL applies to
    untrusted writes, which never reach disk.
    """

    DEFAULT_CACHE_TTL: int = Field(default=86400, gt=0, description="Standard (trusted) TTL in seconds")
    SHORT_CACHE_TTL: int = Field(default=300, gt=0, description="Untrusted TTL in seconds")
    HTTP_CACHE_TTL: int = Field(default=86400, gt=0, description="Cache-Control max-age for trusted callers")
    IMAGE_CACHE_MAX_SIZE: int = Field(default=100, gt=0, description="Fast tier max entries")
    CACHE_DIR: str = Field(default="cache", description="Persistent tier directory")
    CACHE_SWEEP_INTERVAL: float = Field(default=7200, gt=0, description="Sweeper period in seconds")
    CACHE_WRITE_QUEUE_SIZE: int = Field(default=256, gt=0, description="Pending persistent writes")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Admission control configuration.

    Architectural Decision: backend chosen by configuration presence
    - RATE_LIMIT_REDIS_URL set: Redis sliding window (shared across instances)
    - otherwise: in-process fixed window
    """

    RATE_LIMIT_WINDOW_MS: int = Field(default=60000, gt=0, description="Admission window in milliseconds")
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=60, gt=0, description="Requests admitted per window")
    RATE_LIMIT_REDIS_URL: str | None = Field(default=None, description="Redis URL for the sliding window")
    RATE_LIMIT_PREFIX: str = Field(default="og-image-gen", description="Redis key prefix")
    RATE_LIMIT_SOCKET_TIMEOUT: float = Field(default=2.0, gt=0, description="Redis socket timeout in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    Architectural Decision: structlog for production-grade logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """General application settings."""

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="og-image-generator", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=3000, description="API port")
    ADMIN_TOKEN: str | None = Field(default=None, description="Bearer secret for cache administration")
    ALLOWED_ORIGINS: str = Field(default="", description="Comma-separated trusted referrer prefixes")
    PREWARM_SOURCE_URL: str | None = Field(default=None, description="Popular posts JSON for pre-warming")
    PREWARM_AUTHOR: str = Field(default="Anonymous", description="Author used for pre-warmed images")
    PREWARM_WEBSITE: str = Field(default="example.com", description="Website used for pre-warmed images")

    @property
    def allowed_origins(self) -> list[str]:
        """Trusted referrer prefixes as a list."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    Usage:
        from og_cache.core.config.settings import get_settings

        settings = get_settings()
        ttl = settings.cache.DEFAULT_CACHE_TTL
        window = settings.rate_limit.RATE_LIMIT_WINDOW_MS
    """

    # Cache settings
    DEFAULT_CACHE_TTL: int = Field(default=86400, gt=0, description="Standard (trusted) TTL in seconds")
    SHORT_CACHE_TTL: int = Field(default=300, gt=0, description="Untrusted TTL in seconds")
    HTTP_CACHE_TTL: int | None = Field(default=None, description="Cache-Control max-age for trusted callers")
    IMAGE_CACHE_MAX_SIZE: int = Field(default=100, gt=0, description="Fast tier max entries")
    CACHE_DIR: str = Field(default="cache", description="Persistent tier directory")
    CACHE_SWEEP_INTERVAL: float = Field(default=7200, gt=0, description="Sweeper period in seconds")
    CACHE_WRITE_QUEUE_SIZE: int = Field(default=256, gt=0, description="Pending persistent writes")

    # Rate limiting settings
    RATE_LIMIT_WINDOW_MS: int = Field(default=60000, gt=0, description="Admission window in milliseconds")
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=60, gt=0, description="Requests admitted per window")
    RATE_LIMIT_REDIS_URL: str | None = Field(default=None, description="Redis URL for the sliding window")
    RATE_LIMIT_PREFIX: str = Field(default="og-image-gen", description="Redis key prefix")
    RATE_LIMIT_SOCKET_TIMEOUT: float = Field(default=2.0, gt=0, description="Redis socket timeout in seconds")

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="og-image-generator", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=3000, description="API port")
    ADMIN_TOKEN: str | None = Field(default=None, description="Bearer secret for cache administration")
    ALLOWED_ORIGINS: str = Field(default="", description="Comma-separated trusted referrer prefixes")
    PREWARM_SOURCE_URL: str | None = Field(default=None, description="Popular posts JSON for pre-warming")
    PREWARM_AUTHOR: str = Field(default="Anonymous", description="Author used for pre-warmed images")
    PREWARM_WEBSITE: str = Field(default="example.com", description="Website used for pre-warmed images")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("RATE_LIMIT_REDIS_URL", "ADMIN_TOKEN", "PREWARM_SOURCE_URL", mode="before")
    @classmethod
    def blank_as_unset(cls, v):
        """Treat empty environment values as absent."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("RATE_LIMIT_REDIS_URL")
    @classmethod
    def validate_redis_url(cls, v):
        """A configured backend URL must be usable; a typo must not silently select the fallback."""
        if v is None:
            return v
        parsed = urlparse(v)
        if parsed.scheme not in REDIS_URL_SCHEMES:
            raise ValueError(f"RATE_LIMIT_REDIS_URL scheme must be one of {list(REDIS_URL_SCHEMES)}")
        if parsed.scheme != "unix" and not parsed.hostname:
            raise ValueError("RATE_LIMIT_REDIS_URL must include a host")
        return v

    @model_validator(mode="after")
    def default_http_cache_ttl(self):
        """Browser/CDN max-age follows the standard TTL unless configured."""
        if self.HTTP_CACHE_TTL is None:
            self.HTTP_CACHE_TTL = self.DEFAULT_CACHE_TTL
        return self

    # Nested configuration objects
    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            DEFAULT_CACHE_TTL=self.DEFAULT_CACHE_TTL,
            SHORT_CACHE_TTL=self.SHORT_CACHE_TTL,
            HTTP_CACHE_TTL=self.HTTP_CACHE_TTL,
            IMAGE_CACHE_MAX_SIZE=self.IMAGE_CACHE_MAX_SIZE,
            CACHE_DIR=self.CACHE_DIR,
            CACHE_SWEEP_INTERVAL=self.CACHE_SWEEP_INTERVAL,
            CACHE_WRITE_QUEUE_SIZE=self.CACHE_WRITE_QUEUE_SIZE,
        )

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return RateLimitSettings(
            RATE_LIMIT_WINDOW_MS=self.RATE_LIMIT_WINDOW_MS,
            RATE_LIMIT_MAX_REQUESTS=self.RATE_LIMIT_MAX_REQUESTS,
            RATE_LIMIT_REDIS_URL=self.RATE_LIMIT_REDIS_URL,
            RATE_LIMIT_PREFIX=self.RATE_LIMIT_PREFIX,
            RATE_LIMIT_SOCKET_TIMEOUT=self.RATE_LIMIT_SOCKET_TIMEOUT,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(
            LOG_LEVEL=self.LOG_LEVEL,
            LOG_FORMAT=self.LOG_FORMAT,
        )

    @property
    def app(self) -> ApplicationSettings:
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
            ADMIN_TOKEN=self.ADMIN_TOKEN,
            ALLOWED_ORIGINS=self.ALLOWED_ORIGINS,
            PREWARM_SOURCE_URL=self.PREWARM_SOURCE_URL,
            PREWARM_AUTHOR=self.PREWARM_AUTHOR,
            PREWARM_WEBSITE=self.PREWARM_WEBSITE,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
