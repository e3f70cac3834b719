#!/usr/bin/env python3
"""
Application Startup Script

Prints the effective cache and admission configuration, then starts the
FastAPI application under uvicorn.

Usage:
    python start_app.py
"""

import sys

from og_cache.core.config.settings import get_settings
from og_cache.core.exceptions import ConfigurationError


def main():
    """Start the application after showing its configuration."""

    print("=" * 60)
    print("OG Image Cache Gateway - Startup")
    print("=" * 60)
    print()

    try:
        settings = get_settings()
    except (ValueError, ConfigurationError) as e:
        print(f"[X] Invalid configuration: {e}")
        sys.exit(1)

    admission = "redis sliding window" if settings.RATE_LIMIT_REDIS_URL else "in-memory fixed window"
    print(f"Environment:      {settings.app.ENVIRONMENT}")
    print(f"Cache directory:  {settings.cache.CACHE_DIR}")
    print(f"Fast tier size:   {settings.cache.IMAGE_CACHE_MAX_SIZE}")
    print(f"TTL (std/short):  {settings.cache.DEFAULT_CACHE_TTL}s / {settings.cache.SHORT_CACHE_TTL}s")
    print(f"Admission:        {admission}")
    print(f"Admin API:        {'enabled' if settings.app.ADMIN_TOKEN else 'disabled (no ADMIN_TOKEN)'}")
    print()
    print("=" * 60)
    print()

    import uvicorn

    uvicorn.run(
        "og_cache.application.app:app",
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
