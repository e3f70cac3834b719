"""
Configuration Module

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants, enums, and header names

Usage:
------
```python
from og_cache.core.config import get_settings
from og_cache.core.config.constants import CacheStatus, Stage

settings = get_settings()
standard_ttl = settings.cache.DEFAULT_CACHE_TTL
```

Environment Variables:
---------------------
```bash
DEFAULT_CACHE_TTL=86400
SHORT_CACHE_TTL=300
IMAGE_CACHE_MAX_SIZE=100
RATE_LIMIT_WINDOW_MS=60000
RATE_LIMIT_MAX_REQUESTS=60
RATE_LIMIT_REDIS_URL=redis://localhost:6379/0   # optional, selects the sliding window
ADMIN_TOKEN=change-me
```

Settings are validated once at startup; an invalid value (unknown log level,
non-positive TTL, malformed Redis URL) raises before the app serves traffic.
"""

from .settings import Settings, get_settings, reload_settings

__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
]
