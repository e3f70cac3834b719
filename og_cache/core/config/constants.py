"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the OG image cache gateway.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state management
- Easy to update and track changes
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Request processing stages used as the ``stage`` field of log entries.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}

    Examples:
        log_stage(logger, Stage.FAST_TIER_LOOKUP, "Fast tier hit", cache_key=key)
    """

    # Main request lifecycle
    INITIALIZATION = "0.0_INITIALIZATION"
    REQUEST_VALIDATION = "1.0_REQUEST_VALIDATION"
    ADMISSION = "2.0_ADMISSION_CONTROL"
    CACHE_LOOKUP = "3.0_CACHE_LOOKUP"
    FAST_TIER_LOOKUP = "3.1_FAST_TIER_LOOKUP"
    PERSISTENT_TIER_LOOKUP = "3.2_PERSISTENT_TIER_LOOKUP"
    CACHE_STORE = "3.3_CACHE_STORE"
    CACHE_INVALIDATION = "3.4_CACHE_INVALIDATION"
    RENDER = "4.0_RENDER"
    CLEANUP = "5.0_CLEANUP"

    # Background tasks
    SWEEP = "S_CACHE_SWEEP"
    PERSISTENT_WRITE = "W_PERSISTENT_WRITE"
    WARMING = "P_CACHE_PREWARM"


# ============================================================================
# Cache Tiers / Provenance
# ============================================================================


class CacheSource(str, Enum):
    """
    Tier that served a cache lookup.

    FAST: bounded in-memory tier
    PERSISTENT: on-disk tier (entry promoted into FAST on the way out)
    """

    FAST = "fast"
    PERSISTENT = "persistent"


class CacheStatus(str, Enum):
    """Value of the ``X-Cache-Status`` response header."""

    HIT_FAST = "HIT-FAST"
    HIT_PERSISTENT = "HIT-PERSISTENT"
    MISS = "MISS"


class AdmissionBackend(str, Enum):
    """Admission controller strategies."""

    SLIDING_WINDOW = "sliding_window"
    FIXED_WINDOW = "fixed_window"


# ============================================================================
# Cache Key / Persistent Tier Format
# ============================================================================

CACHE_KEY_SEPARATOR = "-"

# Current on-disk format first, legacy format second
PERSISTENT_EXTENSION = ".jpg"
LEGACY_PERSISTENT_EXTENSION = ".png"
PERSISTENT_EXTENSIONS = (".png", ".jpg", ".jpeg")

# ============================================================================
# Artifact Defaults
# ============================================================================

ARTIFACT_CONTENT_TYPE = "image/jpeg"
ARTIFACT_WIDTH = 1200
ARTIFACT_HEIGHT = 630

DEFAULT_AUTHOR = "Anonymous"
DEFAULT_WEBSITE = "example.com"
DEFAULT_THEME = "light"
THEMES = ("light", "dark")

TITLE_MAX_LENGTH = 200
AUTHOR_MAX_LENGTH = 100
WEBSITE_MAX_LENGTH = 100

# Popular posts taken from each pre-warm list (daily, monthly, yearly)
PREWARM_POSTS_PER_LIST = 5

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_CACHE_STATUS = "X-Cache-Status"
HEADER_CACHE_KEY = "X-Cache-Key"
HEADER_AUTHORIZED = "X-Authorized"
HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_RESET = "X-RateLimit-Reset"

# ============================================================================
# Redis Key Prefixes
# ============================================================================

REDIS_KEY_RATE_LIMIT = "ratelimit"
