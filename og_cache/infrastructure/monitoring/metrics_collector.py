#!/usr/bin/env python3
"""
Metrics Collector with Prometheus Integration

This module provides metrics for the cache and admission subsystem:
- Cache lookups by serving tier
- Cache stores by trust tier
- Persistent write failures and dropped writes
- Sweeper expirations and size evictions
- Admission decisions and backend errors
- Render latency

Architectural Decision: prometheus-client for industry-standard metrics
"""


from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from og_cache.core.config.settings import get_settings
from og_cache.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Metric Definitions
# ============================================================================

# Cache metrics
CACHE_LOOKUPS = Counter(
    'og_cache_lookups_total',
    'Cache lookups by result',
    ['result']  # fast, persistent, miss
)

CACHE_STORES = Counter(
    'og_cache_stores_total',
    'Cache writes by caller trust tier',
    ['trust']  # trusted, untrusted
)

FAST_TIER_SIZE = Gauge(
    'og_cache_fast_tier_entries',
    'Entries currently held by the fast tier'
)

PERSISTENT_WRITE_FAILURES = Counter(
    'og_cache_persistent_write_failures_total',
    'Persistent tier writes that failed or were dropped',
    ['reason']  # io_error, queue_full
)

SWEEP_REMOVALS = Counter(
    'og_cache_sweep_removals_total',
    'Fast tier entries removed by the sweeper',
    ['reason']  # expired, evicted
)

RENDERS_COALESCED = Counter(
    'og_cache_renders_coalesced_total',
    'Concurrent misses served by an in-flight render'
)

RENDER_DURATION = Histogram(
    'og_render_duration_seconds',
    'External render duration',
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0)
)

# Admission metrics
ADMISSION_DECISIONS = Counter(
    'og_admission_decisions_total',
    'Admission decisions by outcome',
    ['backend', 'outcome']  # admitted, rejected
)

ADMISSION_BACKEND_ERRORS = Counter(
    'og_admission_backend_errors_total',
    'Distributed admission backend failures (request admitted)'
)

# Error metrics
ERRORS = Counter(
    'og_errors_total',
    'Total errors by type',
    ['error_type', 'stage']
)

# App info
APP_INFO = Info(
    'og_app',
    'Application information'
)


class MetricsCollector:
    """
    Centralized metrics collector.

    Usage:
        metrics = get_metrics_collector()
        metrics.record_cache_lookup("fast")
        output = metrics.get_prometheus_metrics()
    """

    def __init__(self):
        """Initialize metrics collector."""
        self.settings = get_settings()

        APP_INFO.info({
            'version': self.settings.app.APP_VERSION,
            'environment': self.settings.app.ENVIRONMENT,
            'app_name': self.settings.app.APP_NAME
        })

        logger.info("Metrics collector initialized")

    # =========================================================================
    # Cache Metrics
    # =========================================================================

    def record_cache_lookup(self, result: str) -> None:
        """Record a lookup served by ``fast``/``persistent`` or a ``miss``."""
        CACHE_LOOKUPS.labels(result=result).inc()

    def record_cache_store(self, trusted: bool) -> None:
        """Record a cache write."""
        CACHE_STORES.labels(trust="trusted" if trusted else "untrusted").inc()

    def set_fast_tier_size(self, size: int) -> None:
        """Set fast tier entry gauge."""
        FAST_TIER_SIZE.set(size)

    def record_persistent_write_failure(self, reason: str) -> None:
        """Record failed or dropped persistent write."""
        PERSISTENT_WRITE_FAILURES.labels(reason=reason).inc()

    def record_sweep(self, expired: int, evicted: int) -> None:
        """Record one sweeper pass."""
        if expired:
            SWEEP_REMOVALS.labels(reason="expired").inc(expired)
        if evicted:
            SWEEP_REMOVALS.labels(reason="evicted").inc(evicted)

    def record_render_coalesced(self) -> None:
        """Record a miss that joined an in-flight render."""
        RENDERS_COALESCED.inc()

    def record_render_duration(self, duration_seconds: float) -> None:
        """Record render latency."""
        RENDER_DURATION.observe(duration_seconds)

    # =========================================================================
    # Admission Metrics
    # =========================================================================

    def record_admission(self, backend: str, admitted: bool) -> None:
        """Record an admission decision."""
        ADMISSION_DECISIONS.labels(
            backend=backend, outcome="admitted" if admitted else "rejected"
        ).inc()

    def record_admission_backend_error(self) -> None:
        """Record a distributed backend failure."""
        ADMISSION_BACKEND_ERRORS.inc()

    # =========================================================================
    # Error Metrics
    # =========================================================================

    def record_error(self, error_type: str, stage: str) -> None:
        """Record error."""
        ERRORS.labels(error_type=error_type, stage=stage).inc()

    # =========================================================================
    # Export
    # =========================================================================

    def get_prometheus_metrics(self) -> bytes:
        """Get Prometheus text format metrics."""
        return generate_latest(REGISTRY)

    def get_content_type(self) -> str:
        """Get Prometheus content type."""
        return CONTENT_TYPE_LATEST


# Global metrics collector
_metrics: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
