"""
Monitoring Module

Prometheus metrics for the cache and admission subsystem.
"""

from .metrics_collector import MetricsCollector, get_metrics_collector

__all__ = [
    "MetricsCollector",
    "get_metrics_collector",
]
