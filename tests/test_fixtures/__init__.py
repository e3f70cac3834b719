"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .cache_factory import SHORT_TTL, STANDARD_TTL, CacheTestFactory, CountingRenderer

__all__ = ["CacheTestFactory", "CountingRenderer", "SHORT_TTL", "STANDARD_TTL"]
