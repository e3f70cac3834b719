"""Admission control for the render endpoint."""

from og_cache.rate_limiting.rate_limiter import (
    AdmissionController,
    AdmissionDecision,
    FixedWindowRateLimiter,
    SlidingWindowRateLimiter,
    create_admission_controller,
    get_client_identity,
)

__all__ = [
    "AdmissionController",
    "AdmissionDecision",
    "FixedWindowRateLimiter",
    "SlidingWindowRateLimiter",
    "create_admission_controller",
    "get_client_identity",
]
