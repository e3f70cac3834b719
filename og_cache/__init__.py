"""
OG image cache gateway.

A two-tier artifact cache (bounded in-memory fast tier, durable on-disk
persistent tier) and an admission controller in front of an expensive
image renderer.
"""

__version__ = "1.0.0"
