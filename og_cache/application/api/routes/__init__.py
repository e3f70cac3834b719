"""HTTP routes: image endpoint, cache administration, health and metrics."""
