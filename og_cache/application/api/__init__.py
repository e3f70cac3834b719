"""API layer: routes, request/response models, dependencies and middleware."""
