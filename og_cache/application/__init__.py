"""FastAPI application for the OG image cache gateway."""
