"""FastAPI application: lifespan wiring plus health and metrics endpoints."""
