"""Router registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from account_service.features.health.router import router as health_router
from account_service.features.metrics.router import router as metrics_router

if TYPE_CHECKING:
    from fastapi import FastAPI


def setup_routers(app: FastAPI) -> None:
    """Attach the health and metrics endpoints."""
    app.include_router(health_router)
    # No prefix: scraped at /metrics
    app.include_router(metrics_router)
