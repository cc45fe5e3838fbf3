"""Health check API endpoint.

``GET /health`` always answers 200 so a broker outage does not get the pod
restarted; the ``status`` field carries healthy or degraded.
"""

from __future__ import annotations

from fastapi import APIRouter

from account_service.features.health.schemas import HealthResponse
from account_service.features.health.service import check_health

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Event bus and outbox health",
)
async def health_check() -> HealthResponse:
    """Connection state of both bus directions plus the outbox backlog."""
    return await check_health()
