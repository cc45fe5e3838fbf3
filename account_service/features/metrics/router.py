"""Prometheus scrape endpoint.

Prometheus configuration example:
    scrape_configs:
      - job_name: 'account-service'
        static_configs:
          - targets: ['localhost:3000']
        metrics_path: '/metrics'
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from account_service.infra.metrics.prometheus import REGISTRY

router = APIRouter(tags=["observability"])


@router.get("/metrics")
async def metrics() -> Response:
    """Expose event bus and outbox metrics in the Prometheus text format."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
