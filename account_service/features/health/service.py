"""Builds the health report from the running event bus task."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from account_service.core.settings import get_app_settings
from account_service.features.health.schemas import EventBusHealth, HealthResponse, OutboxHealth
from account_service.infra.events.outbox import get_event_bus_task, get_outbox_store

if TYPE_CHECKING:
    from account_service.core.ports import ConnectionPort, OutboxStore

logger = logging.getLogger(__name__)

DISABLED = "disabled"


def _connection_state(connection: ConnectionPort) -> str:
    state = getattr(connection, "state", None)
    if state is not None:
        return str(state)
    return "connected" if connection.is_connected else "disconnected"


async def _pending(outbox: OutboxStore) -> int | None:
    try:
        return await outbox.count()
    except Exception:
        logger.warning("Outbox count failed during health check", exc_info=True)
        return None


async def check_health() -> HealthResponse:
    """Report bus connectivity and outbox backlog.

    ``healthy`` only when both directions are connected; a stopped or
    disabled event bus reports ``degraded``.
    """
    app = get_app_settings()
    task = get_event_bus_task()

    if task is None:
        eventbus = EventBusHealth(publish=DISABLED, subscribe=DISABLED)
        outbox = get_outbox_store()
        healthy = False
    else:
        bus = task.event_bus
        eventbus = EventBusHealth(
            publish=_connection_state(bus.connection_pub),
            subscribe=_connection_state(bus.connection_sub),
        )
        outbox = task.outbox
        healthy = bus.connection_pub.is_connected and bus.connection_sub.is_connected

    return HealthResponse(
        status="healthy" if healthy else "degraded",
        service=app.service_name,
        version=app.version,
        eventbus=eventbus,
        outbox=OutboxHealth(pending=await _pending(outbox)),
    )
