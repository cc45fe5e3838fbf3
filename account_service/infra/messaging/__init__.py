"""RabbitMQ messaging: broker factory, self-healing connections and the event bus."""

from account_service.infra.messaging.broker import (
    build_exchange,
    build_queue,
    create_rabbit_broker,
)
from account_service.infra.messaging.connection import ConnectionManager, ConnectionState
from account_service.infra.messaging.event_bus import EventBus, EventSubscription

__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "EventBus",
    "EventSubscription",
    "build_exchange",
    "build_queue",
    "create_rabbit_broker",
]
