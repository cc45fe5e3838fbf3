"""RabbitMQ broker factory using FastStream.

Every call builds a fresh, unconnected ``RabbitBroker``. The publish and
subscribe directions each own one, and a reconnect always starts from a new
instance so consumers are declared again on the new connection.
"""

from __future__ import annotations

import logging
import ssl
from typing import TYPE_CHECKING
from urllib.parse import quote

from faststream.rabbit import ExchangeType, RabbitBroker, RabbitExchange, RabbitQueue
from faststream.security import BaseSecurity

from account_service.core.settings import get_rabbit_settings

if TYPE_CHECKING:
    from account_service.core.settings.rabbit import RabbitSettings

logger = logging.getLogger(__name__)


def build_connection_url(settings: RabbitSettings, direction: str | None = None) -> str:
    """AMQP URL with heartbeat and connection name as aio-pika query options."""
    name = settings.connection_name
    if direction:
        name = f"{name}.{direction}"
    return f"{settings.get_url()}?heartbeat={settings.heartbeat}&name={quote(name, safe='')}"


def create_rabbit_broker(
    settings: RabbitSettings | None = None,
    *,
    direction: str | None = None,
) -> RabbitBroker:
    """Create an unconnected FastStream broker for one connection direction.

    Args:
        settings: RabbitMQ settings; loaded from the environment when omitted.
        direction: ``publish`` or ``subscribe``, appended to the connection name
            shown in the RabbitMQ management UI.

    Raises:
        ValueError: If RabbitMQ is disabled.
    """
    settings = settings or get_rabbit_settings()

    security = None
    if settings.ssl_enabled:
        security = BaseSecurity(ssl_context=ssl.create_default_context(cafile=settings.ssl_ca_file))

    logger.debug(
        "Creating RabbitMQ broker",
        extra={"host": settings.host, "port": settings.port, "direction": direction},
    )
    return RabbitBroker(
        build_connection_url(settings, direction),
        security=security,
        logger=logger,
    )


def build_exchange(settings: RabbitSettings | None = None) -> RabbitExchange:
    """Durable exchange integration events are published to."""
    settings = settings or get_rabbit_settings()
    return RabbitExchange(
        name=settings.exchange_name,
        type=ExchangeType(settings.exchange_type),
        durable=True,
        auto_delete=False,
    )


def build_queue(
    routing_key: str,
    queue_name: str | None = None,
    settings: RabbitSettings | None = None,
) -> RabbitQueue:
    """Durable consumer queue bound with ``routing_key``.

    The queue name defaults to the routing key under the service prefix.
    """
    settings = settings or get_rabbit_settings()
    return RabbitQueue(
        name=queue_name or settings.get_prefixed_queue(routing_key),
        durable=True,
        auto_delete=False,
        routing_key=routing_key,
    )


__all__ = ["build_connection_url", "build_exchange", "build_queue", "create_rabbit_broker"]
