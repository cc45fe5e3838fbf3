"""Event bus over two independent RabbitMQ connections.

``EventBus.publish`` never raises for a missing connection: it returns
False straight away so producers know to save the event to the outbox.
Once connected, broker errors surface as ``PublishRejectedError``.

Usage:
    bus = EventBus()
    await bus.connection_pub.try_connect(0, 1500)
    delivered = await bus.publish(event, "users.delete")
    await bus.dispose()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any

from account_service.core.exceptions import DisposalError, PublishRejectedError
from account_service.core.settings import get_rabbit_settings
from account_service.infra.messaging.broker import build_exchange, build_queue, create_rabbit_broker
from account_service.infra.messaging.connection import ConnectionManager
from account_service.infra.metrics.prometheus import (
    eventbus_messages_consumed_total,
    eventbus_publish_total,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from account_service.core.events.base import IntegrationEvent
    from account_service.core.ports import EventHandler
    from account_service.core.settings.rabbit import RabbitSettings

logger = logging.getLogger(__name__)

PUBLISH = "publish"
SUBSCRIBE = "subscribe"


@dataclass(frozen=True, slots=True)
class EventSubscription:
    """An inbound consumer: events named ``event_name`` bound by ``routing_key``."""

    event_name: str
    routing_key: str
    handler: EventHandler
    queue: str | None = None


class EventBus:
    """Publish/subscribe facade over a pair of ConnectionManagers.

    Attributes:
        connection_pub: Connection used for publishing.
        connection_sub: Connection used by consumers.
    """

    def __init__(
        self,
        rabbit_settings: RabbitSettings | None = None,
        *,
        health_check_interval: float = 5.0,
        broker_factory: Callable[[str], Any] | None = None,
    ) -> None:
        """Initialize the bus without connecting.

        Args:
            rabbit_settings: RabbitMQ settings; loaded from the environment when omitted.
            health_check_interval: Seconds between liveness probes of each connection.
            broker_factory: Builds an unconnected broker for a direction. Defaults to
                ``create_rabbit_broker``.
        """
        self._settings = rabbit_settings or get_rabbit_settings()
        self._broker_factory = broker_factory or (
            lambda direction: create_rabbit_broker(self._settings, direction=direction)
        )
        self._exchange = build_exchange(self._settings)
        self._subscriptions: dict[tuple[str, str], EventSubscription] = {}
        self._connect_timeout = self._settings.connection_timeout
        self.connection_pub = ConnectionManager(
            PUBLISH, self._connect_publisher, health_check_interval=health_check_interval
        )
        self.connection_sub = ConnectionManager(
            SUBSCRIBE, self._connect_subscriber, health_check_interval=health_check_interval
        )

    @property
    def subscriptions(self) -> list[EventSubscription]:
        return list(self._subscriptions.values())

    async def publish(self, event: IntegrationEvent, routing_key: str) -> bool:
        """Publish an envelope to the exchange.

        Returns:
            False without any I/O when the publish connection is down,
            True once the broker accepted the message.

        Raises:
            PublishRejectedError: If the broker was reachable but the send failed.
        """
        broker = self.connection_pub.broker
        if broker is None:
            eventbus_publish_total.labels(result="disconnected").inc()
            return False

        try:
            await broker.publish(
                event.to_json(),
                exchange=self._exchange,
                routing_key=routing_key,
                message_id=event.message_id,
                timestamp=event.timestamp,
                persist=True,
            )
        except Exception as exc:
            eventbus_publish_total.labels(result="rejected").inc()
            raise PublishRejectedError(
                detail=f"Publishing {event.event_name} failed: {exc}",
                extra={"event_name": event.event_name, "routing_key": routing_key},
            ) from exc

        eventbus_publish_total.labels(result="published").inc()
        logger.debug(
            "Event published",
            extra={"event_name": event.event_name, "routing_key": routing_key},
        )
        return True

    async def subscribe(
        self,
        event_name: str,
        routing_key: str,
        handler: EventHandler,
        queue: str | None = None,
    ) -> None:
        """Register an inbound consumer.

        Idempotent per ``(event_name, routing_key)``. Consumers are declared
        whenever the subscribe connection (re)connects, so a live connection
        is cycled to pick up the new one.
        """
        key = (event_name, routing_key)
        if key in self._subscriptions:
            return

        self._subscriptions[key] = EventSubscription(event_name, routing_key, handler, queue)
        logger.info(
            "Subscription registered",
            extra={"event_name": event_name, "routing_key": routing_key},
        )
        if self.connection_sub.is_connected:
            await self.connection_sub.reconnect()

    async def dispose(self) -> None:
        """Close both directions.

        Idempotent and safe if never connected. A failure closing one
        direction does not keep the other open.

        Raises:
            DisposalError: Wrapping the first close failure.
        """
        errors: list[Exception] = []
        for connection in (self.connection_pub, self.connection_sub):
            try:
                await connection.close()
            except Exception as exc:
                logger.exception("Error closing broker connection", extra={"direction": connection.name})
                errors.append(exc)

        if errors:
            raise DisposalError(
                detail=f"Error disposing event bus: {errors[0]}",
                extra={"errors": [str(error) for error in errors]},
            ) from errors[0]

    # ─────────────────────────────────────────────────────
    # Connectors
    # ─────────────────────────────────────────────────────
    async def _connect_publisher(self) -> Any:
        broker = self._broker_factory(PUBLISH)
        await self._open(broker, broker.connect)
        return broker

    async def _connect_subscriber(self) -> Any:
        broker = self._broker_factory(SUBSCRIBE)
        for subscription in self._subscriptions.values():
            queue = build_queue(subscription.routing_key, subscription.queue, self._settings)
            broker.subscriber(queue, self._exchange)(self._consumer(subscription))
        await self._open(broker, broker.start)
        return broker

    async def _open(self, broker: Any, opener: Callable[[], Any]) -> None:
        try:
            await asyncio.wait_for(opener(), timeout=self._connect_timeout)
        except BaseException:
            try:
                await broker.close()
            except Exception:
                logger.debug("Error closing half-open broker", exc_info=True)
            raise

    @staticmethod
    def _consumer(subscription: EventSubscription) -> Callable[[dict[str, Any]], Any]:
        async def consume(body: dict[str, Any]) -> None:
            try:
                await subscription.handler(body)
            except Exception:
                eventbus_messages_consumed_total.labels(
                    event_name=subscription.event_name, result="error"
                ).inc()
                logger.exception(
                    "Integration event handler failed",
                    extra={
                        "event_name": subscription.event_name,
                        "routing_key": subscription.routing_key,
                    },
                )
                raise
            eventbus_messages_consumed_total.labels(
                event_name=subscription.event_name, result="success"
            ).inc()

        consume.__name__ = f"consume_{subscription.event_name}"
        return consume


__all__ = ["EventBus", "EventSubscription"]
