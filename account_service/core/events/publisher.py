"""Publish-or-persist helper for integration event producers.

Producers try the bus first. When the bus reports non-delivery (``False``)
or the publish raises, the envelope goes into the outbox together with the
routing key, and the outbox scheduler replays it once the broker is back.

This guarantees at-least-once delivery semantics.

Usage:
    from account_service.core.events import IntegrationEventPublisher

    publisher = IntegrationEventPublisher(event_bus, outbox)
    await publisher.publish(publisher.user_deleted(user))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from account_service.core.events.base import (
    ApplicationUpdateEvent,
    ChildUpdateEvent,
    EducatorUpdateEvent,
    FamilyUpdateEvent,
    HealthProfessionalUpdateEvent,
    InstitutionDeleteEvent,
    IntegrationEvent,
    UserDeleteEvent,
)
from account_service.core.exceptions import EventBusError, OutboxPersistenceError
from account_service.core.models import (
    Application,
    Child,
    Educator,
    Family,
    HealthProfessional,
    Institution,
    User,
)

if TYPE_CHECKING:
    from account_service.core.ports import EventBusPort, OutboxStore

logger = logging.getLogger(__name__)

_UPDATE_EVENTS: dict[type[User], type[IntegrationEvent]] = {
    Child: ChildUpdateEvent,
    Family: FamilyUpdateEvent,
    Educator: EducatorUpdateEvent,
    HealthProfessional: HealthProfessionalUpdateEvent,
    Application: ApplicationUpdateEvent,
}


class IntegrationEventPublisher:
    """Publishes envelopes, falling back to the outbox on non-delivery.

    Attributes:
        event_bus: Bus used for the direct publish attempt.
        outbox: Store receiving envelopes the bus did not confirm.
    """

    def __init__(self, event_bus: EventBusPort, outbox: OutboxStore) -> None:
        self.event_bus = event_bus
        self.outbox = outbox

    async def publish(self, event: IntegrationEvent, routing_key: str | None = None) -> bool:
        """Publish ``event`` or save it for a later replay.

        Args:
            event: Envelope to deliver.
            routing_key: Destination tag; defaults to the kind's canonical key.

        Returns:
            True if the bus confirmed delivery, False if the event was saved.

        Raises:
            OutboxPersistenceError: If the event could be neither delivered nor saved.
        """
        key = routing_key or event.default_routing_key
        try:
            if await self.event_bus.publish(event, key):
                logger.info(
                    "Published integration event",
                    extra={"event_name": event.event_name, "routing_key": key},
                )
                return True
        except EventBusError as exc:
            logger.warning(
                "Publish rejected, saving event to the outbox",
                extra={"event_name": event.event_name, "routing_key": key, "error": exc.detail},
            )
        except Exception:
            logger.exception(
                "Unexpected publish failure, saving event to the outbox",
                extra={"event_name": event.event_name, "routing_key": key},
            )

        try:
            record = await self.outbox.create(event.to_outbox_record(key))
        except OutboxPersistenceError:
            logger.exception(
                "Could not save undelivered event",
                extra={"event_name": event.event_name, "routing_key": key},
            )
            raise

        logger.info(
            "Saved undelivered event to the outbox",
            extra={"event_name": event.event_name, "routing_key": key, "outbox_id": record.id},
        )
        return False

    # ─────────────────────────────────────────────────────
    # Envelope builders
    # ─────────────────────────────────────────────────────
    @staticmethod
    def user_deleted(user: User) -> UserDeleteEvent:
        """Envelope announcing that any kind of user was removed."""
        return UserDeleteEvent(user=User.model_validate(user.model_dump()))

    @staticmethod
    def user_updated(user: User) -> IntegrationEvent:
        """Envelope announcing an update, with the kind chosen from the snapshot type.

        Raises:
            TypeError: If the snapshot is a plain ``User`` with no update kind.
        """
        event_class = _UPDATE_EVENTS.get(type(user))
        if event_class is None:
            raise TypeError(f"No update event for {type(user).__name__}")
        return event_class.model_validate({event_class.payload_field: user})

    @staticmethod
    def institution_deleted(institution: Institution) -> InstitutionDeleteEvent:
        """Envelope announcing that an institution was removed."""
        return InstitutionDeleteEvent(institution=institution)


__all__ = ["IntegrationEventPublisher"]
