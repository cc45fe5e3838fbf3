"""Integration events: closed kinds, typed envelopes and reconstruction.

Usage:
    from account_service.core.events import (
        EventKind,
        UserDeleteEvent,
        IntegrationEventPublisher,
        event_registry,
    )

    event = UserDeleteEvent(user=User(id="5a62be07", username="jdoe"))
    await IntegrationEventPublisher(event_bus, outbox).publish(event)

    # Rebuild from a stored outbox payload
    result = event_registry.reconstruct(record.payload)
"""

from account_service.core.events.base import (
    OUTBOX_OPERATION_KEY,
    OUTBOX_ROUTING_KEY,
    PUBLISH_OPERATION,
    ApplicationUpdateEvent,
    ChildUpdateEvent,
    EducatorUpdateEvent,
    FamilyUpdateEvent,
    HealthProfessionalUpdateEvent,
    InstitutionDeleteEvent,
    IntegrationEvent,
    UserDeleteEvent,
    format_timestamp,
)
from account_service.core.events.kinds import EventKind
from account_service.core.events.publisher import IntegrationEventPublisher
from account_service.core.events.registry import (
    EventRegistry,
    UnrecognizedEvent,
    build_default_registry,
    event_registry,
)

__all__ = [
    "OUTBOX_OPERATION_KEY",
    "OUTBOX_ROUTING_KEY",
    "PUBLISH_OPERATION",
    "ApplicationUpdateEvent",
    "ChildUpdateEvent",
    "EducatorUpdateEvent",
    "EventKind",
    "EventRegistry",
    "FamilyUpdateEvent",
    "HealthProfessionalUpdateEvent",
    "InstitutionDeleteEvent",
    "IntegrationEvent",
    "IntegrationEventPublisher",
    "UnrecognizedEvent",
    "UserDeleteEvent",
    "build_default_registry",
    "event_registry",
    "format_timestamp",
]
