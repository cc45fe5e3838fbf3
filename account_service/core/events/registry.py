"""Event kind registry for reconstructing envelopes from stored records.

The registry maps each ``EventKind`` to its envelope class and turns a raw
outbox payload back into a typed envelope. Anything it cannot rebuild comes
back as an ``UnrecognizedEvent`` carrying the raw payload and the reason, so
callers get a countable outcome instead of an exception.

Usage:
    from account_service.core.events import event_registry

    result = event_registry.reconstruct(record.payload)
    if isinstance(result, UnrecognizedEvent):
        logger.warning("Skipping record", extra={"reason": result.reason})
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import ValidationError

from account_service.core.events.base import (
    OUTBOX_OPERATION_KEY,
    OUTBOX_ROUTING_KEY,
    ApplicationUpdateEvent,
    ChildUpdateEvent,
    EducatorUpdateEvent,
    FamilyUpdateEvent,
    HealthProfessionalUpdateEvent,
    InstitutionDeleteEvent,
    IntegrationEvent,
    UserDeleteEvent,
)
from account_service.core.events.kinds import EventKind
from account_service.core.exceptions import UnknownEventKindError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=IntegrationEvent)


@dataclass(frozen=True, slots=True)
class UnrecognizedEvent:
    """A stored payload that could not be turned into an envelope.

    Attributes:
        raw: The payload exactly as stored.
        reason: Why reconstruction failed.
        event_name: The discriminant found in the payload, if any.
        errors: Pydantic validation errors when the payload itself was
            rejected; empty for every other reason.
    """

    raw: Any
    reason: str
    event_name: str | None = None
    errors: list[dict[str, Any]] = field(default_factory=list)


class EventRegistry:
    """Registry of envelope classes keyed by event kind.

    Registration happens at import time; lookups are read-only afterwards.
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._events: dict[EventKind, type[IntegrationEvent]] = {}

    def register(self, event_class: type[T]) -> type[T]:
        """Register an envelope class. Usable as a decorator.

        Raises:
            ValueError: If another class is already registered for the kind.
        """
        kind = event_class.kind
        existing = self._events.get(kind)
        if existing is not None and existing is not event_class:
            raise ValueError(
                f"Event kind '{kind}' already registered with {existing.__name__}"
            )
        self._events[kind] = event_class
        logger.debug(
            "Registered event kind",
            extra={"event_name": str(kind), "class": event_class.__name__},
        )
        return event_class

    def get(self, event_name: object) -> type[IntegrationEvent] | None:
        """Get the envelope class for an event name, or ``None``."""
        kind = EventKind.parse(event_name)
        if kind is None:
            return None
        return self._events.get(kind)

    def get_or_raise(self, event_name: object) -> type[IntegrationEvent]:
        """Get the envelope class for an event name.

        Raises:
            UnknownEventKindError: If the name is not a registered kind.
        """
        event_class = self.get(event_name)
        if event_class is None:
            raise UnknownEventKindError(event_name)
        return event_class

    def reconstruct(self, payload: Any) -> IntegrationEvent | UnrecognizedEvent:
        """Rebuild a typed envelope from a stored outbox payload.

        The payload must carry a known ``event_name``, a non-empty
        ``__routing_key`` and a snapshot that validates against the kind's
        model. Control fields are stripped before validation.
        """
        if not isinstance(payload, dict):
            return UnrecognizedEvent(raw=payload, reason="payload is not a JSON object")

        event_name = payload.get("event_name")
        name = event_name if isinstance(event_name, str) else None
        if event_name is None:
            return UnrecognizedEvent(raw=payload, reason="missing event_name")

        event_class = self.get(event_name)
        if event_class is None:
            return UnrecognizedEvent(
                raw=payload,
                reason=f"unknown event_name {event_name!r}",
                event_name=name,
            )

        routing_key = payload.get(OUTBOX_ROUTING_KEY)
        if not isinstance(routing_key, str) or not routing_key:
            return UnrecognizedEvent(raw=payload, reason="missing routing key", event_name=name)

        if not isinstance(payload.get(event_class.payload_field), dict):
            return UnrecognizedEvent(
                raw=payload,
                reason=f"missing '{event_class.payload_field}' payload",
                event_name=name,
            )

        data = {
            key: value
            for key, value in payload.items()
            if key not in {OUTBOX_OPERATION_KEY, OUTBOX_ROUTING_KEY}
        }
        try:
            return event_class.model_validate(data)
        except ValidationError as exc:
            return UnrecognizedEvent(
                raw=payload,
                reason="invalid payload",
                event_name=name,
                errors=exc.errors(include_url=False, include_context=False),
            )

    def list_types(self) -> list[str]:
        """List all registered event names."""
        return [str(kind) for kind in self._events]

    def __contains__(self, event_name: object) -> bool:
        """Check if an event name is registered."""
        return self.get(event_name) is not None

    def __len__(self) -> int:
        """Get total number of registered event kinds."""
        return len(self._events)

    def clear(self) -> None:
        """Clear all registrations (mainly for testing)."""
        self._events.clear()


def build_default_registry() -> EventRegistry:
    """Create a registry holding every known event kind."""
    registry = EventRegistry()
    for event_class in (
        UserDeleteEvent,
        ChildUpdateEvent,
        FamilyUpdateEvent,
        EducatorUpdateEvent,
        HealthProfessionalUpdateEvent,
        ApplicationUpdateEvent,
        InstitutionDeleteEvent,
    ):
        registry.register(event_class)
    return registry


# Global registry instance
event_registry = build_default_registry()


__all__ = ["EventRegistry", "UnrecognizedEvent", "build_default_registry", "event_registry"]
