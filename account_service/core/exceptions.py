"""Custom exception classes for the account service event pipeline."""

from __future__ import annotations

from typing import Any


class AccountServiceError(Exception):
    """Base account service exception.

    All custom exceptions should inherit from this class.

    Attributes:
        detail: Human-readable error message.
        type: Error type identifier (stable, machine friendly).
        extra: Additional context-specific information about the error.

    Example:
            raise AccountServiceError(
            detail="Outbox query failed",
            type="outbox-query-failed",
            extra={"table": "integration_event_outbox"},
        )
    """

    default_type: str = "account-service-error"

    def __init__(
        self,
        detail: str,
        type: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            extra: Additional context about the error.
        """
        self.detail = detail
        self.type = type or self.default_type
        self.extra = extra or {}
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for logs and health payloads."""
        return {"type": self.type, "detail": self.detail, **self.extra}


class EventBusError(AccountServiceError):
    """Base class for message bus failures."""

    default_type = "eventbus-error"


class BrokerConnectionError(EventBusError):
    """Raised when a bounded connect attempt exhausts its retries.

    Transient by nature: the connection managers retry it indefinitely
    unless a retry budget was requested.
    """

    default_type = "eventbus-connection-error"


class PublishRejectedError(EventBusError):
    """Raised when the broker was reachable but the publish failed.

    Example:
            raise PublishRejectedError(
            detail="Channel closed while publishing",
            extra={"routing_key": "users.delete"},
        )
    """

    default_type = "eventbus-publish-rejected"


class DisposalError(EventBusError):
    """Raised when closing bus connections fails."""

    default_type = "eventbus-disposal-error"


class OutboxPersistenceError(AccountServiceError):
    """Raised when the outbox store cannot read or write a record."""

    default_type = "outbox-persistence-error"


class UnknownEventKindError(AccountServiceError):
    """Raised when an event name is not part of the closed event set."""

    default_type = "unknown-event-kind"

    def __init__(self, event_name: object, extra: dict[str, Any] | None = None) -> None:
        """Initialize with the offending event name."""
        self.event_name = event_name
        super().__init__(
            detail=f"Unknown event kind: {event_name!r}",
            extra={"event_name": event_name, **(extra or {})},
        )


__all__ = [
    "AccountServiceError",
    "BrokerConnectionError",
    "DisposalError",
    "EventBusError",
    "OutboxPersistenceError",
    "PublishRejectedError",
    "UnknownEventKindError",
]
