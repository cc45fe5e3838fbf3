"""Interfaces the delivery core consumes.

The scheduler and the producer helper only see these protocols, so tests
can hand in mocks and the infrastructure layer can swap implementations
(SQLAlchemy or in-memory outbox, FastStream-backed bus).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from account_service.core.events.base import OUTBOX_OPERATION_KEY, OUTBOX_ROUTING_KEY

if TYPE_CHECKING:
    from account_service.core.events.base import IntegrationEvent

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


# ─────────────────────────────────────────────────────
# Outbox records
# ─────────────────────────────────────────────────────
@dataclass(frozen=True, slots=True)
class OutboxRecord:
    """A pending event as stored in the outbox.

    ``payload`` is the stored JSON object, verbatim. It is never mutated:
    replays reconstruct a fresh envelope from it.
    """

    id: int
    payload: dict[str, Any]
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def event_name(self) -> str | None:
        value = self.payload.get("event_name")
        return value if isinstance(value, str) else None

    @property
    def routing_key(self) -> str | None:
        value = self.payload.get(OUTBOX_ROUTING_KEY)
        return value if isinstance(value, str) else None

    @property
    def operation(self) -> str | None:
        value = self.payload.get(OUTBOX_OPERATION_KEY)
        return value if isinstance(value, str) else None


@dataclass(frozen=True, slots=True)
class OutboxQuery:
    """Filter for outbox reads. The default instance matches every record."""

    event_name: str | None = None
    limit: int | None = None

    def matches(self, record: OutboxRecord) -> bool:
        return self.event_name is None or record.event_name == self.event_name


@dataclass(frozen=True, slots=True)
class DeadLetterRecord:
    """An outbox record moved aside because it could never be replayed."""

    id: int
    original_id: int
    payload: dict[str, Any]
    reason: str
    created_at: datetime
    dead_lettered_at: datetime


# ─────────────────────────────────────────────────────
# Protocols
# ─────────────────────────────────────────────────────
@runtime_checkable
class ConnectionPort(Protocol):
    """One direction (publish or subscribe) of the broker connection."""

    name: str

    @property
    def is_connected(self) -> bool: ...

    async def try_connect(self, max_retries: int = 0, interval_ms: int = 1000) -> None: ...

    async def close(self) -> None: ...


@runtime_checkable
class EventBusPort(Protocol):
    """Message bus used by producers and the outbox scheduler."""

    @property
    def connection_pub(self) -> ConnectionPort: ...

    @property
    def connection_sub(self) -> ConnectionPort: ...

    async def publish(self, event: IntegrationEvent, routing_key: str) -> bool: ...

    async def subscribe(
        self,
        event_name: str,
        routing_key: str,
        handler: EventHandler,
        queue: str | None = None,
    ) -> None: ...

    async def dispose(self) -> None: ...


@runtime_checkable
class OutboxStore(Protocol):
    """Durable store of events pending delivery."""

    async def create(self, record: dict[str, Any] | str) -> OutboxRecord: ...

    async def find(self, query: OutboxQuery = OutboxQuery()) -> list[OutboxRecord]: ...

    async def delete(self, record_id: int) -> bool: ...

    async def count(self, query: OutboxQuery = OutboxQuery()) -> int: ...

    async def dead_letter(self, record_id: int, reason: str) -> bool: ...

    async def find_dead_letters(self, limit: int | None = None) -> list[DeadLetterRecord]: ...


__all__ = [
    "ConnectionPort",
    "DeadLetterRecord",
    "EventBusPort",
    "EventHandler",
    "OutboxQuery",
    "OutboxRecord",
    "OutboxStore",
]
