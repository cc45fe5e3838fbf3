"""SQLAlchemy models for the integration event outbox.

A row in ``integration_event_outbox`` exists exactly while its event has
not been confirmed delivered. Rows are inserted by failed publishes and
removed by the replay scheduler, never updated. ``event_name``,
``routing_key`` and ``operation`` are copies of fields inside ``payload``
for filtering; ``payload`` keeps the stored JSON text verbatim.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from account_service.infra.database.base import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class IntegrationEventOutbox(Base):
    """Pending integration event.

    Attributes:
        id: Autoincrement key; insertion order.
        event_name: Envelope discriminant, if the payload carried one.
        routing_key: Routing key the replay publishes with.
        operation: Outbox operation (always ``publish``).
        payload: JSON object text exactly as it was saved.
        created_at: When the failed publish saved the event.
    """

    __tablename__ = "integration_event_outbox"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        index=True,
        comment="Envelope event_name",
    )
    routing_key: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Routing key used on replay",
    )
    operation: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="Outbox operation",
    )
    payload: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="JSON-serialized outbox record",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    def __repr__(self) -> str:
        """Human-readable representation."""
        return (
            f"IntegrationEventOutbox("
            f"id={self.id}, "
            f"event_name={self.event_name!r}, "
            f"routing_key={self.routing_key!r}"
            f")"
        )


class IntegrationEventDeadLetter(Base):
    """Outbox record set aside after it could not be replayed repeatedly."""

    __tablename__ = "integration_event_dead_letter"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    original_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Id the record had in the outbox",
    )
    event_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    routing_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Why the record could not be replayed",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the record entered the outbox",
    )
    dead_lettered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    def __repr__(self) -> str:
        """Human-readable representation."""
        return (
            f"IntegrationEventDeadLetter("
            f"id={self.id}, "
            f"original_id={self.original_id}, "
            f"reason={self.reason!r}"
            f")"
        )


__all__ = ["IntegrationEventDeadLetter", "IntegrationEventOutbox"]
