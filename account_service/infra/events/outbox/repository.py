"""SQLAlchemy implementation of the outbox store.

Every operation runs in its own short transaction. Database errors are
translated into ``OutboxPersistenceError`` so the scheduler can abort a
single sweep tick without knowing about SQLAlchemy.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from account_service.core.events.base import OUTBOX_OPERATION_KEY, OUTBOX_ROUTING_KEY
from account_service.core.exceptions import OutboxPersistenceError
from account_service.core.ports import DeadLetterRecord, OutboxQuery, OutboxRecord
from account_service.infra.events.outbox.codec import decode_payload, encode_record, str_field
from account_service.infra.events.outbox.models import (
    IntegrationEventDeadLetter,
    IntegrationEventOutbox,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class SqlAlchemyOutboxStore:
    """Outbox store backed by the ``integration_event_outbox`` table.

    Args:
        session_factory: Async session factory, usually
            ``account_service.infra.database.get_session_factory()``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.warning(
                "Outbox store operation failed",
                extra={"operation": operation, "error": str(exc)},
            )
            raise OutboxPersistenceError(
                detail=f"Outbox {operation} failed: {exc}",
                type=f"outbox-{operation}-failed",
                extra={"operation": operation},
            ) from exc

    async def create(self, record: dict[str, Any] | str) -> OutboxRecord:
        """Insert a record; returns it with its generated id."""
        payload, text = encode_record(record)
        row = IntegrationEventOutbox(
            event_name=str_field(payload, "event_name"),
            routing_key=str_field(payload, OUTBOX_ROUTING_KEY),
            operation=str_field(payload, OUTBOX_OPERATION_KEY),
            payload=text,
            created_at=datetime.now(UTC),
        )
        async with self._transaction("create") as session:
            session.add(row)
            await session.flush()
            record_id = row.id

        logger.debug(
            "Outbox record saved",
            extra={"record_id": record_id, "event_name": row.event_name},
        )
        return OutboxRecord(id=record_id, payload=payload, created_at=_aware(row.created_at))

    async def find(self, query: OutboxQuery = OutboxQuery()) -> list[OutboxRecord]:
        """Pending records in insertion order."""
        stmt = self._filtered(select(IntegrationEventOutbox), query).order_by(
            IntegrationEventOutbox.id.asc()
        )
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        async with self._transaction("find") as session:
            rows = (await session.scalars(stmt)).all()

        return [
            OutboxRecord(
                id=row.id,
                payload=decode_payload(row.payload, row.id),
                created_at=_aware(row.created_at),
            )
            for row in rows
        ]

    async def delete(self, record_id: int) -> bool:
        """Delete a record; False when it was already gone."""
        stmt = delete(IntegrationEventOutbox).where(IntegrationEventOutbox.id == record_id)
        async with self._transaction("delete") as session:
            result = await session.execute(stmt)
        return bool(result.rowcount)

    async def count(self, query: OutboxQuery = OutboxQuery()) -> int:
        stmt = self._filtered(
            select(func.count()).select_from(IntegrationEventOutbox), query
        )
        async with self._transaction("count") as session:
            return int(await session.scalar(stmt) or 0)

    async def dead_letter(self, record_id: int, reason: str) -> bool:
        """Move a record into the dead-letter table in one transaction."""
        async with self._transaction("dead_letter") as session:
            row = await session.get(IntegrationEventOutbox, record_id)
            if row is None:
                return False
            session.add(
                IntegrationEventDeadLetter(
                    original_id=row.id,
                    event_name=row.event_name,
                    routing_key=row.routing_key,
                    payload=row.payload,
                    reason=reason,
                    created_at=row.created_at,
                    dead_lettered_at=datetime.now(UTC),
                )
            )
            await session.delete(row)
        return True

    async def find_dead_letters(self, limit: int | None = None) -> list[DeadLetterRecord]:
        stmt = select(IntegrationEventDeadLetter).order_by(IntegrationEventDeadLetter.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._transaction("find_dead_letters") as session:
            rows = (await session.scalars(stmt)).all()

        return [
            DeadLetterRecord(
                id=row.id,
                original_id=row.original_id,
                payload=decode_payload(row.payload, row.original_id),
                reason=row.reason,
                created_at=_aware(row.created_at),
                dead_lettered_at=_aware(row.dead_lettered_at),
            )
            for row in rows
        ]

    @staticmethod
    def _filtered(stmt: Select[Any], query: OutboxQuery) -> Select[Any]:
        if query.event_name is not None:
            stmt = stmt.where(IntegrationEventOutbox.event_name == query.event_name)
        return stmt


__all__ = ["SqlAlchemyOutboxStore"]
