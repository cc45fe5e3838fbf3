"""In-memory outbox used when the database is disabled, and in tests.

Records live only as long as the process. Stored JSON text is parsed again
on every read so callers never share mutable state with the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
import itertools
from typing import Any

from account_service.core.ports import DeadLetterRecord, OutboxQuery, OutboxRecord
from account_service.infra.events.outbox.codec import decode_payload, encode_record, str_field


@dataclass(slots=True)
class _Row:
    id: int
    text: str
    event_name: str | None
    created_at: datetime


@dataclass(slots=True)
class _DeadRow:
    id: int
    original_id: int
    text: str
    reason: str
    created_at: datetime
    dead_lettered_at: datetime


class InMemoryOutboxStore:
    """Process-local implementation of the ``OutboxStore`` protocol."""

    def __init__(self) -> None:
        self._rows: dict[int, _Row] = {}
        self._dead: list[_DeadRow] = []
        self._ids = itertools.count(1)
        self._dead_ids = itertools.count(1)

    async def create(self, record: dict[str, Any] | str) -> OutboxRecord:
        payload, text = encode_record(record)
        row = _Row(
            id=next(self._ids),
            text=text,
            event_name=str_field(payload, "event_name"),
            created_at=datetime.now(UTC),
        )
        self._rows[row.id] = row
        return OutboxRecord(id=row.id, payload=payload, created_at=row.created_at)

    async def find(self, query: OutboxQuery = OutboxQuery()) -> list[OutboxRecord]:
        records = [
            OutboxRecord(id=row.id, payload=decode_payload(row.text, row.id), created_at=row.created_at)
            for row in sorted(self._rows.values(), key=lambda row: row.id)
        ]
        matched = [record for record in records if query.matches(record)]
        if query.limit is not None:
            matched = matched[: query.limit]
        return matched

    async def delete(self, record_id: int) -> bool:
        return self._rows.pop(record_id, None) is not None

    async def count(self, query: OutboxQuery = OutboxQuery()) -> int:
        return len(await self.find(OutboxQuery(event_name=query.event_name)))

    async def dead_letter(self, record_id: int, reason: str) -> bool:
        row = self._rows.pop(record_id, None)
        if row is None:
            return False
        self._dead.append(
            _DeadRow(
                id=next(self._dead_ids),
                original_id=row.id,
                text=row.text,
                reason=reason,
                created_at=row.created_at,
                dead_lettered_at=datetime.now(UTC),
            )
        )
        return True

    async def find_dead_letters(self, limit: int | None = None) -> list[DeadLetterRecord]:
        rows = self._dead if limit is None else self._dead[:limit]
        return [
            DeadLetterRecord(
                id=row.id,
                original_id=row.original_id,
                payload=decode_payload(row.text, row.original_id),
                reason=row.reason,
                created_at=row.created_at,
                dead_lettered_at=row.dead_lettered_at,
            )
            for row in rows
        ]

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        return f"InMemoryOutboxStore(pending={len(self._rows)}, dead_letters={len(self._dead)})"


__all__ = ["InMemoryOutboxStore"]
