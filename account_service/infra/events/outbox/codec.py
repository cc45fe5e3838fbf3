"""Encoding of outbox records to and from stored JSON text."""

from __future__ import annotations

import json
import logging
from typing import Any

from account_service.core.exceptions import OutboxPersistenceError

logger = logging.getLogger(__name__)


def encode_record(record: dict[str, Any] | str) -> tuple[dict[str, Any], str]:
    """Validate an outbox record and return it parsed and as JSON text.

    Dicts are JSON-encoded; strings are kept verbatim once they parse as a
    JSON object. The envelope content itself is not checked: records with
    an unknown or missing ``event_name`` are still stored.

    Raises:
        OutboxPersistenceError: If the record is not a JSON object.
    """
    if isinstance(record, str):
        try:
            payload = json.loads(record)
        except ValueError as exc:
            raise OutboxPersistenceError(
                detail=f"Outbox record is not valid JSON: {exc}",
                type="outbox-invalid-record",
            ) from exc
        if not isinstance(payload, dict):
            raise OutboxPersistenceError(
                detail="Outbox record must be a JSON object",
                type="outbox-invalid-record",
                extra={"json_type": type(payload).__name__},
            )
        return payload, record

    if not isinstance(record, dict):
        raise OutboxPersistenceError(
            detail=f"Unsupported outbox record type: {type(record).__name__}",
            type="outbox-invalid-record",
        )
    try:
        text = json.dumps(record, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise OutboxPersistenceError(
            detail=f"Outbox record is not JSON serializable: {exc}",
            type="outbox-invalid-record",
        ) from exc
    return json.loads(text), text


def decode_payload(text: str, record_id: int | None = None) -> dict[str, Any]:
    """Parse stored JSON text.

    A row that no longer parses as a JSON object yields ``{}`` so that replay
    reports it as unrecognized instead of failing the whole sweep.
    """
    try:
        payload = json.loads(text)
    except ValueError:
        logger.warning("Stored outbox payload is not valid JSON", extra={"record_id": record_id})
        return {}
    if not isinstance(payload, dict):
        logger.warning("Stored outbox payload is not a JSON object", extra={"record_id": record_id})
        return {}
    return payload


def str_field(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) else None


__all__ = ["decode_payload", "encode_record", "str_field"]
