"""Selects the outbox backend from the database settings."""

from __future__ import annotations

from functools import lru_cache
import logging
from typing import TYPE_CHECKING

from account_service.core.settings import get_db_settings

if TYPE_CHECKING:
    from account_service.core.ports import OutboxStore

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_outbox_store() -> OutboxStore:
    """Return the process-wide outbox store.

    ``SqlAlchemyOutboxStore`` when the database is configured, otherwise a
    shared ``InMemoryOutboxStore``. Cached so producers and the scheduler
    see the same store.
    """
    if get_db_settings().is_configured:
        from account_service.infra.database import get_session_factory
        from account_service.infra.events.outbox.repository import SqlAlchemyOutboxStore

        return SqlAlchemyOutboxStore(get_session_factory())

    from account_service.infra.events.outbox.memory import InMemoryOutboxStore

    logger.warning("Database disabled, outbox events are kept in memory only")
    return InMemoryOutboxStore()


__all__ = ["get_outbox_store"]
