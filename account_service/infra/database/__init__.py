"""Database infrastructure: declarative base, async engine and sessions.

Example:
    from account_service.infra.database import get_session_factory, init_database

    await init_database()
    store = SqlAlchemyOutboxStore(get_session_factory())
"""

from .base import NAMING_CONVENTION, Base
from .session import (
    close_database,
    create_engine,
    create_session_factory,
    create_tables,
    get_async_session,
    get_engine,
    get_session_factory,
    init_database,
)

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "close_database",
    "create_engine",
    "create_session_factory",
    "create_tables",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_database",
]
