"""Async SQLAlchemy engine and session factory.

The engine is created lazily from ``PostgresSettings`` on first use, so
importing this module never touches the database. PostgreSQL runs on the
psycopg3 async driver; ``DATABASE_URL=sqlite+aiosqlite://...`` works for
local runs and tests.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from account_service.core.settings import get_db_settings
from account_service.utils.retry import retry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from account_service.core.settings.postgres import PostgresSettings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine(db_settings: PostgresSettings | None = None) -> AsyncEngine:
    """Build an async engine from database settings."""
    db_settings = db_settings or get_db_settings()
    return create_async_engine(
        db_settings.get_sqlalchemy_url(),
        **db_settings.sqlalchemy_engine_kwargs(),
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Return the process-wide engine, creating it on first call."""
    global _engine
    if _engine is None:
        _engine = create_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Example:
            async with get_async_session() as session:
            count = await session.scalar(select(func.count()).select_from(IntegrationEventOutbox))
    """
    async with get_session_factory()() as session:
        yield session


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """Create the outbox and dead-letter tables when missing."""
    from account_service.infra.database.base import Base
    from account_service.infra.events.outbox import models  # noqa: F401  (registers tables)

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)


async def init_database(db_settings: PostgresSettings | None = None) -> None:
    """Check connectivity, retrying while the database comes up.

    Uses ``startup_retry_attempts`` and ``startup_retry_delay`` from
    ``PostgresSettings``. Creates the outbox tables when ``create_tables``
    is set, for environments where migrations were not run.

    Raises:
        RetryError: If the database is still unreachable after all attempts.
    """
    db_settings = db_settings or get_db_settings()

    @retry(
        max_attempts=db_settings.startup_retry_attempts,
        initial_delay=db_settings.startup_retry_delay,
        max_delay=30.0,
        exponential_base=2.0,
        jitter=True,
    )
    async def _connect() -> None:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))

    logger.info(
        "Initializing database connection with retry",
        extra={
            "max_attempts": db_settings.startup_retry_attempts,
            "initial_delay": db_settings.startup_retry_delay,
        },
    )
    await _connect()

    if db_settings.create_tables:
        await create_tables()
    logger.info(
        "Database connection established successfully",
        extra={"backend": "postgresql" if db_settings.is_postgres else "sqlite"},
    )


async def close_database() -> None:
    """Dispose the engine. Safe to call when it was never created."""
    global _engine, _session_factory
    if _engine is None:
        return

    logger.info("Closing database connection")
    engine, _engine, _session_factory = _engine, None, None
    await engine.dispose()


__all__ = [
    "close_database",
    "create_engine",
    "create_session_factory",
    "create_tables",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_database",
]
