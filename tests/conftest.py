"""Pytest configuration and shared fixtures.

Organization:
    - Environment: tests run without RabbitMQ or PostgreSQL
    - Application Fixtures: FastAPI app and HTTP client
    - Database Fixtures: in-memory SQLite engine and outbox store
    - Event Bus Fixtures: fake connections and a recording bus
    - Event Fixtures: snapshots and envelopes
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Ensure tests run without external infrastructure
os.environ.setdefault("DB_ENABLED", "false")
os.environ.setdefault("RABBIT_ENABLED", "false")
os.environ.setdefault("LOG_CONSOLE_ENABLED", "false")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("APP_ENVIRONMENT", "test")


@pytest.fixture(autouse=True)
def _reset_settings_and_outbox():
    """Reload settings and the shared outbox store for every test."""
    from account_service.core.settings import clear_all_caches
    from account_service.infra.events.outbox.factory import get_outbox_store

    clear_all_caches()
    get_outbox_store.cache_clear()
    yield
    clear_all_caches()
    get_outbox_store.cache_clear()


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
async def app():
    """Create FastAPI application for testing."""
    from account_service.app.main import create_app

    return create_app()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client bound to the app (lifespan not run)."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Async engine on a fresh in-memory SQLite database with the outbox tables."""
    from account_service.infra.database import create_tables

    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    await create_tables(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def sql_outbox(db_engine):
    """SqlAlchemyOutboxStore bound to the in-memory database."""
    from account_service.infra.events.outbox import SqlAlchemyOutboxStore

    return SqlAlchemyOutboxStore(async_sessionmaker(db_engine, expire_on_commit=False))


@pytest.fixture
def memory_outbox():
    from account_service.infra.events.outbox import InMemoryOutboxStore

    return InMemoryOutboxStore()


# ============================================================================
# Event Bus Fixtures
# ============================================================================


class FakeConnection:
    """Connection stand-in whose state the test controls."""

    def __init__(self, name: str, connected: bool = False) -> None:
        self.name = name
        self.is_connected = connected
        self.try_connect = AsyncMock(side_effect=self._connect)
        self.close = AsyncMock(side_effect=self._close)

    async def _connect(self, max_retries: int = 0, interval_ms: int = 1000) -> None:
        self.is_connected = True

    async def _close(self) -> None:
        self.is_connected = False


class FakeEventBus:
    """Event bus recording publishes; ``deliver`` decides each result."""

    def __init__(self, connected: bool = True) -> None:
        self.connection_pub = FakeConnection("publish", connected)
        self.connection_sub = FakeConnection("subscribe", connected)
        self.published: list[tuple[Any, str]] = []
        self.deliver: Any = True
        self.subscribe = AsyncMock()
        self.dispose = AsyncMock()

    async def publish(self, event: Any, routing_key: str) -> bool:
        self.published.append((event, routing_key))
        if isinstance(self.deliver, BaseException):
            raise self.deliver
        if callable(self.deliver):
            return self.deliver(event, routing_key)
        return self.deliver


@pytest.fixture
def fake_bus() -> FakeEventBus:
    """Connected fake bus that confirms every publish."""
    return FakeEventBus()


@pytest.fixture
def disconnected_bus() -> FakeEventBus:
    """Fake bus whose connections are down until try_connect is awaited."""
    return FakeEventBus(connected=False)


@pytest.fixture
def eventbus_settings():
    """Scheduler settings with short timers for tests."""
    from account_service.core.settings import EventBusSettings

    return EventBusSettings(
        connect_retry_interval_ms=10,
        sweep_interval_seconds=3600,
        max_concurrency=4,
        health_check_interval_seconds=0.05,
        dead_letter_after=3,
        graceful_timeout_seconds=1.0,
    )


# ============================================================================
# Event Fixtures
# ============================================================================


@pytest.fixture
def user_payload() -> dict[str, Any]:
    """Flat user JSON as received by the REST layer."""
    return {
        "id": "5a62be07de34500146d9c544",
        "username": "jdoe",
        "type": "educator",
        "institution_id": "5a62be07de34500146d9c624",
        "password": "secret",
    }


@pytest.fixture
def user_delete_event(user_payload):
    from account_service.core.events import UserDeleteEvent
    from account_service.core.models import User

    return UserDeleteEvent(user=User.model_validate(user_payload))
