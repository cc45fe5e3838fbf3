"""Application lifespan management.

Startup Order:
1. Core (logging) - always runs first
2. Database (PostgreSQL) - conditional on configuration
3. Event bus task (RabbitMQ) - conditional on configuration

Shutdown Order: Reverse of startup (what starts first, shuts down last)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from account_service.core.settings import (
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_rabbit_settings,
)
from account_service.infra.logging.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


async def _startup_core() -> None:
    """Configure logging."""
    app = get_app_settings()
    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info(
        "Application starting",
        extra={"service": app.service_name, "environment": app.environment},
    )


async def _startup_database() -> None:
    """Initialize database connection and the outbox tables."""
    from account_service.infra.database import init_database

    if not get_db_settings().is_configured:
        logger.info("Database disabled, using the in-memory outbox")
        return

    try:
        await init_database()
    except Exception:
        logger.exception("Database unavailable, failing startup")
        raise


async def _startup_eventbus() -> None:
    """Start subscription setup and the outbox replay timer."""
    from account_service.infra.events.outbox import start_event_bus_task

    rabbit = get_rabbit_settings()
    if not rabbit.is_configured:
        logger.info("RabbitMQ disabled, integration events go to the outbox only")
        return

    await start_event_bus_task()
    logger.info(
        "Event bus task started",
        extra={"host": rabbit.host, "exchange": rabbit.exchange_name},
    )


async def _shutdown_eventbus() -> None:
    from account_service.infra.events.outbox import stop_event_bus_task

    try:
        await stop_event_bus_task()
    except Exception:
        logger.exception("Error stopping event bus task")


async def _shutdown_database() -> None:
    from account_service.infra.database import close_database

    try:
        await close_database()
    except Exception:
        logger.exception("Error closing database connection")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan events.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    _ = app
    await _startup_core()
    await _startup_database()
    await _startup_eventbus()

    try:
        yield
    finally:
        logger.info("Application shutting down")
        await _shutdown_eventbus()
        await _shutdown_database()
