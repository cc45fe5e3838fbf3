"""Long-running event bus worker."""

from __future__ import annotations

import asyncio
import signal
import sys

import click

from account_service.cli.utils import coro, error, info, success
from account_service.core.settings import get_db_settings, get_rabbit_settings


@click.command()
@coro
async def worker() -> None:
    """Run subscriptions and the outbox replay timer until interrupted."""
    from account_service.infra.database import close_database, init_database
    from account_service.infra.events.outbox import build_event_bus_task

    if not get_rabbit_settings().is_configured:
        error("RabbitMQ is disabled (RABBIT_ENABLED=false)")
        sys.exit(1)

    db_configured = get_db_settings().is_configured
    if db_configured:
        await init_database()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        async with build_event_bus_task():
            info("Event bus worker running, press Ctrl+C to stop")
            await stop.wait()
    finally:
        if db_configured:
            await close_database()
    success("Event bus worker stopped")
