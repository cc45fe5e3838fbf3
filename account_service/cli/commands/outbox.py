"""Outbox inspection and manual replay commands."""

from __future__ import annotations

from contextlib import asynccontextmanager
import json
import sys
from typing import TYPE_CHECKING

import click

from account_service.cli.utils import coro, error, header, info, success, warning
from account_service.core.exceptions import AccountServiceError, BrokerConnectionError
from account_service.core.ports import OutboxQuery
from account_service.core.settings import get_db_settings, get_eventbus_settings, get_rabbit_settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from account_service.core.ports import OutboxStore


@asynccontextmanager
async def _open_store() -> AsyncIterator[OutboxStore]:
    from account_service.infra.database import close_database, init_database
    from account_service.infra.events.outbox import get_outbox_store

    db_configured = get_db_settings().is_configured
    if db_configured:
        await init_database()
    else:
        warning("Database disabled: the in-memory outbox of this process is empty")
    try:
        yield get_outbox_store()
    finally:
        if db_configured:
            await close_database()


@click.group(name="outbox")
def outbox() -> None:
    """Inspect and replay saved integration events."""


@outbox.command(name="list")
@click.option("--event-name", default=None, help="Only records with this event_name")
@click.option("--limit", default=50, type=int, show_default=True, help="Maximum records to show")
@click.option("--json", "as_json", is_flag=True, help="Print records as JSON lines")
@coro
async def list_records(event_name: str | None, limit: int, as_json: bool) -> None:
    """List pending outbox records, oldest first."""
    async with _open_store() as store:
        records = await store.find(OutboxQuery(event_name=event_name, limit=limit))

    if as_json:
        for record in records:
            click.echo(json.dumps({"id": record.id, "created_at": record.created_at.isoformat(), "payload": record.payload}))
        return

    if not records:
        info("Outbox is empty")
        return

    header(f"Pending outbox records ({len(records)})")
    for record in records:
        click.echo(
            f"  {record.id:>8}  {record.created_at:%Y-%m-%d %H:%M:%S}  "
            f"{record.event_name or '-':<32} {record.routing_key or '-'}"
        )


@outbox.command()
@click.option("--event-name", default=None, help="Only records with this event_name")
@coro
async def count(event_name: str | None) -> None:
    """Print the number of pending outbox records."""
    async with _open_store() as store:
        total = await store.count(OutboxQuery(event_name=event_name))
    click.echo(total)


@outbox.command(name="dead-letters")
@click.option("--limit", default=50, type=int, show_default=True, help="Maximum records to show")
@coro
async def dead_letters(limit: int) -> None:
    """List records moved to the dead-letter table."""
    async with _open_store() as store:
        records = await store.find_dead_letters(limit)

    if not records:
        info("No dead-lettered records")
        return

    header(f"Dead-lettered records ({len(records)})")
    for record in records:
        click.echo(
            f"  {record.id:>8}  outbox id {record.original_id:<8} "
            f"{record.dead_lettered_at:%Y-%m-%d %H:%M:%S}  {record.reason}"
        )


@outbox.command()
@click.option(
    "--retries",
    default=3,
    type=click.IntRange(min=1),
    show_default=True,
    help="Connect retries before giving up",
)
@coro
async def sweep(retries: int) -> None:
    """Connect once, replay every pending record and print the summary."""
    from account_service.infra.events.outbox import EventBusTask
    from account_service.infra.messaging import EventBus

    if not get_rabbit_settings().is_configured:
        error("RabbitMQ is disabled (RABBIT_ENABLED=false)")
        sys.exit(1)

    settings = get_eventbus_settings()
    async with _open_store() as store:
        event_bus = EventBus(health_check_interval=settings.health_check_interval_seconds)
        task = EventBusTask(event_bus, store, settings=settings)
        try:
            info("Connecting to RabbitMQ...")
            await event_bus.connection_pub.try_connect(retries, settings.connect_retry_interval_ms)
            summary = await task.sweep()
        except BrokerConnectionError as e:
            error(f"Could not connect to RabbitMQ: {e.detail}")
            sys.exit(1)
        finally:
            try:
                await event_bus.dispose()
            except AccountServiceError as e:
                warning(f"Error closing RabbitMQ connections: {e.detail}")

    if summary.query_failed:
        error("Outbox query failed")
        sys.exit(1)

    success(
        f"Sweep finished: {summary.published} published, {summary.not_delivered} not delivered, "
        f"{summary.failed} failed, {summary.unrecognized} unrecognized, "
        f"{summary.dead_lettered} dead-lettered"
    )
    if summary.pending:
        warning(f"{summary.pending} record(s) still pending")
