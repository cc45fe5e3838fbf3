"""Background scheduler replaying saved integration events.

``EventBusTask`` runs two independent activities once started:

1. Subscribe setup: registers the configured consumers on the bus and
   connects the subscribe channel, retrying forever.
2. Saved-event publishing: connects the publish channel, retrying forever,
   then sweeps the outbox once right away and again on every tick of a
   fixed timer until ``stop()``.

A sweep reads every pending record, rebuilds its envelope, publishes it with
the record's own routing key and deletes the record once the bus confirmed
delivery. Records that cannot be rebuilt stay in place and, after a number
of consecutive sweeps, are moved to the dead-letter table.

Nothing raised inside a sweep escapes it: each failure becomes an outcome
in the returned ``SweepSummary`` and a log line, and the record is retried
on the next tick.

Usage:
    async with EventBusTask(event_bus, outbox) as task:
        ...
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import asdict, dataclass, field
from enum import StrEnum
import logging
import time
from typing import TYPE_CHECKING, Any, Self
from uuid import uuid4

from account_service.core.events.base import OUTBOX_ROUTING_KEY
from account_service.core.events.registry import UnrecognizedEvent, event_registry
from account_service.core.exceptions import DisposalError, EventBusError
from account_service.core.ports import OutboxQuery
from account_service.core.settings import get_eventbus_settings, get_rabbit_settings
from account_service.infra.logging import log_context
from account_service.infra.metrics.prometheus import (
    outbox_pending_events,
    outbox_replay_total,
    outbox_sweep_duration_seconds,
    outbox_sweeps_total,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType

    from account_service.core.events.registry import EventRegistry
    from account_service.core.ports import EventBusPort, OutboxRecord, OutboxStore
    from account_service.core.settings.eventbus import EventBusSettings
    from account_service.infra.messaging.event_bus import EventSubscription

logger = logging.getLogger(__name__)

# Global task instance
_task: EventBusTask | None = None


class TaskState(StrEnum):
    STOPPED = "stopped"
    RUNNING = "running"


class ReplayOutcome(StrEnum):
    """Result of replaying one outbox record.

    Attributes:
        PUBLISHED: Delivered and removed from the outbox.
        NOT_DELIVERED: The bus reported no delivery; record kept.
        FAILED: The publish raised; record kept.
        UNRECOGNIZED: The record could not be rebuilt; record kept.
        DEAD_LETTERED: Unrecognized too many times; moved to the dead-letter table.
    """

    PUBLISHED = "published"
    NOT_DELIVERED = "not_delivered"
    FAILED = "failed"
    UNRECOGNIZED = "unrecognized"
    DEAD_LETTERED = "dead_lettered"


@dataclass(slots=True)
class SweepSummary:
    """What one sweep did. Counts are per ``ReplayOutcome``."""

    total: int = 0
    published: int = 0
    not_delivered: int = 0
    failed: int = 0
    unrecognized: int = 0
    dead_lettered: int = 0
    delete_errors: int = 0
    skipped: bool = False
    query_failed: bool = False
    outcomes: dict[int, ReplayOutcome] = field(default_factory=dict)

    @property
    def pending(self) -> int:
        """Records the sweep left in the outbox."""
        removed = self.published - self.delete_errors + self.dead_lettered
        return self.total - removed

    def record(self, record_id: int, outcome: ReplayOutcome) -> None:
        self.outcomes[record_id] = outcome
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["outcomes"] = {str(key): str(value) for key, value in self.outcomes.items()}
        data["pending"] = self.pending
        return data


class EventBusTask:
    """Subscription setup plus periodic outbox replay.

    Attributes:
        event_bus: Bus used for publishing and subscriptions.
        outbox: Store holding undelivered events.
    """

    def __init__(
        self,
        event_bus: EventBusPort,
        outbox: OutboxStore,
        *,
        settings: EventBusSettings | None = None,
        registry: EventRegistry | None = None,
        subscriptions: Sequence[EventSubscription] = (),
    ) -> None:
        """Initialize the task in the STOPPED state.

        Args:
            event_bus: Bus used for publishing and subscriptions.
            outbox: Store holding undelivered events.
            settings: Scheduler tuning; loaded from the environment when omitted.
            registry: Envelope registry used to rebuild stored records.
            subscriptions: Consumers registered on the bus on every ``run()``.
        """
        self.event_bus = event_bus
        self.outbox = outbox
        self._settings = settings or get_eventbus_settings()
        self._registry = registry or event_registry
        self._subscriptions = tuple(subscriptions)
        self._state = TaskState.STOPPED
        self._activities: list[asyncio.Task[None]] = []
        self._sweep_lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()
        self._stopping = False
        self._unrecognized_counts: dict[int, int] = {}

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is TaskState.RUNNING

    async def run(self) -> None:
        """Start subscribe setup and saved-event publishing in the background.

        Returns at once. Calling it again while running only logs.
        """
        if self.is_running:
            logger.info("Event bus task already running")
            return

        self._state = TaskState.RUNNING
        self._stopping = False
        self._activities = [
            asyncio.create_task(self._receive_events(), name="eventbus-subscribe"),
            asyncio.create_task(self._publish_saved_events(), name="eventbus-publish-saved"),
        ]
        logger.info(
            "Event bus task started",
            extra={
                "sweep_interval_seconds": self._settings.sweep_interval_seconds,
                "max_concurrency": self._settings.max_concurrency,
                "subscriptions": len(self._subscriptions),
            },
        )

    async def stop(self) -> None:
        """Stop both activities and dispose the bus.

        An in-flight sweep gets ``graceful_timeout_seconds`` to finish. The bus
        is disposed on every call, with or without a prior ``run()``, so a
        failed disposal can be retried by calling ``stop()`` again.

        Raises:
            DisposalError: If closing the bus connections failed.
        """
        self._stopping = True
        if self.is_running:
            await self._stop_activities()

        try:
            await self.event_bus.dispose()
        except DisposalError:
            raise
        except Exception as exc:
            raise DisposalError(detail=f"Error disposing event bus: {exc}") from exc
        finally:
            logger.info("Event bus task stopped")

    async def _stop_activities(self) -> None:
        try:
            if not self._idle.is_set():
                try:
                    await asyncio.wait_for(
                        self._idle.wait(), timeout=self._settings.graceful_timeout_seconds
                    )
                except TimeoutError:
                    logger.warning("Outbox sweep did not finish before shutdown, cancelling")
        finally:
            activities, self._activities = self._activities, []
            for activity in activities:
                activity.cancel()
            for activity in activities:
                with contextlib.suppress(asyncio.CancelledError):
                    await activity
            self._state = TaskState.STOPPED

    async def sweep(self) -> SweepSummary:
        """Replay every pending outbox record once.

        Skipped when the publish channel is down, when another sweep is in
        progress, or once ``stop()`` has begun.
        """
        if self._stopping or self._sweep_lock.locked():
            return self._skipped("busy" if self._sweep_lock.locked() else "stopping")
        if not self.event_bus.connection_pub.is_connected:
            return self._skipped("disconnected")

        async with self._sweep_lock:
            self._idle.clear()
            try:
                with log_context(sweep_id=uuid4().hex[:12]):
                    return await self._sweep()
            finally:
                self._idle.set()

    # ─────────────────────────────────────────────────────
    # Activities
    # ─────────────────────────────────────────────────────
    async def _receive_events(self) -> None:
        interval_ms = self._settings.connect_retry_interval_ms
        try:
            for subscription in self._subscriptions:
                await self.event_bus.subscribe(
                    subscription.event_name,
                    subscription.routing_key,
                    subscription.handler,
                    subscription.queue,
                )
            await self.event_bus.connection_sub.try_connect(0, interval_ms)
        except Exception:
            logger.exception("Subscribe setup failed")

    async def _publish_saved_events(self) -> None:
        interval = self._settings.sweep_interval_seconds
        try:
            await self.event_bus.connection_pub.try_connect(
                0, self._settings.connect_retry_interval_ms
            )
        except Exception:
            logger.exception("Publish channel setup failed")
            return

        await self._sweep_safely()
        while True:
            await asyncio.sleep(interval)
            await self._sweep_safely()

    async def _sweep_safely(self) -> None:
        try:
            await self.sweep()
        except Exception:
            logger.exception("Outbox sweep failed")

    # ─────────────────────────────────────────────────────
    # Sweep
    # ─────────────────────────────────────────────────────
    async def _sweep(self) -> SweepSummary:
        start = time.perf_counter()
        try:
            records = await self.outbox.find(OutboxQuery(limit=self._settings.sweep_batch_limit))
        except Exception:
            logger.exception("Outbox query failed, sweep aborted")
            outbox_sweeps_total.labels(status="query_failed").inc()
            return SweepSummary(query_failed=True)

        summary = SweepSummary(total=len(records))
        if records:
            semaphore = asyncio.Semaphore(self._settings.max_concurrency)
            async with asyncio.TaskGroup() as group:
                for record in records:
                    group.create_task(self._replay(record, semaphore, summary))

        # Counters only survive for records still seen sweep after sweep
        seen = {record.id for record in records}
        self._unrecognized_counts = {
            record_id: count
            for record_id, count in self._unrecognized_counts.items()
            if record_id in seen
        }

        duration = time.perf_counter() - start
        outbox_sweep_duration_seconds.observe(duration)
        outbox_sweeps_total.labels(status="completed").inc()
        outbox_pending_events.set(summary.pending)

        log = logger.info if records else logger.debug
        log(
            "Outbox sweep completed",
            extra={
                "total": summary.total,
                "published": summary.published,
                "not_delivered": summary.not_delivered,
                "failed": summary.failed,
                "unrecognized": summary.unrecognized,
                "dead_lettered": summary.dead_lettered,
                "delete_errors": summary.delete_errors,
                "duration_seconds": round(duration, 3),
            },
        )
        return summary

    async def _replay(
        self,
        record: OutboxRecord,
        semaphore: asyncio.Semaphore,
        summary: SweepSummary,
    ) -> None:
        async with semaphore:
            try:
                outcome = await self._replay_record(record, summary)
            except Exception:
                logger.exception("Unexpected error replaying outbox record", extra={"record_id": record.id})
                outcome = ReplayOutcome.FAILED
        summary.record(record.id, outcome)
        outbox_replay_total.labels(outcome=outcome.value).inc()

    async def _replay_record(self, record: OutboxRecord, summary: SweepSummary) -> ReplayOutcome:
        event = self._registry.reconstruct(record.payload)
        if isinstance(event, UnrecognizedEvent):
            return await self._handle_unrecognized(record, event)

        self._unrecognized_counts.pop(record.id, None)
        # reconstruct() only accepts records carrying a routing key
        routing_key: str = record.payload[OUTBOX_ROUTING_KEY]
        extra = {"record_id": record.id, "event_name": event.event_name, "routing_key": routing_key}

        try:
            delivered = await self.event_bus.publish(event, routing_key)
        except EventBusError as exc:
            logger.warning("Outbox replay rejected", extra={**extra, "error": exc.detail})
            return ReplayOutcome.FAILED
        except Exception:
            logger.exception("Outbox replay failed", extra=extra)
            return ReplayOutcome.FAILED

        if not delivered:
            logger.debug("Outbox replay not delivered", extra=extra)
            return ReplayOutcome.NOT_DELIVERED

        try:
            await self.outbox.delete(record.id)
        except Exception:
            # Left in place: the next sweep publishes it again
            summary.delete_errors += 1
            logger.exception("Failed to delete replayed outbox record", extra=extra)
        else:
            logger.info("Saved event published", extra=extra)
        return ReplayOutcome.PUBLISHED

    async def _handle_unrecognized(
        self, record: OutboxRecord, event: UnrecognizedEvent
    ) -> ReplayOutcome:
        count = self._unrecognized_counts.get(record.id, 0) + 1
        self._unrecognized_counts[record.id] = count
        extra = {
            "record_id": record.id,
            "event_name": event.event_name,
            "reason": event.reason,
            "consecutive_sweeps": count,
        }

        limit = self._settings.dead_letter_after
        if limit and count >= limit:
            try:
                moved = await self.outbox.dead_letter(record.id, event.reason)
            except Exception:
                logger.exception("Failed to dead-letter outbox record", extra=extra)
                return ReplayOutcome.UNRECOGNIZED
            self._unrecognized_counts.pop(record.id, None)
            if moved:
                logger.error("Unrecognized outbox record dead-lettered", extra=extra)
                return ReplayOutcome.DEAD_LETTERED
            return ReplayOutcome.UNRECOGNIZED

        logger.warning("Skipping unrecognized outbox record", extra=extra)
        return ReplayOutcome.UNRECOGNIZED

    @staticmethod
    def _skipped(reason: str) -> SweepSummary:
        outbox_sweeps_total.labels(status="skipped").inc()
        logger.debug("Outbox sweep skipped", extra={"reason": reason})
        return SweepSummary(skipped=True)

    async def __aenter__(self) -> Self:
        await self.run()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()


def build_event_bus_task(
    subscriptions: Sequence[EventSubscription] = (),
) -> EventBusTask:
    """Wire an EventBusTask from environment settings."""
    from account_service.infra.events.outbox.factory import get_outbox_store
    from account_service.infra.messaging.event_bus import EventBus

    settings = get_eventbus_settings()
    event_bus = EventBus(health_check_interval=settings.health_check_interval_seconds)
    return EventBusTask(
        event_bus,
        get_outbox_store(),
        settings=settings,
        subscriptions=subscriptions,
    )


async def start_event_bus_task(task: EventBusTask | None = None) -> EventBusTask | None:
    """Start the global event bus task.

    Args:
        task: Pre-built task; built from settings when omitted.

    Returns:
        The running task, or None when RabbitMQ is not configured.
    """
    global _task

    if task is None and not get_rabbit_settings().is_configured:
        logger.info("RabbitMQ not configured, skipping event bus task")
        return None

    if _task is None:
        _task = task or build_event_bus_task()
    await _task.run()
    return _task


async def stop_event_bus_task() -> None:
    """Stop the global event bus task."""
    global _task

    if _task is not None:
        try:
            await _task.stop()
        finally:
            _task = None


def get_event_bus_task() -> EventBusTask | None:
    """Get the global event bus task instance."""
    return _task


__all__ = [
    "EventBusTask",
    "ReplayOutcome",
    "SweepSummary",
    "TaskState",
    "build_event_bus_task",
    "get_event_bus_task",
    "start_event_bus_task",
    "stop_event_bus_task",
]
