"""Integration event outbox.

Events whose publish failed are saved here and replayed by
``EventBusTask`` until the bus confirms delivery:
1. ``IntegrationEventPublisher`` saves the envelope plus its routing key
2. ``EventBusTask`` sweeps the store whenever the publish channel is up
3. Delivered records are deleted; unreplayable ones are dead-lettered

This gives at-least-once delivery; consumers deduplicate.
"""

from account_service.infra.events.outbox.factory import get_outbox_store
from account_service.infra.events.outbox.memory import InMemoryOutboxStore
from account_service.infra.events.outbox.models import (
    IntegrationEventDeadLetter,
    IntegrationEventOutbox,
)
from account_service.infra.events.outbox.processor import (
    EventBusTask,
    ReplayOutcome,
    SweepSummary,
    TaskState,
    build_event_bus_task,
    get_event_bus_task,
    start_event_bus_task,
    stop_event_bus_task,
)
from account_service.infra.events.outbox.repository import SqlAlchemyOutboxStore

__all__ = [
    "EventBusTask",
    "InMemoryOutboxStore",
    "IntegrationEventDeadLetter",
    "IntegrationEventOutbox",
    "ReplayOutcome",
    "SqlAlchemyOutboxStore",
    "SweepSummary",
    "TaskState",
    "build_event_bus_task",
    "get_event_bus_task",
    "get_outbox_store",
    "start_event_bus_task",
    "stop_event_bus_task",
]
