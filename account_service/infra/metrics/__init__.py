"""Prometheus metrics."""

from account_service.infra.metrics.prometheus import (
    REGISTRY,
    eventbus_connect_attempts_total,
    eventbus_connection_up,
    eventbus_messages_consumed_total,
    eventbus_publish_total,
    outbox_pending_events,
    outbox_replay_total,
    outbox_sweep_duration_seconds,
    outbox_sweeps_total,
)

__all__ = [
    "REGISTRY",
    "eventbus_connect_attempts_total",
    "eventbus_connection_up",
    "eventbus_messages_consumed_total",
    "eventbus_publish_total",
    "outbox_pending_events",
    "outbox_replay_total",
    "outbox_sweep_duration_seconds",
    "outbox_sweeps_total",
]
