"""Prometheus metrics for the integration event pipeline."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# Custom registry so tests and the /metrics endpoint see only service metrics
REGISTRY = CollectorRegistry()

# Sweeps are dominated by broker round-trips: 5ms to 2 minutes
SWEEP_DURATION_BUCKETS = (
    0.005,
    0.01,
    0.05,
    0.1,
    0.5,
    1.0,
    5.0,
    15.0,
    30.0,
    60.0,
    120.0,
)

# Event bus metrics
eventbus_publish_total = Counter(
    "eventbus_publish_total",
    "Publish attempts on the event bus by result (published, disconnected, rejected)",
    ["result"],
    registry=REGISTRY,
)

eventbus_connection_up = Gauge(
    "eventbus_connection_up",
    "Whether the broker connection of a direction (publish, subscribe) is established",
    ["direction"],
    registry=REGISTRY,
)

eventbus_connect_attempts_total = Counter(
    "eventbus_connect_attempts_total",
    "Broker connect attempts by direction and result (success, failure)",
    ["direction", "result"],
    registry=REGISTRY,
)

eventbus_messages_consumed_total = Counter(
    "eventbus_messages_consumed_total",
    "Inbound integration events handled, by event name and result",
    ["event_name", "result"],
    registry=REGISTRY,
)

# Outbox metrics
outbox_replay_total = Counter(
    "outbox_replay_total",
    "Outbox record replays by outcome",
    ["outcome"],
    registry=REGISTRY,
)

outbox_sweep_duration_seconds = Histogram(
    "outbox_sweep_duration_seconds",
    "Duration of outbox sweeps in seconds",
    buckets=SWEEP_DURATION_BUCKETS,
    registry=REGISTRY,
)

outbox_sweeps_total = Counter(
    "outbox_sweeps_total",
    "Outbox sweeps by status (completed, skipped, query_failed)",
    ["status"],
    registry=REGISTRY,
)

outbox_pending_events = Gauge(
    "outbox_pending_events",
    "Records left in the outbox after the last sweep",
    registry=REGISTRY,
)
