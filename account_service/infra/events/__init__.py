"""Integration event infrastructure: the outbox and its replay scheduler."""
