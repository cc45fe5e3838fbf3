"""Health endpoint reporting broker connectivity and outbox backlog."""
