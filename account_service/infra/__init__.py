"""Infrastructure adapters: broker, database, logging, metrics, outbox."""
