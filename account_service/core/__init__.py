"""Core domain layer: models, events, ports, settings and exceptions."""
