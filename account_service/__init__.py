"""Account service integration-event delivery."""

__version__ = "1.0.0"
