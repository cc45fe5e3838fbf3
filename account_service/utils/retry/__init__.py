"""Retry helpers for transient failures."""

from .decorator import retry
from .exceptions import RetryError, RetryStatistics
from .strategies import RetryStrategy

__all__ = ["RetryError", "RetryStatistics", "RetryStrategy", "retry"]
