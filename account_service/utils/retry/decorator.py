"""``@retry`` for async callables that fail transiently.

Used for the database startup probe; the broker reconnect loops drive
``RetryStrategy`` directly because they also have to publish state.
"""

from __future__ import annotations

import asyncio
from functools import wraps
import logging
import time
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from .exceptions import RetryError, RetryStatistics
from .strategies import RetryStrategy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def retry(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Callable[[Exception], bool] | None = None,
    stop_after_delay: float | None = None,
    on_retry: Callable[[Exception, int], None] | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Retry an async callable with exponential backoff.

    ``max_attempts=0`` retries until the call succeeds or raises an
    exception the strategy does not retry.

    Raises:
        RetryError: Once the attempt or time budget is used up, chained to
            the last failure.

    Example:
        @retry(max_attempts=5, initial_delay=0.5, exceptions=(OSError,))
        async def probe() -> None:
            ...
    """
    strategy = RetryStrategy(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
        exponential_base=exponential_base,
        jitter=jitter,
        exceptions=exceptions,
        retry_if=retry_if,
        stop_after_delay=stop_after_delay,
    )

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        name = func.__qualname__

        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            stats = RetryStatistics(start_time=time.monotonic())
            failures = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as exc:
                    if not strategy.should_retry(exc):
                        raise
                    failures += 1
                    if strategy.should_stop(failures, time.monotonic() - stats.start_time):
                        stats.end_time = time.monotonic()
                        logger.error(
                            "Retries exhausted",
                            extra={
                                "function": name,
                                "attempts": failures,
                                "error": str(exc),
                                "duration": round(stats.duration, 3),
                            },
                        )
                        raise RetryError(exc, failures, stats) from exc

                    delay = strategy.calculate_delay(failures - 1)
                    stats.attempts += 1
                    stats.total_delay += delay
                    stats.exceptions.append(type(exc).__name__)
                    logger.warning(
                        "Attempt failed, retrying",
                        extra={
                            "function": name,
                            "attempt": failures,
                            "max_attempts": max_attempts or None,
                            "delay": round(delay, 3),
                            "error": str(exc),
                        },
                    )
                    if on_retry is not None:
                        on_retry(exc, failures)
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
