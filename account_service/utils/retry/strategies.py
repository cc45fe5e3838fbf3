from __future__ import annotations

import random
from collections.abc import Callable


class RetryStrategy:
    """Backoff policy shared by the retry decorator and the reconnect loops.

    ``max_attempts=0`` means unbounded: ``is_exhausted`` never returns True.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        jitter_range: tuple[float, float] = (0.5, 1.5),
        exceptions: tuple[type[Exception], ...] = (Exception,),
        retry_if: Callable[[Exception], bool] | None = None,
        stop_after_delay: float | None = None,
    ) -> None:
        if max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.jitter_range = jitter_range
        self.exceptions = exceptions
        self.retry_if = retry_if
        self.stop_after_delay = stop_after_delay

    @classmethod
    def fixed(cls, delay: float, max_attempts: int = 0) -> RetryStrategy:
        """Constant delay between attempts, no jitter."""
        return cls(
            max_attempts=max_attempts,
            initial_delay=delay,
            max_delay=delay,
            exponential_base=1.0,
            jitter=False,
        )

    @property
    def unbounded(self) -> bool:
        return self.max_attempts == 0

    def is_exhausted(self, attempts: int) -> bool:
        """Whether ``attempts`` failed attempts use up the budget."""
        return not self.unbounded and attempts >= self.max_attempts

    def should_stop(self, attempts: int, elapsed: float) -> bool:
        """Whether to give up after ``attempts`` failures and ``elapsed`` seconds."""
        if self.stop_after_delay is not None and elapsed >= self.stop_after_delay:
            return True
        return self.is_exhausted(attempts)

    def should_retry(self, exception: Exception) -> bool:
        if self.retry_if is not None:
            return self.retry_if(exception)
        return isinstance(exception, self.exceptions)

    def calculate_delay(self, attempt: int) -> float:
        delay = self.initial_delay * (self.exponential_base**attempt)
        delay = min(delay, self.max_delay)
        if self.jitter:
            delay *= random.uniform(self.jitter_range[0], self.jitter_range[1])
        return delay
