"""Retry bookkeeping and the error raised once retries run out."""

from __future__ import annotations

from dataclasses import dataclass, field

from account_service.core.exceptions import AccountServiceError


@dataclass
class RetryStatistics:
    """Attempts and delays accumulated by one decorated call."""

    attempts: int = 0
    total_delay: float = 0.0
    start_time: float = 0.0
    end_time: float = 0.0
    exceptions: list[str] = field(default_factory=list)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class RetryError(AccountServiceError):
    """Raised when a retried call still fails after its last attempt.

    The failure of the final attempt is kept in ``last_exception`` and
    chained as ``__cause__``.
    """

    default_type = "retry-exhausted"

    def __init__(
        self,
        last_exception: Exception,
        attempts: int,
        statistics: RetryStatistics | None = None,
    ) -> None:
        self.last_exception = last_exception
        self.attempts = attempts
        self.statistics = statistics
        super().__init__(
            detail=f"Failed after {attempts} attempts. Last error: {last_exception}",
            extra={"attempts": attempts, "last_error": type(last_exception).__name__},
        )
