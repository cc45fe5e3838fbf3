"""Integration event bus and outbox scheduler settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EventBusSettings(BaseSettings):
    """Reconnect, sweep and dead-letter tuning.

    Environment variables use EVENTBUS_ prefix.
    Example: EVENTBUS_SWEEP_INTERVAL_SECONDS=60, EVENTBUS_DEAD_LETTER_AFTER=0
    """

    connect_retry_interval_ms: int = Field(
        default=1500,
        ge=10,
        le=600_000,
        description="Delay between connect attempts of the reconnect loops.",
    )
    sweep_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        le=86_400,
        description="Period of the outbox sweep timer.",
    )
    max_concurrency: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Maximum concurrent replays within one sweep.",
    )
    health_check_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        le=3600,
        description="Interval of the broker liveness probe once connected.",
    )
    dead_letter_after: int = Field(
        default=12,
        ge=0,
        description=(
            "Consecutive sweeps an unrecognized record may survive before it is "
            "moved to the dead-letter table (0 keeps it in the outbox forever)."
        ),
    )
    graceful_timeout_seconds: float = Field(
        default=30.0,
        ge=0,
        le=600,
        description="Time an in-flight sweep gets to finish during shutdown.",
    )
    sweep_batch_limit: int | None = Field(
        default=None,
        ge=1,
        description="Optional cap on records loaded per sweep (None loads all pending).",
    )

    model_config = SettingsConfigDict(
        env_prefix="EVENTBUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
