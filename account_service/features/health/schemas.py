"""Health check response models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class EventBusHealth(BaseModel):
    """Connection state of each bus direction."""

    publish: str = Field(description="Publish connection state", examples=["connected"])
    subscribe: str = Field(description="Subscribe connection state", examples=["reconnecting"])


class OutboxHealth(BaseModel):
    pending: int | None = Field(
        default=None,
        description="Events waiting for replay (null when the store is unreachable)",
    )


class HealthResponse(BaseModel):
    """Overall service health."""

    status: Literal["healthy", "degraded"] = Field(
        description="healthy when both bus directions are connected",
    )
    service: str
    version: str
    eventbus: EventBusHealth
    outbox: OutboxHealth
