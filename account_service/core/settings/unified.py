"""Unified settings composition for convenient access.

Usage:
    from account_service.core.settings import get_settings

    settings = get_settings()
    print(settings.rabbit.exchange_name)
    print(settings.eventbus.sweep_interval_seconds)

Each nested settings class still respects its own env prefix.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from .app import AppSettings
from .eventbus import EventBusSettings
from .loader import (
    get_app_settings,
    get_db_settings,
    get_eventbus_settings,
    get_logging_settings,
    get_rabbit_settings,
)
from .logs import LoggingSettings
from .postgres import PostgresSettings
from .rabbit import RabbitSettings


class Settings(BaseModel):
    """All settings domains in one object."""

    model_config = ConfigDict(frozen=True)

    app: AppSettings
    db: PostgresSettings
    rabbit: RabbitSettings
    logging: LoggingSettings
    eventbus: EventBusSettings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached unified settings built from the per-domain loaders."""
    return Settings(
        app=get_app_settings(),
        db=get_db_settings(),
        rabbit=get_rabbit_settings(),
        logging=get_logging_settings(),
        eventbus=get_eventbus_settings(),
    )


def clear_all_caches() -> None:
    """Drop every cached settings instance (tests, reload)."""
    get_settings.cache_clear()
    for loader in (
        get_app_settings,
        get_db_settings,
        get_rabbit_settings,
        get_logging_settings,
        get_eventbus_settings,
    ):
        loader.cache_clear()
