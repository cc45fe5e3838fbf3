"""Modular Pydantic Settings v2 configuration.

Import settings via cached loaders:
    from account_service.core.settings import get_eventbus_settings

Or use unified settings for convenient access to all domains:
    from account_service.core.settings import get_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

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
from .unified import Settings, clear_all_caches, get_settings

__all__ = [
    "AppSettings",
    "EventBusSettings",
    "LoggingSettings",
    "PostgresSettings",
    "RabbitSettings",
    "Settings",
    "clear_all_caches",
    "get_app_settings",
    "get_db_settings",
    "get_eventbus_settings",
    "get_logging_settings",
    "get_rabbit_settings",
    "get_settings",
]
