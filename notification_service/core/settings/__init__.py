"""Modular Pydantic Settings v2 configuration.

One frozen settings model per domain, each with its own env prefix:

- ``APP_``: service identity (AppSettings)
- ``DB_`` / ``DATABASE_URL``: database URL and pool (DatabaseSettings)
- ``RABBIT_``: job broker (RabbitSettings)
- ``LOG_``: logging (LoggingSettings)
- ``NOTIFY_``: fan-out and delivery behaviour (NotificationSettings)

Import settings via the cached loaders:
    from notification_service.core.settings import get_notification_settings
"""

from __future__ import annotations

from .app import AppSettings
from .database import DatabaseSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_notification_settings,
    get_rabbit_settings,
)
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .rabbit import RabbitSettings

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "NotificationSettings",
    "RabbitSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_db_settings",
    "get_logging_settings",
    "get_notification_settings",
    "get_rabbit_settings",
]
