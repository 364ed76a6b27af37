"""Configuration package."""

from finances.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    LocalStorageSettings,
    NotificationSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "LocalStorageSettings",
    "NotificationSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
