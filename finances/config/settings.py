"""
Configuration Management for Finances

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The cloud backend is optional: when its settings are missing the
application keeps working against the local store only.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Each collection gets its own worksheet, created on first use
    worksheet_rows: int = Field(
        default=1000,
        ge=10,
        description="Initial row count for newly created worksheets"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "The local store will be used until it exists."
            )
        return v


class LocalStorageSettings(BaseSettings):
    """Local key-value fallback store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOCAL_STORAGE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path(".finances"),
        description="Directory holding one JSON file per storage key"
    )
    key_prefix: str = Field(
        default="finances-",
        min_length=1,
        description="Namespace prepended to every storage key"
    )


class NotificationSettings(BaseSettings):
    """Rule evaluator configuration."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        extra="ignore"
    )

    budget_warning_ratio: float = Field(
        default=0.8,
        gt=0.0,
        lt=1.0,
        description="Spent/budget ratio at which the first budget pass warns"
    )
    settle_delay_seconds: float = Field(
        default=0.0,
        ge=0.0,
        le=10.0,
        description="Delay before rules run after a mutation"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured logs"
    )

    # Storage behaviour
    storage_fallback_on_error: bool = Field(
        default=True,
        description=(
            "Replay on the local store when a cloud call fails. "
            "When False, only a missing cloud configuration falls back."
        )
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def local_storage(self) -> LocalStorageSettings:
        return LocalStorageSettings()

    @property
    def notifications(self) -> NotificationSettings:
        return NotificationSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()

    def google_sheets_or_none(self) -> Optional[GoogleSheetsSettings]:
        """Cloud settings, or None when they are not configured."""
        try:
            return self.google_sheets
        except ValueError:
            return None


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = ["google_sheets", "local_storage", "notifications", "app"]
    for name in sections:
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
