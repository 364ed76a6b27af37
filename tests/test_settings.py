"""Tests for configuration loading."""

from pathlib import Path

import pytest

from finances.config import get_settings, validate_all_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    for name in (
        "GOOGLE_SHEETS_CREDENTIALS_PATH",
        "GOOGLE_SHEETS_SPREADSHEET_ID",
        "LOCAL_STORAGE_DATA_DIR",
        "NOTIFICATIONS_BUDGET_WARNING_RATIO",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Environment-driven settings."""

    def test_defaults(self):
        settings = get_settings()
        assert settings.local_storage.data_dir == Path(".finances")
        assert settings.local_storage.key_prefix == "finances-"
        assert settings.notifications.budget_warning_ratio == 0.8
        assert settings.notifications.settle_delay_seconds == 0.0

    def test_cloud_is_optional(self):
        assert get_settings().google_sheets_or_none() is None

    def test_cloud_from_environment(self, monkeypatch, tmp_path):
        credentials = tmp_path / "service-account.json"
        credentials.write_text("{}")
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-id")

        sheets = get_settings().google_sheets_or_none()

        assert sheets is not None
        assert sheets.spreadsheet_id == "sheet-id"
        assert sheets.worksheet_rows == 1000

    def test_warning_ratio_bounds(self, monkeypatch):
        monkeypatch.setenv("NOTIFICATIONS_BUDGET_WARNING_RATIO", "1.5")
        with pytest.raises(ValueError):
            get_settings().notifications

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        with pytest.raises(ValueError):
            get_settings().app

    def test_validate_all_settings(self):
        results = validate_all_settings()
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
        assert results["local_storage"] is True
        assert results["notifications"] is True
        assert results["app"] is True
