"""
Tests for settings loading and the startup validation report.
"""

import pytest

from src.config import Settings, validate_all_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("BUDGET_WARNING_RATIO", "DEBUG_MODE", "APP_ENVIRONMENT", "GOOGLE_SHEETS_CREDENTIALS_PATH"):
        monkeypatch.delenv(name, raising=False)


class TestSettingsSections:
    """Tests for the environment-backed sections."""

    def test_defaults(self):
        settings = Settings()

        assert settings.budget.warning_ratio == 0.8
        assert settings.app.app_environment == "development"
        assert settings.app.debug_mode is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("APP_ENVIRONMENT", "production")
        monkeypatch.setenv("DEBUG_MODE", "true")
        monkeypatch.setenv("BUDGET_WARNING_RATIO", "0.5")

        settings = Settings()

        assert settings.app.app_environment == "production"
        assert settings.app.debug_mode is True
        assert settings.budget.warning_ratio == 0.5


class TestValidateAllSettings:
    """Tests for the per-section validity report."""

    def test_all_sections_valid(self):
        results = validate_all_settings(Settings())

        assert results == {"google_sheets": True, "ledger": True, "budget": True, "app": True}

    def test_invalid_section_is_reported_with_its_error(self, monkeypatch):
        monkeypatch.setenv("BUDGET_WARNING_RATIO", "1.5")

        results = validate_all_settings(Settings())

        assert results["budget"] is False
        assert "warning_ratio" in results["budget_error"]
        assert results["ledger"] is True
