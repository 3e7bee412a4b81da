"""
Tests for configuration.
"""

import logging

import pytest

from recurring_ledger.config import (
    AppSettings,
    PersistenceSettings,
    ProjectionSettings,
    configure_logging,
    get_settings,
    validate_all_settings,
)
from recurring_ledger.recurrence import ProjectionEngine


class TestProjectionSettings:
    """Tests for ProjectionSettings."""

    def test_defaults(self, monkeypatch):
        """Test the default window."""
        monkeypatch.delenv("PROJECTION_MONTHS_AHEAD", raising=False)
        monkeypatch.delenv("PROJECTION_LOOKBACK_MONTHS", raising=False)
        settings = ProjectionSettings(_env_file=None)
        assert settings.months_ahead == 6
        assert settings.lookback_months == 3
        assert settings.enforce_end_date is False

    def test_environment_overrides(self, monkeypatch):
        """Test reading PROJECTION_* variables."""
        monkeypatch.setenv("PROJECTION_MONTHS_AHEAD", "12")
        monkeypatch.setenv("PROJECTION_ENFORCE_END_DATE", "true")
        settings = ProjectionSettings(_env_file=None)
        assert settings.months_ahead == 12
        assert settings.enforce_end_date is True

    def test_out_of_range_rejected(self):
        """Test the horizon bounds."""
        with pytest.raises(ValueError):
            ProjectionSettings(months_ahead=0, _env_file=None)

    def test_engine_from_settings(self):
        """Test that the engine picks up the window."""
        engine = ProjectionEngine.from_settings(
            ProjectionSettings(months_ahead=2, lookback_months=1, _env_file=None)
        )
        assert engine.months_ahead == 2
        assert engine.lookback_months == 1


class TestPersistenceSettings:
    """Tests for PersistenceSettings."""

    def test_audit_log_must_be_bare_name(self):
        """Test that the audit log cannot escape data_dir."""
        with pytest.raises(ValueError):
            PersistenceSettings(audit_log_filename="logs/audit.jsonl", _env_file=None)

    def test_validate_all_settings(self):
        """Test the per-group report."""
        get_settings.cache_clear()
        results = validate_all_settings()
        assert results["projection"] is True
        assert results["persistence"] is True
        assert results["app"] is True


class TestLoggingSetup:
    """Tests for configure_logging."""

    def test_level_from_environment(self, monkeypatch):
        """Test that LOG_LEVEL sets the root level."""
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        try:
            assert configure_logging() == "ERROR"
            assert logging.getLogger().level == logging.ERROR
        finally:
            configure_logging("INFO")

    def test_explicit_level(self):
        """Test passing a level directly."""
        try:
            assert configure_logging("warning") == "WARNING"
            assert logging.getLogger().level == logging.WARNING
        finally:
            configure_logging("INFO")

    def test_invalid_environment_level_rejected(self, monkeypatch):
        """Test the allowed level names."""
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        with pytest.raises(ValueError):
            AppSettings(_env_file=None)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
