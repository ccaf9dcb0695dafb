"""
Tests for environment-driven configuration.
"""

import pytest
from pydantic import ValidationError

from cashbook.config.settings import AppSettings, LedgerSettings, get_settings, validate_all_settings


class TestLedgerSettings:
    """Tests for bookkeeping settings."""

    def test_defaults(self, monkeypatch):
        for name in ("LEDGER_CURRENCY", "LEDGER_CARRY_THRESHOLD", "LEDGER_STORAGE_BACKEND"):
            monkeypatch.delenv(name, raising=False)

        settings = LedgerSettings(_env_file=None)

        assert settings.currency == "UGX"
        assert settings.carry_threshold == 1.0
        assert settings.approval_workflow_enabled is True
        assert settings.storage_backend == "memory"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("LEDGER_CURRENCY", "KES")
        monkeypatch.setenv("LEDGER_APPROVAL_WORKFLOW_ENABLED", "false")

        settings = LedgerSettings(_env_file=None)

        assert settings.currency == "KES"
        assert settings.approval_workflow_enabled is False

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "postgres")

        with pytest.raises(ValidationError):
            LedgerSettings(_env_file=None)


class TestAppSettings:
    def test_bad_log_format_rejected(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")

        with pytest.raises(ValidationError):
            AppSettings(_env_file=None)


class TestValidateAllSettings:
    def test_memory_backend_needs_no_sheets(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "memory")
        get_settings.cache_clear()

        results = validate_all_settings()

        assert results["ledger"] is True
        assert results["google_sheets"] is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
