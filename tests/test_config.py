"""Tests for settings loading."""

from staffing_payroll.config import Settings


class TestSettings:
    """Test Settings.from_env."""

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "ENGINE_VERSION", "PAYROLL_DEFAULT_TO_STANDARD_PAY", "SQL_ECHO"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.database_url.startswith("postgresql+asyncpg://")
        assert settings.engine_version == "1.0.0"
        assert settings.default_to_standard_pay is True
        assert settings.sql_echo is False

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///payroll.db")
        monkeypatch.setenv("ENGINE_VERSION", "2.3.1")
        monkeypatch.setenv("PAYROLL_DEFAULT_TO_STANDARD_PAY", "False")
        monkeypatch.setenv("SQL_ECHO", "true")

        settings = Settings.from_env()

        assert settings.database_url == "sqlite+aiosqlite:///payroll.db"
        assert settings.engine_version == "2.3.1"
        assert settings.default_to_standard_pay is False
        assert settings.sql_echo is True
