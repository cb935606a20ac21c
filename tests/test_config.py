"""
Unit tests for API configuration (EnergySettings).

Tests verify:
- Required connection strings are enforced.
- Defaults for cache TTL, emission factors and log level.
- Numeric and log-level validation.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from rtu_energy.config import EnergySettings, get_settings
from rtu_energy.protocol.codes import EnergySource


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run from an empty directory so a local .env cannot leak in."""
    monkeypatch.chdir(tmp_path)


class TestEnergySettingsDefaults:
    """Config loads from the environment with defaults applied."""

    def test_defaults(self) -> None:
        settings = EnergySettings()
        assert settings.database_url.startswith("postgresql+asyncpg://")
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.cache_ttl_s == 5
        assert settings.electric_co2_per_kwh == 0.4747
        assert settings.thermal_co2_per_kwh == 0.198
        assert settings.log_level == "INFO"

    def test_emission_factor_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ELECTRIC_CO2_PER_KWH", "0.5")
        monkeypatch.setenv("THERMAL_CO2_PER_KWH", "0.25")
        factors = EnergySettings().emission_factors
        assert factors.for_source(EnergySource.WIND) == 0.5
        assert factors.for_source(EnergySource.GEOTHERMAL) == 0.25

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()


class TestEnergySettingsRequiredVars:
    """Missing connection strings abort startup."""

    def test_missing_database_url_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DATABASE_URL")
        with pytest.raises(ValidationError) as exc_info:
            EnergySettings()
        assert "database_url" in str(exc_info.value).lower()

    def test_missing_redis_url_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("REDIS_URL")
        with pytest.raises(ValidationError) as exc_info:
            EnergySettings()
        assert "redis_url" in str(exc_info.value).lower()

    def test_env_file_is_read(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("REDIS_URL")
        (tmp_path / ".env").write_text("REDIS_URL=redis://cache:6379/1\n", encoding="utf-8")
        assert EnergySettings().redis_url == "redis://cache:6379/1"


class TestEnergySettingsValidation:
    """Numeric constraints and log level normalisation."""

    def test_zero_ttl_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CACHE_TTL_S", "0")
        with pytest.raises(ValidationError, match="CACHE_TTL_S"):
            EnergySettings()

    def test_negative_factor_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ELECTRIC_CO2_PER_KWH", "-1")
        with pytest.raises(ValidationError, match="emission factors"):
            EnergySettings()

    def test_log_level_upper_cased(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert EnergySettings().log_level == "DEBUG"

    def test_unknown_log_level_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError, match="LOG_LEVEL"):
            EnergySettings()
