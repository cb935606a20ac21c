"""
API configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Connection strings come from the environment or a .env file; emission
factors default to the published grid factors and may be overridden.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings

from rtu_energy.services.carbon import (
    ELECTRIC_CO2_PER_KWH,
    THERMAL_CO2_PER_KWH,
    EmissionFactors,
)


class EnergySettings(BaseSettings):
    """Configuration for the RTU energy API.

    Attributes:
        database_url: SQLAlchemy async URL of the telemetry store
            (``postgresql+asyncpg://...``).
        redis_url: Redis URL used for the KPI cache.
        cache_ttl_s: KPI cache TTL in seconds.
        electric_co2_per_kwh: kg CO2 per kWh for electric sources.
        thermal_co2_per_kwh: kg CO2 per kWh for thermal sources.
        log_level: Root log level name.
    """

    database_url: str
    redis_url: str
    cache_ttl_s: int = 5
    electric_co2_per_kwh: float = ELECTRIC_CO2_PER_KWH
    thermal_co2_per_kwh: float = THERMAL_CO2_PER_KWH
    log_level: str = "INFO"

    @field_validator("cache_ttl_s")
    @classmethod
    def cache_ttl_must_be_positive(cls, v: int) -> int:
        """Validate the cache TTL is at least one second."""
        if v < 1:
            raise ValueError("CACHE_TTL_S must be >= 1")
        return v

    @field_validator("electric_co2_per_kwh", "thermal_co2_per_kwh")
    @classmethod
    def factor_must_be_positive(cls, v: float) -> float:
        """Validate emission factors are positive."""
        if v <= 0:
            raise ValueError("CO2 emission factors must be > 0")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate and normalise the log level name."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL '{v}' is not a logging level")
        return level

    @property
    def emission_factors(self) -> EmissionFactors:
        return EmissionFactors(
            electric=self.electric_co2_per_kwh,
            thermal=self.thermal_co2_per_kwh,
        )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> EnergySettings:
    """Return the process-wide settings, loaded on first use."""
    return EnergySettings()
