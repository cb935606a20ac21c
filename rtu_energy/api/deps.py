"""
FastAPI dependency injection providers.

Provides database sessions, settings, the request clock and the common
query parameters (device, energy source, variant, slot) shared by every
energy route.

CHANGELOG:
- 2026-10-18: Initial creation
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from string import hexdigits
from typing import Annotated

from fastapi import Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rtu_energy.config import EnergySettings, get_settings
from rtu_energy.db.session import get_async_session
from rtu_energy.protocol.codes import MAX_SLOT, EnergySource

SOURCE_ALIASES: dict[str, EnergySource] = {
    "electric": EnergySource.SOLAR,
    "solar": EnergySource.SOLAR,
    "thermal": EnergySource.SOLAR_THERMAL,
    "geothermal": EnergySource.GEOTHERMAL,
    "wind": EnergySource.WIND,
    "fuelcell": EnergySource.FUEL_CELL,
    "ess": EnergySource.ESS,
}


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    async for session in get_async_session():
        yield session


def get_now() -> datetime:
    """Current UTC time; overridden in tests to pin the clock."""
    return datetime.now(UTC)


def energy_source(
    source: Annotated[
        str,
        Path(
            description="electric|solar, thermal, geothermal, wind, fuelcell, ess, "
            "or the two-digit hex code, e.g. '04'."
        ),
    ],
) -> EnergySource:
    """Resolve the ``{source}`` path segment.

    Raises:
        HTTPException: 422 if the source name or code is unknown.
    """
    resolved = SOURCE_ALIASES.get(source.lower())
    if resolved is None and len(source) == 2 and all(c in hexdigits for c in source):
        try:
            resolved = EnergySource.from_hex(source)
        except ValueError:
            resolved = None
    if resolved is None:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid source '{source}'. Must be one of: {sorted(SOURCE_ALIASES)}.",
        )
    return resolved


def variant_code(
    variant: Annotated[
        str | None,
        Query(description="Two-digit hex variant code, e.g. '01'."),
    ] = None,
) -> int | None:
    """Parse the optional ``variant`` query parameter.

    Raises:
        HTTPException: 422 if the value is not a two-digit hex code.
    """
    if variant is None or variant == "" or variant.lower() == "auto":
        return None
    try:
        if len(variant) != 2:
            raise ValueError(variant)
        return int(variant, 16)
    except ValueError:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid variant '{variant}'. Must be a two-digit hex code.",
        ) from None


DbSession = Annotated[AsyncSession, Depends(get_db)]
Settings = Annotated[EnergySettings, Depends(get_settings)]
Now = Annotated[datetime, Depends(get_now)]
Source = Annotated[EnergySource, Depends(energy_source)]
Variant = Annotated[int | None, Depends(variant_code)]
DeviceId = Annotated[str, Query(min_length=1, description="RTU IMEI.")]
Slot = Annotated[
    int | None,
    Query(ge=0, le=MAX_SLOT, description="Slot 0-3 (multi-slot sources only)."),
]
