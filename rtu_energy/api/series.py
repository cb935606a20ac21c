"""
GET /v1/energy/{source}/series and /hourly endpoints.

``/series`` returns day buckets for explicit ``start``/``end`` dates or a
named range (``weekly``, ``monthly``, ``yearly``; yearly is rolled up to
months and clamped to the source's recent window). ``/hourly`` returns the
24-hour breakdown of a single local day.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query

from rtu_energy.api.deps import DbSession, DeviceId, Now, Settings, Slot, Source, Variant
from rtu_energy.services.frames import FrameFilter, fetch_window_rows
from rtu_energy.services.hourly import compute_hourly
from rtu_energy.services.models import HourlyBreakdown, SeriesReport
from rtu_energy.services.series import (
    SeriesRequest,
    build_series_report,
    resolve_series_window,
)
from rtu_energy.services.timeutil import (
    TZ_NAME,
    VALID_RANGES,
    local_day,
    local_day_bounds,
    parse_ymd,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/energy", tags=["series"])


# ---------------------------------------------------------------------------
# Pydantic response models
# ---------------------------------------------------------------------------


class SeriesResponse(SeriesReport):
    """Series report tagged with the queried device."""

    device_id: str


class HourlyResponse(HourlyBreakdown):
    """Hourly breakdown tagged with device, source and slot."""

    device_id: str
    energy_hex: str
    slot: int | None
    tz: str


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/{source}/series", response_model=SeriesResponse)
async def get_series(
    source: Source,
    variant: Variant,
    db: DbSession,
    settings: Settings,
    now: Now,
    imei: DeviceId,
    range_: Annotated[
        str, Query(alias="range", description="weekly, monthly or yearly.")
    ] = "weekly",
    start: Annotated[str | None, Query(description="YYYY-MM-DD or YYYYMMDD.")] = None,
    end: Annotated[str | None, Query(description="YYYY-MM-DD or YYYYMMDD.")] = None,
    detail: Annotated[str | None, Query(description="'hourly' adds detail_hourly.")] = None,
    slot: Slot = None,
) -> SeriesResponse:
    """Return calendar-bucketed energy, CO2 and tree figures.

    Raises:
        HTTPException: 422 if the range, dates or detail value are invalid.
    """
    range_name = range_.lower()
    if range_name not in VALID_RANGES:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid range '{range_}'. Must be one of: {sorted(VALID_RANGES)}.",
        )
    if detail is not None and detail.lower() not in ("", "hourly"):
        raise HTTPException(status_code=422, detail="detail must be 'hourly'.")

    start_day = parse_ymd(start)
    end_day = parse_ymd(end)
    if (start and start_day is None) or (end and end_day is None):
        raise HTTPException(status_code=422, detail="Dates must be YYYY-MM-DD.")
    if (start_day is None) != (end_day is None):
        raise HTTPException(
            status_code=422, detail="start and end must be given together."
        )

    request = SeriesRequest(
        energy_source=source,
        range=range_name,
        start=start_day,
        end=end_day,
        slot=slot if source.supports_multi_slot else None,
        detail_hourly=(detail or "").lower() == "hourly",
    )
    try:
        window = resolve_series_window(request, now)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    flt = FrameFilter(
        device_id=imei, energy_source=source, variant=variant, slot=request.slot
    )
    rows = await fetch_window_rows(db, flt, window.start_utc, window.end_utc)
    report = build_series_report(rows, request, window, settings.emission_factors)

    logger.debug(
        "Series query: device=%s source=%s range=%s rows=%d buckets=%d",
        imei,
        source.name,
        report.range,
        len(rows),
        len(report.series),
    )
    return SeriesResponse(device_id=imei, **report.model_dump())


@router.get("/{source}/hourly", response_model=HourlyResponse)
async def get_hourly(
    source: Source,
    variant: Variant,
    db: DbSession,
    settings: Settings,
    now: Now,
    imei: DeviceId,
    date: Annotated[
        str | None, Query(description="Local day YYYY-MM-DD; defaults to today.")
    ] = None,
    slot: Slot = None,
) -> HourlyResponse:
    """Return 24 zero-filled hourly kWh buckets for one local day.

    Raises:
        HTTPException: 422 if ``date`` is malformed.
    """
    day = parse_ymd(date) if date else local_day(now)
    if day is None:
        raise HTTPException(status_code=422, detail="date must be YYYY-MM-DD.")

    pinned = slot if source.supports_multi_slot else None
    flt = FrameFilter(device_id=imei, energy_source=source, variant=variant, slot=pinned)
    start_utc, end_utc = local_day_bounds(day)
    rows = await fetch_window_rows(db, flt, start_utc, end_utc)
    breakdown = compute_hourly(
        rows, source, day, slot=pinned, factors=settings.emission_factors
    )

    return HourlyResponse(
        device_id=imei,
        energy_hex=source.hex,
        slot=pinned,
        tz=TZ_NAME,
        **breakdown.model_dump(),
    )
