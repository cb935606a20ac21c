"""
GET /v1/energy/{source}/kpi endpoint.

Fetches the boundary frames per slot (latest, first after local midnight,
first after each of the last two month starts), derives the KPI snapshot
and caches it in Redis for ``CACHE_TTL_S`` seconds. With ``detail=hourly``
the hourly breakdown of the local day is attached.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from rtu_energy.api.deps import DbSession, DeviceId, Now, Settings, Slot, Source, Variant
from rtu_energy.cache.redis_client import cache_get, cache_set, kpi_cache_key
from rtu_energy.services.frames import (
    FrameFilter,
    fetch_first_per_slot_after,
    fetch_latest_per_slot,
    fetch_window_rows,
    recent_window_start,
)
from rtu_energy.services.hourly import compute_hourly
from rtu_energy.services.kpi import KPI_RECENT_DAYS, KpiBoundaries, compute_kpis
from rtu_energy.services.models import HourlyBreakdown, KpiSnapshot
from rtu_energy.services.timeutil import (
    TZ_NAME,
    local_day,
    local_day_bounds,
    local_midnight_utc,
    month_starts_utc,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/energy", tags=["kpi"])


class KpiResponse(BaseModel):
    """Response model for the KPI endpoint.

    Attributes:
        device_id: Queried RTU IMEI.
        energy_hex: Two-character energy-source code.
        slot: Slot restricting ``today_kwh``, or ``None`` for all slots.
        tz: IANA name of the local timezone used for day/month boundaries.
        emission_factor_kg_per_kwh: CO2 factor applied.
        recent_window_days: Lookback of the latest-frame query.
        kpis: The snapshot.
        detail_hourly: Hourly breakdown of the local day, when requested.
    """

    device_id: str
    energy_hex: str
    slot: int | None
    tz: str
    emission_factor_kg_per_kwh: float
    recent_window_days: int
    kpis: KpiSnapshot
    detail_hourly: HourlyBreakdown | None = None


@router.get("/{source}/kpi", response_model=KpiResponse)
async def get_kpi(
    source: Source,
    variant: Variant,
    db: DbSession,
    settings: Settings,
    now: Now,
    imei: DeviceId,
    detail: Annotated[str | None, Query(description="'hourly' adds detail_hourly.")] = None,
    slot: Slot = None,
) -> KpiResponse:
    """Return headline KPIs for one device and energy source.

    Raises:
        HTTPException: 422 ``no_frames_for_energy`` when no OK frame exists
            within the source's recent window, or if ``detail`` is invalid.
    """
    if detail is not None and detail.lower() not in ("", "hourly"):
        raise HTTPException(status_code=422, detail="detail must be 'hourly'.")
    detail_hourly = (detail or "").lower() == "hourly"
    if not source.supports_multi_slot:
        slot = None

    cache_key = kpi_cache_key(imei, source.hex, slot, variant, detail_hourly=detail_hourly)
    cached = await cache_get(cache_key)
    if cached is not None:
        return KpiResponse.model_validate_json(cached)

    flt = FrameFilter(device_id=imei, energy_source=source, variant=variant)
    prev_month_start, this_month_start = month_starts_utc(now)
    boundaries = KpiBoundaries(
        latest=await fetch_latest_per_slot(db, flt, recent_window_start(source, now)),
        today_first=await fetch_first_per_slot_after(db, flt, local_midnight_utc(now)),
        prev_month_first=await fetch_first_per_slot_after(db, flt, prev_month_start),
        this_month_first=await fetch_first_per_slot_after(db, flt, this_month_start),
        prev_month_start=prev_month_start,
        this_month_start=this_month_start,
    )

    factors = settings.emission_factors
    snapshot = compute_kpis(boundaries, source, slot=slot, factors=factors)
    if snapshot is None:
        raise HTTPException(
            status_code=422,
            detail={
                "error": "no_frames_for_energy",
                "message": f"No OK frames for energy 0x{source.hex} on device '{imei}'.",
            },
        )

    breakdown = None
    if detail_hourly:
        today = local_day(now)
        day_flt = FrameFilter(
            device_id=imei, energy_source=source, variant=variant, slot=slot
        )
        rows = await fetch_window_rows(db, day_flt, *local_day_bounds(today))
        breakdown = compute_hourly(rows, source, today, slot=slot, factors=factors)

    response = KpiResponse(
        device_id=imei,
        energy_hex=source.hex,
        slot=slot,
        tz=TZ_NAME,
        emission_factor_kg_per_kwh=factors.for_source(source),
        recent_window_days=KPI_RECENT_DAYS[source],
        kpis=snapshot,
        detail_hourly=breakdown,
    )
    await cache_set(cache_key, response.model_dump_json(), settings.cache_ttl_s)
    logger.debug("KPI computed: device=%s source=%s", imei, source.name)
    return response
