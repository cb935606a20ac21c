"""
Diagnostic endpoints: latest frame, latest per slot, preview and debug.

* ``/instant`` -- decoded metrics of the newest OK frame (optionally one slot)
* ``/instant/multi`` -- newest OK frame of every slot plus sums/averages
* ``/preview`` -- recent frames as ``(ts, kw, wh)`` points
* ``/debug`` -- raw body, header bytes and decode outcome per frame

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query

from rtu_energy.api.deps import DbSession, DeviceId, Now, Slot, Source, Variant
from rtu_energy.protocol.decoder import decode_frame
from rtu_energy.services.frames import (
    FrameFilter,
    fetch_latest_per_slot,
    fetch_latest_row,
    fetch_recent_rows,
    recent_window_start,
)
from rtu_energy.services.instant import (
    debug_entries,
    instant_view,
    multi_view,
    preview_points,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/energy", tags=["instant"])

DEBUG_OK_VALUES = ("", "1", "true", "any")


@router.get("/{source}/instant")
async def get_instant(
    source: Source,
    variant: Variant,
    db: DbSession,
    now: Now,
    imei: DeviceId,
    slot: Slot = None,
) -> dict[str, Any]:
    """Return the decoded metrics of the newest OK frame.

    Raises:
        HTTPException: 404 if no OK frame exists in the recent window.
        HTTPException: 422 if the newest frame does not decode.
    """
    pinned = slot if source.supports_multi_slot else None
    flt = FrameFilter(device_id=imei, energy_source=source, variant=variant, slot=pinned)
    row = await fetch_latest_row(db, flt, recent_window_start(source, now))
    if row is None:
        raise HTTPException(
            status_code=404,
            detail=f"No OK frame found for device '{imei}' and energy 0x{source.hex}.",
        )

    result = decode_frame(row.body)
    if not result.ok:
        logger.warning(
            "Latest frame for %s did not decode: %s (%s)",
            imei,
            result.failure,
            result.detail,
        )
        raise HTTPException(
            status_code=422,
            detail={
                "error": "parse_fail",
                "reason": result.failure.value if result.failure else None,
                "raw": row.body,
            },
        )
    return {"device_id": imei, **instant_view(row, result)}


@router.get("/{source}/instant/multi")
async def get_instant_multi(
    source: Source,
    variant: Variant,
    db: DbSession,
    now: Now,
    imei: DeviceId,
) -> dict[str, Any]:
    """Return the newest OK frame of every slot plus cross-slot aggregates."""
    flt = FrameFilter(device_id=imei, energy_source=source, variant=variant)
    rows = await fetch_latest_per_slot(db, flt, recent_window_start(source, now))
    return {"device_id": imei, "energy_hex": source.hex, **multi_view(rows)}


@router.get("/{source}/preview")
async def get_preview(
    source: Source,
    variant: Variant,
    db: DbSession,
    imei: DeviceId,
    limit: Annotated[int, Query(ge=1, le=2000)] = 200,
    ok: Annotated[bool, Query(description="Only status 00 frames.")] = False,
    slot: Slot = None,
) -> list[dict[str, Any]]:
    """Return the most recent frames as compact points, newest first."""
    flt = FrameFilter(
        device_id=imei,
        energy_source=source,
        variant=variant,
        slot=slot,
        status="ok" if ok else "all",
        require_counter=False,
    )
    return preview_points(await fetch_recent_rows(db, flt, limit))


@router.get("/{source}/debug")
async def get_debug(
    source: Source,
    variant: Variant,
    db: DbSession,
    imei: DeviceId,
    limit: Annotated[int, Query(ge=1, le=50)] = 5,
    ok: Annotated[
        str,
        Query(description="'1'/'true': status 00 only; 'any': 00 or 02; empty: all."),
    ] = "",
    slot: Slot = None,
) -> list[dict[str, Any]]:
    """Return raw frames with header bytes and decode outcome, newest first.

    Raises:
        HTTPException: 422 if ``ok`` is not a recognised value.
    """
    ok_value = ok.lower()
    if ok_value not in DEBUG_OK_VALUES:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid ok '{ok}'. Must be one of: {list(DEBUG_OK_VALUES)}.",
        )
    status = {"1": "ok", "true": "ok", "any": "any"}.get(ok_value, "all")
    flt = FrameFilter(
        device_id=imei,
        energy_source=source,
        variant=variant,
        slot=slot,
        status=status,
        require_counter=False,
    )
    rows = await fetch_recent_rows(db, flt, limit)
    return debug_entries(rows, accept_degraded=ok_value == "any")
