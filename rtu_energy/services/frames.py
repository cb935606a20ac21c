"""
Query layer for stored telemetry frames.

Builds SQLAlchemy selects against ``public.log_rtureceivelog`` that apply
the pre-filter every aggregation expects: device, time range, telemetry
command prefix, minimum body length, OK status, energy source, variant and
slot. Header bytes are matched with ``split_part(body, ' ', n)`` so the
filter runs in the database without decoding.

"Per slot" queries use PostgreSQL ``DISTINCT ON`` over the slot token.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rtu_energy.db.models import RtuReceiveLog
from rtu_energy.protocol.codes import (
    COMMAND_PREFIX_HEX,
    MIN_BODY_LENGTH_WITH_COUNTER,
    EnergySource,
)
from rtu_energy.services.kpi import KPI_RECENT_DAYS
from rtu_energy.services.models import FrameRow

logger = logging.getLogger(__name__)

STATUS_FILTERS = ("ok", "any", "all")
"""``ok``: status 00; ``any``: 00 or 02 (diagnostics); ``all``: no filter."""

WIND_DEFAULT_VARIANTS = ("00", "01")


@dataclass(frozen=True, slots=True)
class FrameFilter:
    """Pre-filter applied to every frame query.

    Attributes:
        device_id: RTU IMEI.
        energy_source: Source byte to match, or ``None`` for any source.
        variant: Variant byte to match. Wind without a variant matches
            both the heartbeat (00) and telemetry (01) variants.
        slot: Slot to match; applied to multi-slot sources only.
        status: One of :data:`STATUS_FILTERS`.
        require_counter: Drop rows whose recorded body length is too short
            to carry a cumulative counter.
    """

    device_id: str
    energy_source: EnergySource | None = None
    variant: int | None = None
    slot: int | None = None
    status: str = "ok"
    require_counter: bool = True

    def __post_init__(self) -> None:  # noqa: D105
        if self.status not in STATUS_FILTERS:
            raise ValueError(f"status must be one of {STATUS_FILTERS}")


def _token(position: int):
    """SQL expression for the n-th (1-based) hex token of the body."""
    return func.split_part(RtuReceiveLog.body, " ", position)


def _conditions(flt: FrameFilter) -> list:
    conds = [
        RtuReceiveLog.rtu_imei == flt.device_id,
        func.left(RtuReceiveLog.body, 2) == COMMAND_PREFIX_HEX,
    ]
    if flt.require_counter:
        conds.append(
            func.coalesce(RtuReceiveLog.body_length, 9999)
            >= MIN_BODY_LENGTH_WITH_COUNTER
        )
    if flt.status == "ok":
        conds.append(_token(5) == "00")
    elif flt.status == "any":
        conds.append(_token(5).in_(("00", "02")))

    source = flt.energy_source
    if source is not None:
        conds.append(_token(2) == source.hex)
    if flt.variant is not None:
        conds.append(_token(3) == f"{flt.variant:02x}")
    elif source is EnergySource.WIND:
        conds.append(_token(3).in_(WIND_DEFAULT_VARIANTS))
    if flt.slot is not None and source is not None and source.supports_multi_slot:
        conds.append(_token(4) == f"{flt.slot:02x}")
    return conds


def _base_select(flt: FrameFilter) -> Select:
    return select(
        RtuReceiveLog.time.label("time"),
        RtuReceiveLog.body.label("body"),
        RtuReceiveLog.body_length.label("body_length"),
    ).where(*_conditions(flt))


async def _fetch(db: AsyncSession, stmt: Select) -> list[FrameRow]:
    result = await db.execute(stmt)
    return [
        FrameRow(time=row["time"], body=row["body"], body_length=row.get("body_length"))
        for row in result.mappings().all()
    ]


def recent_window_start(source: EnergySource, now: datetime) -> datetime:
    """Lower bound for "latest frame" lookups of *source*."""
    return now - timedelta(days=KPI_RECENT_DAYS.get(source, 14))


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def fetch_window_rows(
    db: AsyncSession,
    flt: FrameFilter,
    start: datetime,
    end: datetime,
) -> list[FrameRow]:
    """Rows in ``[start, end)``, oldest first.

    Args:
        db: Async database session.
        flt: Pre-filter.
        start: Inclusive lower bound (UTC).
        end: Exclusive upper bound (UTC).

    Returns:
        list[FrameRow]: Matching rows in ascending time order.
    """
    stmt = (
        _base_select(flt)
        .where(RtuReceiveLog.time >= start, RtuReceiveLog.time < end)
        .order_by(RtuReceiveLog.time.asc())
    )
    rows = await _fetch(db, stmt)
    logger.debug(
        "Window query: device=%s source=%s %s..%s rows=%d",
        flt.device_id,
        flt.energy_source,
        start.isoformat(),
        end.isoformat(),
        len(rows),
    )
    return rows


async def fetch_latest_per_slot(
    db: AsyncSession,
    flt: FrameFilter,
    since: datetime,
) -> list[FrameRow]:
    """Newest row per slot token at/after *since*."""
    stmt = (
        _base_select(flt)
        .where(RtuReceiveLog.time >= since)
        .distinct(_token(4))
        .order_by(_token(4), RtuReceiveLog.time.desc())
    )
    return await _fetch(db, stmt)


async def fetch_first_per_slot_after(
    db: AsyncSession,
    flt: FrameFilter,
    since: datetime,
) -> list[FrameRow]:
    """Oldest row per slot token at/after *since*."""
    stmt = (
        _base_select(flt)
        .where(RtuReceiveLog.time >= since)
        .distinct(_token(4))
        .order_by(_token(4), RtuReceiveLog.time.asc())
    )
    return await _fetch(db, stmt)


async def fetch_latest_row(
    db: AsyncSession,
    flt: FrameFilter,
    since: datetime,
) -> FrameRow | None:
    """Single newest row at/after *since*, or ``None``."""
    stmt = (
        _base_select(flt)
        .where(RtuReceiveLog.time >= since)
        .order_by(RtuReceiveLog.time.desc())
        .limit(1)
    )
    rows = await _fetch(db, stmt)
    return rows[0] if rows else None


async def fetch_recent_rows(
    db: AsyncSession,
    flt: FrameFilter,
    limit: int,
) -> list[FrameRow]:
    """Newest *limit* rows, newest first (preview and debug views)."""
    stmt = _base_select(flt).order_by(RtuReceiveLog.time.desc()).limit(limit)
    return await _fetch(db, stmt)
