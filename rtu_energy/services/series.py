"""
Series report builder for the ``/series`` view.

Resolves the requested window (explicit dates or a named range), clamps
yearly requests to a per-source recent window, then runs the accumulator and
aggregator over the fetched frames. Window resolution is a separate pure
function so the query layer fetches exactly the clamped window.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from rtu_energy.protocol.codes import EnergySource
from rtu_energy.services.accumulator import BucketAccumulator
from rtu_energy.services.aggregation import aggregate_spans, roll_up_months, summarize
from rtu_energy.services.carbon import DEFAULT_FACTORS, EmissionFactors
from rtu_energy.services.hourly import compute_hourly
from rtu_energy.services.models import FrameRow, RangeUtc, SeriesReport
from rtu_energy.services.timeutil import (
    TZ_NAME,
    VALID_RANGES,
    TimeWindow,
    local_day,
    local_day_bounds,
    range_window,
)

logger = logging.getLogger(__name__)

YEARLY_RECENT_DAYS: dict[EnergySource, int] = {
    EnergySource.SOLAR: 30,
    EnergySource.SOLAR_THERMAL: 30,
    EnergySource.GEOTHERMAL: 7,
    EnergySource.WIND: 14,
    EnergySource.FUEL_CELL: 14,
    EnergySource.ESS: 14,
}
"""Days of history a yearly view actually scans, per source."""


@dataclass(frozen=True, slots=True)
class SeriesRequest:
    """Parameters of one series query.

    Attributes:
        energy_source: Requested source.
        range: ``weekly``, ``monthly`` or ``yearly``. Ignored when both
            *start* and *end* are given.
        start: First local day of an explicit window.
        end: Last local day (inclusive) of an explicit window.
        slot: Pinned slot (multi-slot sources only).
        detail_hourly: Attach the hourly breakdown of the last day.
    """

    energy_source: EnergySource
    range: str = "weekly"
    start: date | None = None
    end: date | None = None
    slot: int | None = None
    detail_hourly: bool = False

    @property
    def explicit(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def effective_range(self) -> str | None:
        return None if self.explicit else self.range

    @property
    def yearly(self) -> bool:
        return self.effective_range == "yearly"


def resolve_series_window(request: SeriesRequest, now: datetime) -> TimeWindow:
    """Resolve the UTC query window for *request*.

    Explicit dates map to ``[start 00:00, end+1 00:00)`` local time. Named
    ranges end at the end of today; ``yearly`` is clamped so that
    ``start >= end - YEARLY_RECENT_DAYS[source]``.

    Raises:
        ValueError: If the range is unknown or *end* precedes *start*.
    """
    if request.explicit:
        assert request.start is not None and request.end is not None
        if request.end < request.start:
            raise ValueError("end must not be before start")
        return TimeWindow(
            local_day_bounds(request.start)[0],
            local_day_bounds(request.end)[1],
            "day",
        )

    if request.range not in VALID_RANGES:
        raise ValueError(f"range must be one of {sorted(VALID_RANGES)}")
    window = range_window(request.range, now)
    if request.range != "yearly":
        return window

    cap_days = YEARLY_RECENT_DAYS[request.energy_source]
    clamped_start = max(window.start_utc, window.end_utc - timedelta(days=cap_days))
    if clamped_start != window.start_utc:
        logger.debug(
            "Yearly window for %s clamped to %d days (start %s)",
            request.energy_source.name,
            cap_days,
            clamped_start.isoformat(),
        )
    return TimeWindow(clamped_start, window.end_utc, "day")


def build_series_report(
    rows: Sequence[FrameRow],
    request: SeriesRequest,
    window: TimeWindow,
    factors: EmissionFactors = DEFAULT_FACTORS,
) -> SeriesReport:
    """Aggregate *rows* fetched for *window* into a :class:`SeriesReport`.

    Yearly requests are accumulated per day and then rolled up to months.
    Summary totals are ``None`` when no bucket had a usable counter.
    """
    source = request.energy_source
    accumulator = BucketAccumulator(source, window.bucket, slot=request.slot)
    series = aggregate_spans(accumulator.accumulate(rows), source, factors)

    bucket = window.bucket
    if request.yearly:
        series = roll_up_months(series)
        bucket = "month"

    detail = None
    if request.detail_hourly and rows and not request.yearly:
        detail = compute_hourly(
            rows,
            source,
            local_day(rows[-1].time),
            slot=request.slot,
            factors=factors,
        )

    return SeriesReport(
        energy_hex=source.hex,
        range=request.effective_range,
        bucket=bucket,
        slot=request.slot if source.supports_multi_slot else None,
        tz=TZ_NAME,
        range_utc=RangeUtc(start=window.start_utc, end=window.end_utc),
        series=series,
        detail_hourly=detail,
        summary=summarize(series, source, factors),
    )
