"""
Models shared by the aggregation services and the API layer.

``FrameRow`` and ``BucketSpan`` are internal working values (plain
dataclasses); the report types are pydantic models so routes can return them
directly as response models.

Nullable fields mean "insufficient data", never zero. The hourly breakdown
is the one deliberate exception: every hour is present and zero-filled.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel


@dataclass(frozen=True, slots=True)
class FrameRow:
    """One stored frame as returned by the telemetry store.

    Attributes:
        time: Receive timestamp (UTC, aware).
        body: Space-separated hex frame.
        body_length: Stored ``bodyLength`` column, when selected.
    """

    time: datetime
    body: str
    body_length: int | None = None


@dataclass(slots=True)
class BucketSpan:
    """First and last cumulative counter observed in one (bucket, slot)."""

    first_wh: int
    first_at: datetime
    last_wh: int
    last_at: datetime
    samples: int = 1

    def observe(self, wh: int, at: datetime) -> None:
        self.last_wh = wh
        self.last_at = at
        self.samples += 1


class SeriesRow(BaseModel):
    """Energy produced in one calendar bucket.

    Attributes:
        bucket: ``YYYY-MM-DD`` or ``YYYY-MM`` in local time.
        kwh: Energy summed over slots, rounded to 2 decimals, never negative.
        co2_kg: CO2 offset for ``kwh``.
        trees: Tree equivalent of ``co2_kg``.
        first_at: Timestamp of the earliest frame used.
        last_at: Timestamp of the latest frame used.
        reset_detected: A slot's counter went backwards inside the bucket;
            that slot contributed 0 kWh.
    """

    bucket: str
    kwh: float
    co2_kg: float
    trees: int
    first_at: datetime
    last_at: datetime
    reset_detected: bool = False


class SeriesSummary(BaseModel):
    """Grand totals; all ``None`` when the window held no usable frames."""

    total_kwh: float | None = None
    total_co2_kg: float | None = None
    total_trees: int | None = None


class HourRow(BaseModel):
    """Energy for one local hour (``"00"`` .. ``"23"``)."""

    hour: str
    kwh: float
    co2_kg: float | None = None


class HourlyBreakdown(BaseModel):
    """Exactly 24 zero-filled hours of one local day."""

    day: str
    hours: list[HourRow]
    reset_detected: bool = False


class RangeUtc(BaseModel):
    start: datetime
    end: datetime


class SeriesReport(BaseModel):
    """Bucketed series for one device and energy source."""

    energy_hex: str
    range: str | None
    bucket: str
    slot: int | None
    tz: str
    range_utc: RangeUtc
    series: list[SeriesRow]
    detail_hourly: HourlyBreakdown | None = None
    summary: SeriesSummary


class KpiSnapshot(BaseModel):
    """Headline figures for a device.

    Attributes:
        now_kw: Sum of instantaneous output over slots.
        today_kwh: Energy since local midnight.
        total_kwh: Sum of the latest cumulative counters.
        total_mwh: ``total_kwh`` in MWh.
        co2_kg: CO2 offset of ``total_kwh``.
        co2_ton: ``co2_kg`` in tonnes.
        trees: Tree equivalent of ``co2_kg``.
        last_month_avg_kw: Average power over the previous calendar month.
        inverter_efficiency_pct: Mean AC/DC efficiency over slots.
        latest_at: Timestamp of the newest frame used.
        reset_slots: Slots whose counter went backwards between boundaries.
    """

    now_kw: float | None = None
    today_kwh: float | None = None
    total_kwh: float | None = None
    total_mwh: float | None = None
    co2_kg: float | None = None
    co2_ton: float | None = None
    trees: int | None = None
    last_month_avg_kw: float | None = None
    inverter_efficiency_pct: float | None = None
    latest_at: datetime | None = None
    reset_slots: list[int] = []
