"""
Hourly breakdown of one local day.

Reuses the bucket accumulator with ``hour`` buckets and the finer hourly
sampling spacing. The result always has 24 entries; hours without a usable
delta report 0 kWh rather than ``None``.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta

from rtu_energy.protocol.codes import EnergySource
from rtu_energy.services.accumulator import BucketAccumulator, hourly_spacing
from rtu_energy.services.aggregation import counter_delta
from rtu_energy.services.carbon import EmissionFactors, round2
from rtu_energy.services.models import FrameRow, HourlyBreakdown, HourRow
from rtu_energy.services.timeutil import local_day

HOURS = tuple(f"{hour:02d}" for hour in range(24))


def compute_hourly(
    rows: Iterable[FrameRow],
    energy_source: EnergySource,
    day: date,
    *,
    slot: int | None = None,
    factors: EmissionFactors | None = None,
    min_spacing: timedelta | None = None,
) -> HourlyBreakdown:
    """Compute per-hour energy for *day* (local time).

    Args:
        rows: Frames in ascending time order. Rows outside *day* are ignored.
        energy_source: Requested source.
        day: Local calendar day.
        slot: Pinned slot for multi-slot sources.
        factors: When given, each hour also carries its CO2 offset.
        min_spacing: Override of the hourly sampling spacing.

    Returns:
        HourlyBreakdown: 24 ``HourRow`` entries ``"00"`` .. ``"23"``.
    """
    day_rows = [row for row in rows if local_day(row.time) == day]
    accumulator = BucketAccumulator(
        energy_source,
        "hour",
        slot=slot,
        min_spacing=hourly_spacing(energy_source) if min_spacing is None else min_spacing,
    )
    spans = accumulator.accumulate(day_rows)

    wh_by_hour = dict.fromkeys(HOURS, 0)
    reset = False
    for (hour, _slot), span in spans.items():
        delta = counter_delta(span.first_wh, span.last_wh)
        wh_by_hour[hour] += delta.wh
        reset = reset or delta.reset

    hours = []
    for hour in HOURS:
        kwh = round2(wh_by_hour[hour] / 1000)
        co2_kg = factors.co2_kg(kwh, energy_source) if factors is not None else None
        hours.append(HourRow(hour=hour, kwh=kwh, co2_kg=co2_kg))

    return HourlyBreakdown(day=day.isoformat(), hours=hours, reset_detected=reset)
