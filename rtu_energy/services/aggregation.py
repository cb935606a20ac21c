"""
Series aggregation: turn per-(bucket, slot) counter spans into energy rows.

Each span contributes ``last_wh - first_wh``. A counter that went backwards
inside a bucket (device replaced, firmware reset) contributes 0 Wh and the
bucket is flagged ``reset_detected`` so the loss is visible to callers.

Slot deltas are summed as exact integers and converted to kWh once per
bucket. CO2 and tree equivalents derive from the rounded kWh with the
source's emission factor.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from rtu_energy.protocol.codes import EnergySource
from rtu_energy.services.carbon import DEFAULT_FACTORS, EmissionFactors, round2
from rtu_energy.services.models import BucketSpan, SeriesRow, SeriesSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CounterDelta:
    """Energy between two counter readings.

    Attributes:
        wh: Non-negative delta in Wh.
        reset: True when the later reading was below the earlier one; ``wh``
            is then 0.
    """

    wh: int
    reset: bool = False


def counter_delta(first_wh: int, last_wh: int) -> CounterDelta:
    """Return ``last_wh - first_wh``, or a zero delta flagged as a reset."""
    delta = last_wh - first_wh
    if delta < 0:
        return CounterDelta(wh=0, reset=True)
    return CounterDelta(wh=delta)


@dataclass(slots=True)
class _BucketTotal:
    wh: int
    first_at: datetime
    last_at: datetime
    reset: bool


def aggregate_spans(
    spans: Mapping[tuple[str, int], BucketSpan],
    energy_source: EnergySource,
    factors: EmissionFactors = DEFAULT_FACTORS,
) -> list[SeriesRow]:
    """Sum slot deltas per bucket and derive CO2/tree figures.

    Args:
        spans: Output of :meth:`BucketAccumulator.accumulate`.
        energy_source: Source used to pick the emission factor.
        factors: Emission factors.

    Returns:
        list[SeriesRow]: One row per bucket, sorted by bucket key.
    """
    totals: dict[str, _BucketTotal] = {}
    for (bucket, slot), span in spans.items():
        delta = counter_delta(span.first_wh, span.last_wh)
        if delta.reset:
            logger.info(
                "Counter reset in bucket %s slot %d: %d -> %d Wh",
                bucket,
                slot,
                span.first_wh,
                span.last_wh,
            )
        total = totals.get(bucket)
        if total is None:
            totals[bucket] = _BucketTotal(
                wh=delta.wh,
                first_at=span.first_at,
                last_at=span.last_at,
                reset=delta.reset,
            )
            continue
        total.wh += delta.wh
        total.first_at = min(total.first_at, span.first_at)
        total.last_at = max(total.last_at, span.last_at)
        total.reset = total.reset or delta.reset

    rows = []
    for bucket in sorted(totals):
        total = totals[bucket]
        kwh = round2(total.wh / 1000)
        co2_kg = factors.co2_kg(kwh, energy_source)
        rows.append(
            SeriesRow(
                bucket=bucket,
                kwh=kwh,
                co2_kg=co2_kg,
                trees=factors.trees(co2_kg),
                first_at=total.first_at,
                last_at=total.last_at,
                reset_detected=total.reset,
            )
        )
    return rows


def roll_up_months(day_rows: list[SeriesRow]) -> list[SeriesRow]:
    """Re-group day rows (``YYYY-MM-DD``) into month rows (``YYYY-MM``).

    kWh, CO2 and trees are summed; ``first_at``/``last_at`` span the month.
    """
    months: dict[str, SeriesRow] = {}
    for row in day_rows:
        month = row.bucket[:7]
        current = months.get(month)
        if current is None:
            months[month] = row.model_copy(update={"bucket": month})
            continue
        months[month] = SeriesRow(
            bucket=month,
            kwh=round2(current.kwh + row.kwh),
            co2_kg=round2(current.co2_kg + row.co2_kg),
            trees=current.trees + row.trees,
            first_at=min(current.first_at, row.first_at),
            last_at=max(current.last_at, row.last_at),
            reset_detected=current.reset_detected or row.reset_detected,
        )
    return [months[month] for month in sorted(months)]


def summarize(
    rows: list[SeriesRow],
    energy_source: EnergySource,
    factors: EmissionFactors = DEFAULT_FACTORS,
) -> SeriesSummary:
    """Grand totals over *rows*; every field is ``None`` when *rows* is empty."""
    if not rows:
        return SeriesSummary()
    total_kwh = round2(sum(row.kwh for row in rows))
    total_co2_kg = factors.co2_kg(total_kwh, energy_source)
    return SeriesSummary(
        total_kwh=total_kwh,
        total_co2_kg=total_co2_kg,
        total_trees=factors.trees(total_co2_kg),
    )
