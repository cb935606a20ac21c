"""
KPI snapshot computed from a handful of boundary frames per slot.

Rather than scanning history, the caller fetches four small row sets:

* the latest OK frame per slot inside the source's recent window,
* the first frame per slot at/after local midnight,
* the first frame per slot at/after the previous month start,
* the first frame per slot at/after the current month start.

Everything else (today's energy, lifetime totals, last month's average power,
inverter efficiency) is derived from those frames here.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from rtu_energy.protocol.codes import EnergySource
from rtu_energy.protocol.decoder import decode_frame
from rtu_energy.protocol.models import DecodedMetrics
from rtu_energy.services.aggregation import counter_delta
from rtu_energy.services.carbon import DEFAULT_FACTORS, EmissionFactors, round2
from rtu_energy.services.models import FrameRow, KpiSnapshot

logger = logging.getLogger(__name__)

KPI_RECENT_DAYS: dict[EnergySource, int] = {
    EnergySource.SOLAR: 14,
    EnergySource.SOLAR_THERMAL: 7,
    EnergySource.GEOTHERMAL: 7,
    EnergySource.WIND: 14,
    EnergySource.FUEL_CELL: 14,
    EnergySource.ESS: 14,
}
"""Days back the "latest frame per slot" lookup may reach."""

MAX_EFFICIENCY_PCT = 120.0


@dataclass(frozen=True, slots=True)
class KpiBoundaries:
    """Boundary frames fetched for one KPI request.

    Attributes:
        latest: Latest OK frame per slot within the recent window.
        today_first: First frame per slot at/after local midnight.
        prev_month_first: First frame per slot at/after the previous month start.
        this_month_first: First frame per slot at/after the current month start.
        prev_month_start: Previous month start (UTC).
        this_month_start: Current month start (UTC).
    """

    latest: list[FrameRow]
    prev_month_start: datetime
    this_month_start: datetime
    today_first: list[FrameRow] = field(default_factory=list)
    prev_month_first: list[FrameRow] = field(default_factory=list)
    this_month_first: list[FrameRow] = field(default_factory=list)


def inverter_efficiency(metrics: DecodedMetrics) -> float | None:
    """AC output / DC input in percent, rounded to 2 decimals.

    Returns:
        The efficiency, or ``None`` when either power is missing or not
        positive, or the ratio falls outside ``[0, 120]``.
    """
    input_w = metrics.input_power_w
    output_w = metrics.output_power_w
    if input_w is None or output_w is None or input_w <= 0 or output_w <= 0:
        return None
    efficiency = output_w / input_w * 100
    if not 0 <= efficiency <= MAX_EFFICIENCY_PCT:
        return None
    return round2(efficiency)


def _metrics_by_slot(
    rows: Iterable[FrameRow], energy_source: EnergySource
) -> dict[int, DecodedMetrics]:
    """Decode boundary rows keyed by slot, keeping the first row per slot."""
    by_slot: dict[int, DecodedMetrics] = {}
    for row in rows:
        result = decode_frame(row.body)
        if not result.ok or result.header is None:
            logger.debug("Skipping KPI boundary row at %s: %s", row.time, result.failure)
            continue
        if result.header.energy_source is not energy_source:
            continue
        slot = result.header.slot if energy_source.supports_multi_slot else 0
        by_slot.setdefault(slot, result.metrics)
    return by_slot


def _sum_deltas(
    later: dict[int, DecodedMetrics],
    earlier: dict[int, DecodedMetrics],
    slots: Iterable[int],
    resets: set[int],
) -> int | None:
    """Sum per-slot counter deltas; ``None`` when no slot has both ends."""
    total: int | None = None
    for slot in slots:
        end = later.get(slot)
        start = earlier.get(slot)
        if end is None or start is None:
            continue
        if end.cumulative_wh is None or start.cumulative_wh is None:
            continue
        delta = counter_delta(start.cumulative_wh, end.cumulative_wh)
        if delta.reset:
            resets.add(slot)
        total = (total or 0) + delta.wh
    return total


def compute_kpis(
    boundaries: KpiBoundaries,
    energy_source: EnergySource,
    *,
    slot: int | None = None,
    factors: EmissionFactors = DEFAULT_FACTORS,
) -> KpiSnapshot | None:
    """Derive a :class:`KpiSnapshot` from boundary frames.

    Args:
        boundaries: Row sets fetched by the query layer.
        energy_source: Requested source.
        slot: When set (multi-slot sources only), ``today_kwh`` covers this
            slot alone. Totals always cover every slot.
        factors: Emission factors.

    Returns:
        KpiSnapshot, or ``None`` when no slot has a latest frame.
    """
    if not boundaries.latest:
        return None

    latest = _metrics_by_slot(boundaries.latest, energy_source)
    resets: set[int] = set()

    # Instantaneous power and efficiency
    powers = [m.power_w for m in latest.values() if m.power_w is not None]
    now_kw = round2(sum(powers) / 1000) if powers else None
    efficiencies = [
        eff for eff in (inverter_efficiency(m) for m in latest.values()) if eff is not None
    ]
    efficiency_pct = (
        round(sum(efficiencies) / len(efficiencies), 1) if efficiencies else None
    )

    # Lifetime totals
    counters = [m.cumulative_wh for m in latest.values() if m.cumulative_wh is not None]
    total_wh = sum(counters) if counters else None
    total_kwh = round2(total_wh / 1000) if total_wh is not None else None
    total_mwh = round(total_wh / 1_000_000, 3) if total_wh is not None else None
    co2_kg = factors.co2_kg(total_kwh, energy_source) if total_kwh is not None else None

    # Today
    today_slots = list(latest)
    if slot is not None and energy_source.supports_multi_slot:
        today_slots = [s for s in today_slots if s == slot]
    today_wh = _sum_deltas(
        latest,
        _metrics_by_slot(boundaries.today_first, energy_source),
        today_slots,
        resets,
    )

    # Previous month average power
    this_month = _metrics_by_slot(boundaries.this_month_first, energy_source)
    month_wh = _sum_deltas(
        this_month,
        _metrics_by_slot(boundaries.prev_month_first, energy_source),
        list(this_month),
        resets,
    )
    hours = (
        boundaries.this_month_start - boundaries.prev_month_start
    ).total_seconds() / 3600
    last_month_avg_kw = (
        round2(month_wh / 1000 / hours) if month_wh is not None and hours > 0 else None
    )

    if resets:
        logger.info("Counter reset detected on slot(s) %s", sorted(resets))

    return KpiSnapshot(
        now_kw=now_kw,
        today_kwh=round2(today_wh / 1000) if today_wh is not None else None,
        total_kwh=total_kwh,
        total_mwh=total_mwh,
        co2_kg=co2_kg,
        co2_ton=round2(co2_kg / 1000) if co2_kg is not None else None,
        trees=factors.trees(co2_kg) if co2_kg is not None else None,
        last_month_avg_kw=last_month_avg_kw,
        inverter_efficiency_pct=efficiency_pct,
        latest_at=max(row.time for row in boundaries.latest),
        reset_slots=sorted(resets),
    )
