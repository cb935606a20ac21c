"""
Diagnostic views over individual frames: instant, per-slot, preview, debug.

These are pure shaping functions. The API layer fetches the rows, these
functions decode them and build JSON-ready dicts.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from rtu_energy.protocol.decoder import decode_frame
from rtu_energy.protocol.layouts import layout_for
from rtu_energy.protocol.models import DecodeResult, FrameHeader
from rtu_energy.services.carbon import round2
from rtu_energy.services.models import FrameRow

# Fields summed / averaged across slots by the multi-slot view.
_SUM_FIELDS = ("pv_power_w", "current_output_w", "pv_current_a")
_AVG_FIELDS = ("pv_voltage_v", "power_factor", "frequency_hz")


def instant_view(row: FrameRow, result: DecodeResult | None = None) -> dict[str, Any]:
    """Flatten one successfully decoded frame.

    Args:
        row: The stored frame.
        result: Its decode result, when the caller already has it.

    Returns:
        dict: Header codes, counter, operating state, faults and every
        decoded value of the variant.

    Raises:
        ValueError: If the frame does not decode to metrics.
    """
    if result is None:
        result = decode_frame(row.body)
    if not result.ok or result.header is None or result.metrics is None:
        raise ValueError(f"Frame at {row.time} did not decode: {result.failure}")

    header = result.header
    metrics = result.metrics
    multi_slot = header.energy_source is not None and header.energy_source.supports_multi_slot
    view: dict[str, Any] = {
        "ts": row.time.isoformat(),
        "energy_hex": header.energy_source_hex,
        "variant_hex": header.variant_hex,
        "variant": metrics.variant_name,
        "variant_label": _variant_label(header),
        "slot": header.slot if multi_slot else None,
        "cumulative_wh": metrics.cumulative_wh,
        "current_output_w": metrics.power_w,
        "is_operating": metrics.is_operating,
        "fault_flags": metrics.fault_flags,
        "fault_list": list(metrics.fault_list),
    }
    for name, value in metrics.values.items():
        view.setdefault(name, value)
    if metrics.get("produced_kwh") is None and metrics.cumulative_wh is not None:
        view["produced_kwh"] = metrics.cumulative_wh / 1000
    return view


def multi_view(rows: Iterable[FrameRow]) -> dict[str, Any]:
    """Latest frame per slot plus cross-slot sums and averages.

    Rows that fail to decode are left out of ``units``.
    """
    units = []
    for row in rows:
        result = decode_frame(row.body)
        if result.ok:
            units.append(instant_view(row, result))
    units.sort(key=lambda unit: unit["slot"] or 0)

    aggregate: dict[str, Any] = {"ts": max((u["ts"] for u in units), default=None)}
    for name in _SUM_FIELDS:
        present = [u[name] for u in units if u.get(name) is not None]
        aggregate[f"{name}_sum"] = round2(sum(present)) if present else None
    for name in _AVG_FIELDS:
        present = [u[name] for u in units if u.get(name) is not None]
        aggregate[f"{name}_avg"] = round2(sum(present) / len(present)) if present else None

    return {"units": units, "aggregate": aggregate}


def preview_points(rows: Iterable[FrameRow]) -> list[dict[str, Any]]:
    """Compact ``(ts, kw, wh)`` points; undecodable frames keep null values."""
    points = []
    for row in rows:
        result = decode_frame(row.body)
        header = result.header
        metrics = result.metrics
        power_w = metrics.power_w if metrics is not None else None
        points.append(
            {
                "ts": row.time.isoformat(),
                "kw": round2(power_w / 1000) if power_w is not None else None,
                "wh": metrics.cumulative_wh if metrics is not None else None,
                "energy_hex": header.energy_source_hex if header else None,
                "variant_hex": header.variant_hex if header else None,
                "slot": header.slot if header else None,
            }
        )
    return points


def debug_entries(
    rows: Iterable[FrameRow], *, accept_degraded: bool = False
) -> list[dict[str, Any]]:
    """Raw body, header bytes and decode outcome for each row."""
    entries = []
    for row in rows:
        result = decode_frame(row.body, accept_degraded=accept_degraded)
        header = result.header
        metrics = result.metrics
        entries.append(
            {
                "ts": row.time.isoformat(),
                "body_length": row.body_length,
                "head": {
                    "command": header.command if header else None,
                    "energy": header.energy_source_code if header else None,
                    "variant": header.variant if header else None,
                    "slot": header.slot_code if header else None,
                    "status": header.status if header else None,
                },
                "parsed": {
                    "ok": result.ok,
                    "reason": result.failure.value if result.failure else None,
                    "detail": result.detail,
                    "variant": metrics.variant_name if metrics else None,
                    "variant_label": _variant_label(header) if header else None,
                    "metrics": _metrics_dict(result) if metrics else None,
                },
                "raw": row.body,
            }
        )
    return entries


def _metrics_dict(result: DecodeResult) -> dict[str, Any]:
    assert result.metrics is not None
    metrics = result.metrics
    return {
        "cumulative_wh": metrics.cumulative_wh,
        "is_operating": metrics.is_operating,
        "fault_flags": metrics.fault_flags,
        "fault_list": list(metrics.fault_list),
        **metrics.values,
    }


def _variant_label(header: FrameHeader) -> str | None:
    layout = layout_for(header.energy_source_code, header.variant)
    return layout.label if layout else None
