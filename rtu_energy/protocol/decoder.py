"""
Pure frame decoder that turns a whitespace-hex telemetry frame into metrics.

Parses the hex tokens, reads the 5-byte header, rejects unsupported commands
and non-OK status bytes, then dispatches on (energy source, variant) to the
matching :class:`~rtu_energy.protocol.layouts.VariantLayout` and walks its
field table.

This is a pure function: no I/O, no clock, no shared state. It never raises
for malformed input; every outcome is a :class:`DecodeResult`.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from rtu_energy.protocol.codes import (
    COMMAND_TELEMETRY,
    HEADER_LENGTH,
    KCAL_PER_KWH,
    STATUS_DEGRADED,
    STATUS_OK,
    EnergySource,
    slot_from_code,
    status_label,
)
from rtu_energy.protocol.layouts import (
    HEARTBEAT_VARIANTS,
    CounterDef,
    VariantLayout,
    fault_bits_to_list,
    layout_for,
)
from rtu_energy.protocol.models import (
    DecodedMetrics,
    DecodeFailure,
    DecodeResult,
    FrameHeader,
)
from rtu_energy.protocol.reader import ByteReader

logger = logging.getLogger(__name__)

_KCAL_PER_KWH = Decimal(KCAL_PER_KWH)


# ---------------------------------------------------------------------------
# Hex and header parsing
# ---------------------------------------------------------------------------


def parse_hex(hex_frame: str | None) -> bytes | None:
    """Convert whitespace-separated two-digit hex tokens into bytes.

    Returns:
        The decoded bytes, or ``None`` if any token is not a valid byte.
    """
    tokens = (hex_frame or "").split()
    try:
        return bytes(int(token, 16) for token in tokens)
    except ValueError:
        return None


def read_header(data: bytes) -> FrameHeader:
    """Read the 5-byte header. The caller guarantees ``len(data) >= 5``."""
    source_code = data[1]
    try:
        source: EnergySource | None = EnergySource(source_code)
    except ValueError:
        source = None
    return FrameHeader(
        command=data[0],
        energy_source_code=source_code,
        energy_source=source,
        variant=data[2],
        slot_code=data[3],
        slot=slot_from_code(data[3]),
        status=data[4],
    )


# ---------------------------------------------------------------------------
# Counter conversion
# ---------------------------------------------------------------------------


def _to_wh(raw: int, unit: str) -> int:
    """Convert a raw counter register to Wh using exact integer arithmetic."""
    if unit == "kWh10":
        return raw * 100
    if unit == "kcal100":
        # raw hundredths of kcal -> Wh: raw / 100 / KCAL_PER_KWH * 1000
        wh = (Decimal(raw) * 10 / _KCAL_PER_KWH).quantize(
            Decimal(1), rounding=ROUND_HALF_UP
        )
        return max(0, int(wh))
    return raw


def read_counter(reader: ByteReader, counter: CounterDef) -> int | None:
    """Read and convert the cumulative energy counter, ``None`` if absent."""
    length = len(reader)
    if counter.narrow_min_length is not None:
        if length >= counter.wide_min_length:
            raw = reader.u64(counter.offsets[0])
        elif length >= counter.narrow_min_length:
            raw = reader.u32(counter.offsets[0])
        else:
            return None
        return _to_wh(raw, counter.unit)

    raws = [reader.u64(offset) for offset in counter.offsets]
    if counter.combine == "max":
        raw = max(raws)
    else:
        raw = next((value for value in raws if value > 0), raws[-1])
    return _to_wh(raw, counter.unit)


# ---------------------------------------------------------------------------
# Layout walk
# ---------------------------------------------------------------------------


def decode_payload(layout: VariantLayout, payload: bytes) -> DecodedMetrics:
    """Decode a payload already known to satisfy ``layout.min_length``."""
    reader = ByteReader(payload)
    values: dict[str, Any] = {}

    for fdef in layout.fields:
        if fdef.min_length and len(reader) < fdef.min_length:
            values[fdef.name] = fdef.default
            continue
        raw = reader.read(fdef.offset, fdef.kind)
        values[fdef.name] = raw / fdef.divisor if fdef.divisor != 1 else raw

    if layout.derive is not None:
        values.update(layout.derive(values))

    flags = int(values.get("fault_flags") or 0)
    cumulative_wh = (
        read_counter(reader, layout.counter) if layout.counter is not None else None
    )

    return DecodedMetrics(
        variant_name=layout.name,
        cumulative_wh=cumulative_wh,
        is_operating=bool(layout.is_operating(values)),
        fault_flags=flags,
        fault_list=fault_bits_to_list(flags, layout.fault_labels),
        values=values,
        power_field=layout.power_field,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decode_frame(hex_frame: str | None, *, accept_degraded: bool = False) -> DecodeResult:
    """Decode one hex telemetry frame.

    Args:
        hex_frame: Space-separated two-hex-digit byte tokens as stored.
        accept_degraded: Also treat status 0x02 as OK (diagnostic views).

    Returns:
        A :class:`DecodeResult`: metrics on success, otherwise the failure
        reason (``SHORT_FRAME``, ``UNSUPPORTED_COMMAND``, ``DEVICE_ERROR``,
        ``SHORT_PAYLOAD``, ``HEARTBEAT``) or header-only ``UNKNOWN_VARIANT``.
    """
    data = parse_hex(hex_frame)
    if data is None:
        logger.debug("Frame has invalid hex tokens: %r", hex_frame)
        return DecodeResult(failure=DecodeFailure.SHORT_FRAME, detail="invalid_hex")
    if len(data) < HEADER_LENGTH:
        return DecodeResult(failure=DecodeFailure.SHORT_FRAME)

    header = read_header(data)
    if header.command != COMMAND_TELEMETRY:
        return DecodeResult(header=header, failure=DecodeFailure.UNSUPPORTED_COMMAND)

    accepted = (STATUS_OK, STATUS_DEGRADED) if accept_degraded else (STATUS_OK,)
    if header.status not in accepted:
        return DecodeResult(
            header=header,
            failure=DecodeFailure.DEVICE_ERROR,
            detail=status_label(header.status),
        )

    key = (header.energy_source_code, header.variant)
    if key in HEARTBEAT_VARIANTS:
        return DecodeResult(header=header, failure=DecodeFailure.HEARTBEAT)

    layout = layout_for(*key)
    if layout is None:
        return DecodeResult(header=header, failure=DecodeFailure.UNKNOWN_VARIANT)

    payload = data[HEADER_LENGTH:]
    if len(payload) < layout.min_length:
        logger.debug(
            "Short %s payload: %d < %d bytes",
            layout.name,
            len(payload),
            layout.min_length,
        )
        return DecodeResult(
            header=header, failure=DecodeFailure.SHORT_PAYLOAD, detail=layout.name
        )

    return DecodeResult(header=header, metrics=decode_payload(layout, payload))
