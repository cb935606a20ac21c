"""
Hand-built telemetry frames for tests.

Every builder returns the frame exactly as the gateway stores it: lower-case
two-digit hex tokens separated by single spaces.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import struct
from datetime import datetime
from unittest.mock import MagicMock

from rtu_energy.services.models import FrameRow


def u16(value: int) -> bytes:
    return struct.pack(">H", value)


def u32(value: int) -> bytes:
    return struct.pack(">I", value)


def u64(value: int) -> bytes:
    return struct.pack(">Q", value)


def temp10(degrees: float) -> bytes:
    """Encode the sign-nibble tenths-of-a-degree temperature."""
    magnitude = round(abs(degrees) * 10) & 0x0FFF
    sign = 0x10 if degrees < 0 else 0x00
    return bytes([sign | (magnitude >> 8), magnitude & 0xFF])


def to_hex(data: bytes) -> str:
    return " ".join(f"{byte:02x}" for byte in data)


def frame(
    source: int,
    variant: int,
    payload: bytes,
    *,
    slot: int = 0,
    status: int = 0,
    command: int = 0x14,
) -> str:
    return to_hex(bytes([command, source, variant, slot, status]) + payload)


# ---------------------------------------------------------------------------
# Per-variant payloads
# ---------------------------------------------------------------------------


def solar_single_payload(
    *,
    counter: int | None = 0,
    width: int = 64,
    pv_voltage: int = 300,
    pv_current: int = 5,
    pv_output: int = 1500,
    grid_voltage: int = 220,
    grid_current: int = 6,
    output: int = 1400,
    power_factor: int = 10,
    frequency: int = 600,
    flags: int = 0,
) -> bytes:
    """Single-phase solar payload.

    ``width=64`` gives the full 26-byte payload (u64 counter + fault flags),
    ``width=32`` a 20-byte payload with a u32 counter, ``counter=None`` the
    bare 16-byte minimum.
    """
    payload = (
        u16(pv_voltage)
        + u16(pv_current)
        + u16(pv_output)
        + u16(grid_voltage)
        + u16(grid_current)
        + u16(output)
        + u16(power_factor)
        + u16(frequency)
    )
    if counter is None:
        return payload
    if width == 32:
        return payload + u32(counter)
    return payload + u64(counter) + u16(flags)


def solar_frame(counter: int, *, slot: int = 0, output: int = 1400, **kwargs) -> str:
    return frame(
        0x01, 0x01, solar_single_payload(counter=counter, output=output, **kwargs), slot=slot
    )


def solar_three_payload(
    *,
    counter: int = 0,
    pv_output: int = 9000,
    output: int = 8500,
    phase_voltage: int = 380,
    phase_current: int = 8,
    power_factor: int = 10,
    flags: int = 0,
) -> bytes:
    return (
        u16(600)
        + u16(15)
        + u32(pv_output)
        + u16(phase_voltage) * 3
        + u16(phase_current) * 3
        + u32(output)
        + u16(power_factor)
        + u16(600)
        + u64(counter)
        + u16(flags)
    )


def thermal_forced_payload(
    *,
    produced_kcal100: int = 0,
    used_kcal100: int = 0,
    flow: int = 0,
    inlet: float = 20.0,
    outlet: float = 20.0,
    flags: int = 0,
) -> bytes:
    return (
        temp10(inlet)
        + temp10(outlet)
        + temp10(55.0)
        + temp10(40.0)
        + u32(flow)
        + u64(produced_kcal100)
        + temp10(15.0)
        + temp10(45.0)
        + u32(0)
        + u64(used_kcal100)
        + u16(flags)
    )


def thermal_natural_payload(
    *,
    used_kcal100: int = 0,
    cold: float = 15.0,
    hot: float = 15.0,
    flow: int = 0,
    flags: int = 0,
) -> bytes:
    return temp10(cold) + temp10(hot) + u32(flow) + u64(used_kcal100) + u16(flags)


def heat_pump_payload(
    *,
    produced_kwh10: int = 0,
    state: int = 2,
    output: int = 3000,
    heat: int = 9000,
    flow: int = 250,
    flags: int = 0,
) -> bytes:
    return (
        u16(380)
        + u16(8)
        + u16(output)
        + u32(heat)
        + u64(produced_kwh10)
        + u64(0)
        + bytes([state])
        + temp10(12.0)
        + temp10(8.0)
        + temp10(35.0)
        + temp10(40.0)
        + u32(flow)
        + u16(flags)
    )


def load_side_payload(
    *,
    load_kwh10: int = 0,
    tap_kwh10: int = 0,
    load_flow: int = 0,
    tap_flow: int = 0,
    flags: int = 0,
) -> bytes:
    return (
        temp10(35.0)
        + temp10(30.0)
        + u32(load_flow)
        + u64(load_kwh10)
        + temp10(10.0)
        + temp10(50.0)
        + u32(tap_flow)
        + u64(tap_kwh10)
        + u16(flags)
    )


def wind_payload(
    *, counter: int = 0, post_output: int = 800, flags: int = 0
) -> bytes:
    return (
        u16(48)
        + u16(20)
        + u16(900)
        + u16(230)
        + u16(4)
        + u16(post_output)
        + u16(600)
        + u64(counter)
        + u16(flags)
    )


def fuel_cell_payload(
    *, counter: int = 0, post_output: int = 700, flags: int = 0
) -> bytes:
    return (
        u16(50)
        + u16(20)
        + u16(1000)
        + u16(230)
        + u16(3)
        + u16(post_output)
        + u16(400)
        + u64(0)
        + u64(0)
        + u64(0)
        + temp10(40.0)
        + temp10(60.0)
        + u16(450)
        + u16(600)
        + u64(counter)
        + u16(flags)
    )


def ess_payload(
    *,
    counter: int = 0,
    inverter_output: int = 2500,
    grid_voltage: int = 230,
    head_padding: int = 0,
    flags: int = 0,
) -> bytes:
    """ESS payload; *head_padding* adds firmware-specific bytes before the tail."""
    head = u16(500) + u16(10) + u16(grid_voltage) + u16(11) + u16(850)
    middle = bytes(7 + head_padding)
    tail = u16(600) + u16(inverter_output) + u64(counter) + u16(flags)
    return head + middle + tail


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


def row(ts: datetime, body: str) -> FrameRow:
    return FrameRow(time=ts, body=body, body_length=len(body.split()))


def row_dict(ts: datetime, body: str) -> dict:
    """Row as returned by ``result.mappings().all()``."""
    return {"time": ts, "body": body, "body_length": len(body.split())}


def rows_result(rows: list[dict]) -> MagicMock:
    """Mock ``AsyncSession.execute`` result whose mappings yield *rows*."""
    result = MagicMock()
    result.mappings.return_value.all.return_value = rows
    return result
