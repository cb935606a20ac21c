"""
Wire-level constants for RTU telemetry frames.

Every frame starts with a 5-byte header: command, energy source, device-type
variant, slot ("multi") and status. Only the telemetry command (0x14) is in
scope; everything else is reported as unsupported by the decoder.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from enum import IntEnum

COMMAND_TELEMETRY = 0x14
"""Command byte of a telemetry frame."""

COMMAND_PREFIX_HEX = "14"
"""Two-character body prefix used by the store pre-filter."""

HEADER_LENGTH = 5

STATUS_OK = 0x00
STATUS_DEGRADED = 0x02
"""Secondary status accepted as "degraded-OK" by diagnostic views only."""

STATUS_LABELS: dict[int, str] = {
    0x39: "serial_comm_failure",
}

KCAL_PER_KWH = "860.42065"
"""kcal per kWh, kept as a string so it can seed an exact Decimal."""

MIN_BODY_LENGTH_WITH_COUNTER = 12
"""Store ``bodyLength`` below this value never carries a cumulative counter."""

MAX_SLOT = 3


class EnergySource(IntEnum):
    """Energy-source code carried in header byte 1."""

    SOLAR = 0x01
    SOLAR_THERMAL = 0x02
    GEOTHERMAL = 0x03
    WIND = 0x04
    FUEL_CELL = 0x06
    ESS = 0x07

    @property
    def hex(self) -> str:
        """Lower-case two-character code as it appears in the frame body."""
        return f"{self.value:02x}"

    @property
    def is_thermal(self) -> bool:
        """Thermal sources use the thermal CO2 emission factor."""
        return self in (EnergySource.SOLAR_THERMAL, EnergySource.GEOTHERMAL)

    @property
    def supports_multi_slot(self) -> bool:
        """Only solar inverters multiplex more than one sub-array per device."""
        return self is EnergySource.SOLAR

    @classmethod
    def from_hex(cls, code: str) -> EnergySource:
        """Look up a source by its two-character hex code.

        Raises:
            ValueError: If the code is not hex or not a known source.
        """
        return cls(int(code, 16))


def status_label(status: int) -> str:
    """Return the machine label for a non-OK status byte."""
    return STATUS_LABELS.get(status, "device_error")


def slot_from_code(code: int) -> int:
    """Map the raw slot byte to a slot index; unknown codes fall back to 0."""
    return code if 0 <= code <= MAX_SLOT else 0
