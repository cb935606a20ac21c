"""
Typed results produced by the frame decoder.

A decode never raises for malformed input; instead it returns a
:class:`DecodeResult` that either carries :class:`DecodedMetrics` or names the
:class:`DecodeFailure` that stopped it. Everything here is frozen, so decoding
the same hex string twice yields equal results.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from rtu_energy.protocol.codes import EnergySource


class DecodeFailure(str, Enum):
    """Reason a frame produced no metrics."""

    SHORT_FRAME = "short_frame"
    UNSUPPORTED_COMMAND = "unsupported_command"
    DEVICE_ERROR = "device_error"
    SHORT_PAYLOAD = "short_payload"
    UNKNOWN_VARIANT = "unknown_variant"
    HEARTBEAT = "heartbeat"


@dataclass(frozen=True, slots=True)
class FrameHeader:
    """The first five bytes of a telemetry frame.

    Attributes:
        command: Command byte (0x14 for telemetry).
        energy_source_code: Raw energy-source byte.
        energy_source: Parsed source, or ``None`` for an unknown code.
        variant: Device-type variant byte; meaning depends on the source.
        slot_code: Raw slot ("multi") byte.
        slot: Slot index 0-3 derived from ``slot_code``.
        status: Status byte (0x00 = OK).
    """

    command: int
    energy_source_code: int
    energy_source: EnergySource | None
    variant: int
    slot_code: int
    slot: int
    status: int

    @property
    def energy_source_hex(self) -> str:
        return f"{self.energy_source_code:02x}"

    @property
    def variant_hex(self) -> str:
        return f"{self.variant:02x}"

    @property
    def slot_hex(self) -> str:
        return f"{self.slot_code:02x}"


@dataclass(frozen=True, slots=True)
class DecodedMetrics:
    """Variant-shaped measurements decoded from one frame.

    Attributes:
        variant_name: Layout name (e.g. ``"solar_single_phase"``).
        cumulative_wh: Cumulative energy counter in Wh as an exact integer,
            or ``None`` when the payload is too short to carry one.
        is_operating: Result of the variant's operating rule.
        fault_flags: Raw 16-bit fault/status bitmap.
        fault_list: Labels of the set fault bits, lowest bit first.
        values: Remaining decoded fields keyed by name, in engineering units.
        power_field: Name of the instantaneous output-power value, if any.
    """

    variant_name: str
    cumulative_wh: int | None
    is_operating: bool
    fault_flags: int
    fault_list: tuple[str, ...]
    values: dict[str, Any] = field(default_factory=dict)
    power_field: str | None = None

    def get(self, name: str, default: Any = None) -> Any:
        """Decoded value *name*, or *default* when the variant lacks it."""
        return self.values.get(name, default)

    @property
    def power_w(self) -> float | None:
        """Instantaneous output power in W, when the variant reports one."""
        if self.power_field is None:
            return None
        return self.get(self.power_field)

    @property
    def input_power_w(self) -> float | None:
        """DC (PV) input power; only solar inverters report one."""
        return self.get("pv_power_w")

    @property
    def output_power_w(self) -> float | None:
        """AC output power, falling back to grid V x I x PF when not reported."""
        reported = self.power_w
        if reported:
            return reported
        values = self.values
        power_factor = self.get("power_factor")
        if power_factor is None:
            return reported
        if "system_voltage_v" in values:
            return values["system_voltage_v"] * values["system_current_a"] * power_factor
        if "system_r_voltage_v" in values:
            return power_factor * sum(
                values[f"system_{phase}_voltage_v"] * values[f"system_{phase}_current_a"]
                for phase in ("r", "s", "t")
            )
        return reported


@dataclass(frozen=True, slots=True)
class DecodeResult:
    """Outcome of decoding one hex frame.

    Attributes:
        header: Parsed header, ``None`` only for frames shorter than 5 bytes
            or with undecodable hex.
        metrics: Decoded measurements when the decode succeeded.
        failure: Why no metrics were produced, ``None`` on success.
        detail: Extra context for the failure (variant name for
            ``SHORT_PAYLOAD``, status label for ``DEVICE_ERROR``).
    """

    header: FrameHeader | None = None
    metrics: DecodedMetrics | None = None
    failure: DecodeFailure | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.metrics is not None

    @property
    def is_hard_failure(self) -> bool:
        """Unknown variants still return header metadata and are not hard failures."""
        return self.failure not in (None, DecodeFailure.UNKNOWN_VARIANT)

    @property
    def cumulative_wh(self) -> int | None:
        return self.metrics.cumulative_wh if self.metrics is not None else None
