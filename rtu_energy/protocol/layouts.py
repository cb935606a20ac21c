"""
Telemetry payload layouts -- single source of truth for every device variant.

Each supported (energy source, variant) pair is described by a
:class:`VariantLayout`: the minimum payload length, a table of
:class:`FieldDef` offsets, how the cumulative energy counter is read and
converted to Wh, the fault-bit labels and a named operating rule. The decoder
walks these tables through one generic read primitive, so adding a variant
means adding data here rather than another parser.

Offsets are relative to the start of the payload (byte 5 of the frame).
Negative offsets are anchored to the end of the payload.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from rtu_energy.protocol.codes import KCAL_PER_KWH, EnergySource

Values = Mapping[str, Any]

_COUNTER_UNITS = frozenset({"Wh", "kWh10", "kcal100"})

# ---------------------------------------------------------------------------
# Data definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FieldDef:
    """Definition of a single payload field.

    Attributes:
        name: Unique key of the decoded value.
        offset: Byte offset from payload start (negative = from the end).
        kind: ``"U8"``, ``"U16"``, ``"U32"``, ``"U64"`` or ``"TEMP10"``.
        divisor: Raw integer is divided by this to get engineering units.
            A divisor of 1 keeps the value an exact ``int``.
        unit: Engineering unit string.
        min_length: Payload length required before the field is read;
            shorter payloads get *default* instead. 0 means always present.
        default: Value used when the payload is shorter than *min_length*.
    """

    name: str
    offset: int
    kind: str
    divisor: int = 1
    unit: str = ""
    min_length: int = 0
    default: int | float | None = None


@dataclass(frozen=True, slots=True)
class CounterDef:
    """How the cumulative energy counter is located and converted to Wh.

    Attributes:
        offsets: Candidate 64-bit registers, combined with *combine*.
        unit: ``"Wh"`` (as-is), ``"kWh10"`` (tenths of kWh) or
            ``"kcal100"`` (hundredths of kcal).
        combine: ``"first_nonzero"`` picks the first candidate above zero
            (falling back to the last one); ``"max"`` picks the largest.
        wide_min_length: Payload length needed for the 64-bit read.
        narrow_min_length: When set, a payload shorter than
            *wide_min_length* but at least this long yields the 32-bit
            register at ``offsets[0]`` zero-extended; shorter payloads carry
            no counter at all.
    """

    offsets: tuple[int, ...]
    unit: str = "Wh"
    combine: str = "first_nonzero"
    wide_min_length: int = 0
    narrow_min_length: int | None = None


@dataclass(frozen=True, slots=True)
class VariantLayout:
    """Complete description of one device variant's payload.

    Attributes:
        energy_source: Source this layout belongs to.
        variant: Variant byte (header byte 2).
        name: Machine name, reported as ``ShortPayload`` detail.
        label: Human-readable description.
        min_length: Minimum payload length in bytes.
        fields: Field table walked by the decoder.
        counter: Cumulative energy counter definition.
        fault_labels: Bit index -> label for the fault bitmap.
        is_operating: Named operating rule for this variant.
        derive: Optional hook computing extra values from decoded ones.
        power_field: Name of the instantaneous output power value.
    """

    energy_source: EnergySource
    variant: int
    name: str
    label: str
    min_length: int
    fields: tuple[FieldDef, ...]
    counter: CounterDef | None
    fault_labels: Mapping[int, str]
    is_operating: Callable[[Values], bool]
    derive: Callable[[Values], dict[str, Any]] | None = None
    power_field: str | None = None

    def __post_init__(self) -> None:  # noqa: D105
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"Layout '{self.name}': duplicate field names")
        if self.counter is not None and self.counter.unit not in _COUNTER_UNITS:
            raise ValueError(
                f"Layout '{self.name}': unknown counter unit '{self.counter.unit}'"
            )


def fault_bits_to_list(flags: int, labels: Mapping[int, str]) -> tuple[str, ...]:
    """Return labels for every set bit of a 16-bit fault bitmap, lowest first."""
    return tuple(
        labels.get(bit, f"undefined bit #{bit}")
        for bit in range(16)
        if (flags >> bit) & 1
    )


def _no_fault(values: Values) -> bool:
    """Bit 0 of every fault bitmap means "not running"."""
    return (int(values.get("fault_flags") or 0) & 0x0001) == 0


def _positive(value: Any) -> bool:
    return value is not None and value > 0


# ---------------------------------------------------------------------------
# Fault labels
# ---------------------------------------------------------------------------

SOLAR_STATUS_LABELS: dict[int, str] = {
    0: "inverter not running",
    1: "PV overvoltage",
    2: "PV undervoltage",
    3: "PV overcurrent",
    4: "inverter IGBT error",
    5: "inverter overtemperature",
    6: "grid overvoltage",
    7: "grid undervoltage",
    8: "grid overcurrent",
    9: "grid overfrequency",
    10: "grid underfrequency",
    11: "islanding (grid outage)",
    12: "ground fault",
}

THERMAL_FAULT_LABELS: dict[int, str] = {0: "equipment not running"}
GEOTHERMAL_FAULT_LABELS: dict[int, str] = {0: "heat pump not running"}
WIND_FAULT_LABELS: dict[int, str] = {0: "inverter not running"}
FUEL_CELL_FAULT_LABELS: dict[int, str] = {0: "equipment not running"}
ESS_FAULT_LABELS: dict[int, str] = {0: "equipment not running"}

HEAT_PUMP_STATES: dict[int, str] = {0: "idle", 1: "cooling", 2: "heating"}


# ---------------------------------------------------------------------------
# Solar (0x01)
# ---------------------------------------------------------------------------


def _solar_single_derive(values: Values) -> dict[str, Any]:
    pv_power = values["pv_output_w"]
    if not pv_power:
        pv_power = values["pv_voltage_v"] * values["pv_current_a"]
    return {"pv_power_w": pv_power}


def solar_single_operating(values: Values) -> bool:
    """Single-phase inverter runs when no fault and PV power, AC output or grid voltage is present."""
    return _no_fault(values) and (
        _positive(values.get("pv_power_w"))
        or _positive(values.get("current_output_w"))
        or _positive(values.get("system_voltage_v"))
    )


SOLAR_SINGLE_PHASE = VariantLayout(
    energy_source=EnergySource.SOLAR,
    variant=0x01,
    name="solar_single_phase",
    label="Solar inverter, single phase",
    min_length=16,
    fields=(
        FieldDef("pv_voltage_v", 0, "U16", unit="V"),
        FieldDef("pv_current_a", 2, "U16", unit="A"),
        FieldDef("pv_output_w", 4, "U16", unit="W"),
        FieldDef("system_voltage_v", 6, "U16", unit="V"),
        FieldDef("system_current_a", 8, "U16", unit="A"),
        FieldDef("current_output_w", 10, "U16", unit="W"),
        FieldDef("power_factor", 12, "U16", divisor=10),
        FieldDef("frequency_hz", 14, "U16", divisor=10, unit="Hz"),
        FieldDef("fault_flags", 24, "U16", min_length=26, default=0),
    ),
    counter=CounterDef(offsets=(16,), wide_min_length=24, narrow_min_length=20),
    fault_labels=SOLAR_STATUS_LABELS,
    is_operating=solar_single_operating,
    derive=_solar_single_derive,
    power_field="current_output_w",
)


def _solar_three_derive(values: Values) -> dict[str, Any]:
    pv_power = values["pv_output_w"]
    if not pv_power:
        pv_power = sum(
            values[f"system_{phase}_voltage_v"] * values[f"system_{phase}_current_a"]
            for phase in ("r", "s", "t")
        )
    return {"pv_power_w": pv_power}


def solar_three_operating(values: Values) -> bool:
    """Three-phase inverter runs when no fault and PV power, AC output or any phase voltage is present."""
    phase_voltage = sum(
        values.get(f"system_{phase}_voltage_v") or 0 for phase in ("r", "s", "t")
    )
    return _no_fault(values) and (
        _positive(values.get("pv_power_w"))
        or _positive(values.get("current_output_w"))
        or phase_voltage > 0
    )


SOLAR_THREE_PHASE = VariantLayout(
    energy_source=EnergySource.SOLAR,
    variant=0x02,
    name="solar_three_phase",
    label="Solar inverter, three phase",
    min_length=28,
    fields=(
        FieldDef("pv_voltage_v", 0, "U16", unit="V"),
        FieldDef("pv_current_a", 2, "U16", unit="A"),
        FieldDef("pv_output_w", 4, "U32", unit="W"),
        FieldDef("system_r_voltage_v", 8, "U16", unit="V"),
        FieldDef("system_s_voltage_v", 10, "U16", unit="V"),
        FieldDef("system_t_voltage_v", 12, "U16", unit="V"),
        FieldDef("system_r_current_a", 14, "U16", unit="A"),
        FieldDef("system_s_current_a", 16, "U16", unit="A"),
        FieldDef("system_t_current_a", 18, "U16", unit="A"),
        FieldDef("current_output_w", 20, "U32", unit="W"),
        FieldDef("power_factor", 24, "U16", divisor=10),
        FieldDef("frequency_hz", 26, "U16", divisor=10, unit="Hz"),
        FieldDef("fault_flags", 36, "U16", min_length=38, default=0),
    ),
    counter=CounterDef(offsets=(28,), wide_min_length=36, narrow_min_length=32),
    fault_labels=SOLAR_STATUS_LABELS,
    is_operating=solar_three_operating,
    derive=_solar_three_derive,
    power_field="current_output_w",
)

# ---------------------------------------------------------------------------
# Solar thermal (0x02)
# ---------------------------------------------------------------------------


def _kcal_to_kwh(kcal: float) -> float:
    return round(kcal / float(KCAL_PER_KWH), 3)


def _thermal_forced_derive(values: Values) -> dict[str, Any]:
    return {
        "produced_kwh": _kcal_to_kwh(values["produced_kcal"]),
        "used_kwh": _kcal_to_kwh(values["used_kcal"]),
    }


def thermal_forced_operating(values: Values) -> bool:
    """Forced circulation runs when no fault and there is flow, a collector delta-T of 1 degree or heat counted."""
    delta_t = (values.get("outlet_temp_c") or 0) - (values.get("inlet_temp_c") or 0)
    return _no_fault(values) and (
        _positive(values.get("flow_lpm"))
        or _positive(values.get("consumed_flow_lpm"))
        or abs(delta_t) >= 1
        or _positive(values.get("produced_kcal"))
        or _positive(values.get("used_kcal"))
    )


SOLAR_THERMAL_FORCED = VariantLayout(
    energy_source=EnergySource.SOLAR_THERMAL,
    variant=0x01,
    name="solar_thermal_forced",
    label="Solar thermal, forced circulation",
    min_length=38,
    fields=(
        FieldDef("inlet_temp_c", 0, "TEMP10", unit="C"),
        FieldDef("outlet_temp_c", 2, "TEMP10", unit="C"),
        FieldDef("tank_top_temp_c", 4, "TEMP10", unit="C"),
        FieldDef("tank_bottom_temp_c", 6, "TEMP10", unit="C"),
        FieldDef("flow_lpm", 8, "U32", divisor=10, unit="L/min"),
        FieldDef("produced_kcal", 12, "U64", divisor=100, unit="kcal"),
        FieldDef("cold_temp_c", 20, "TEMP10", unit="C"),
        FieldDef("hot_temp_c", 22, "TEMP10", unit="C"),
        FieldDef("consumed_flow_lpm", 24, "U32", divisor=10, unit="L/min"),
        FieldDef("used_kcal", 28, "U64", divisor=100, unit="kcal"),
        FieldDef("fault_flags", 36, "U16"),
    ),
    counter=CounterDef(offsets=(12, 28), unit="kcal100"),
    fault_labels=THERMAL_FAULT_LABELS,
    is_operating=thermal_forced_operating,
    derive=_thermal_forced_derive,
)


def _thermal_natural_derive(values: Values) -> dict[str, Any]:
    return {"used_kwh": _kcal_to_kwh(values["used_kcal"])}


def thermal_natural_operating(values: Values) -> bool:
    """Natural circulation runs when no fault and there is flow, a supply delta-T of 1 degree or heat used."""
    delta_t = (values.get("hot_temp_c") or 0) - (values.get("cold_temp_c") or 0)
    return _no_fault(values) and (
        _positive(values.get("flow_lpm"))
        or abs(delta_t) >= 1
        or _positive(values.get("used_kcal"))
    )


SOLAR_THERMAL_NATURAL = VariantLayout(
    energy_source=EnergySource.SOLAR_THERMAL,
    variant=0x02,
    name="solar_thermal_natural",
    label="Solar thermal, natural circulation",
    min_length=18,
    fields=(
        FieldDef("cold_temp_c", 0, "TEMP10", unit="C"),
        FieldDef("hot_temp_c", 2, "TEMP10", unit="C"),
        FieldDef("flow_lpm", 4, "U32", divisor=10, unit="L/min"),
        FieldDef("used_kcal", 8, "U64", divisor=100, unit="kcal"),
        FieldDef("fault_flags", 16, "U16"),
    ),
    counter=CounterDef(offsets=(8,), unit="kcal100"),
    fault_labels=THERMAL_FAULT_LABELS,
    is_operating=thermal_natural_operating,
    derive=_thermal_natural_derive,
)

# ---------------------------------------------------------------------------
# Geothermal (0x03)
# ---------------------------------------------------------------------------


def _heat_pump_derive(values: Values) -> dict[str, Any]:
    raw = values["state_raw"]
    return {"state": HEAT_PUMP_STATES.get(raw, str(raw))}


def heat_pump_operating(values: Values) -> bool:
    """Heat pump runs when its state is not idle, no fault, and there is flow, heat or electrical output."""
    return (
        values.get("state_raw") not in (None, 0)
        and _no_fault(values)
        and (
            _positive(values.get("flow_lpm"))
            or _positive(values.get("heat_w"))
            or _positive(values.get("output_w"))
        )
    )


GEOTHERMAL_HEAT_PUMP = VariantLayout(
    energy_source=EnergySource.GEOTHERMAL,
    variant=0x01,
    name="geothermal_heat_pump",
    label="Geothermal heat pump",
    min_length=41,
    fields=(
        FieldDef("voltage_v", 0, "U16", unit="V"),
        FieldDef("current_a", 2, "U16", unit="A"),
        FieldDef("output_w", 4, "U16", unit="W"),
        FieldDef("heat_w", 6, "U32", unit="W"),
        FieldDef("produced_kwh", 10, "U64", divisor=10, unit="kWh"),
        FieldDef("used_elec_kwh", 18, "U64", divisor=10, unit="kWh"),
        FieldDef("state_raw", 26, "U8"),
        FieldDef("source_in_temp_c", 27, "TEMP10", unit="C"),
        FieldDef("source_out_temp_c", 29, "TEMP10", unit="C"),
        FieldDef("load_in_temp_c", 31, "TEMP10", unit="C"),
        FieldDef("load_out_temp_c", 33, "TEMP10", unit="C"),
        FieldDef("flow_lpm", 35, "U32", divisor=10, unit="L/min"),
        FieldDef("fault_flags", 39, "U16"),
    ),
    counter=CounterDef(offsets=(10,), unit="kWh10"),
    fault_labels=GEOTHERMAL_FAULT_LABELS,
    is_operating=heat_pump_operating,
    derive=_heat_pump_derive,
    power_field="output_w",
)


def load_side_operating(values: Values) -> bool:
    """Load side runs when no fault and either the load loop or the tap loop has flow."""
    return _no_fault(values) and (
        _positive(values.get("load_flow_lpm")) or _positive(values.get("tap_flow_lpm"))
    )


GEOTHERMAL_LOAD_SIDE = VariantLayout(
    energy_source=EnergySource.GEOTHERMAL,
    variant=0x02,
    name="geothermal_load_side",
    label="Geothermal load side",
    min_length=34,
    fields=(
        FieldDef("load_in_temp_c", 0, "TEMP10", unit="C"),
        FieldDef("load_out_temp_c", 2, "TEMP10", unit="C"),
        FieldDef("load_flow_lpm", 4, "U32", divisor=10, unit="L/min"),
        FieldDef("load_used_kwh", 8, "U64", divisor=10, unit="kWh"),
        FieldDef("tap_feed_temp_c", 16, "TEMP10", unit="C"),
        FieldDef("tap_hot_temp_c", 18, "TEMP10", unit="C"),
        FieldDef("tap_flow_lpm", 20, "U32", divisor=10, unit="L/min"),
        FieldDef("tap_used_kwh", 24, "U64", divisor=10, unit="kWh"),
        FieldDef("fault_flags", 32, "U16"),
    ),
    counter=CounterDef(offsets=(8, 24), unit="kWh10", combine="max"),
    fault_labels=GEOTHERMAL_FAULT_LABELS,
    is_operating=load_side_operating,
)

# ---------------------------------------------------------------------------
# Wind (0x04), fuel cell (0x06), ESS (0x07)
# ---------------------------------------------------------------------------


def wind_operating(values: Values) -> bool:
    """Wind turbine runs when no fault and any pre/post-conversion output or voltage is present."""
    return _no_fault(values) and any(
        _positive(values.get(name))
        for name in ("pre_output_w", "post_output_w", "pre_voltage_v", "post_voltage_v")
    )


WIND = VariantLayout(
    energy_source=EnergySource.WIND,
    variant=0x01,
    name="wind",
    label="Wind turbine",
    min_length=24,
    fields=(
        FieldDef("pre_voltage_v", 0, "U16", unit="V"),
        FieldDef("pre_current_a", 2, "U16", unit="A"),
        FieldDef("pre_output_w", 4, "U16", unit="W"),
        FieldDef("post_voltage_v", 6, "U16", unit="V"),
        FieldDef("post_current_a", 8, "U16", unit="A"),
        FieldDef("post_output_w", 10, "U16", unit="W"),
        FieldDef("frequency_hz", 12, "U16", divisor=10, unit="Hz"),
        FieldDef("fault_flags", 22, "U16"),
    ),
    counter=CounterDef(offsets=(14,)),
    fault_labels=WIND_FAULT_LABELS,
    is_operating=wind_operating,
    power_field="post_output_w",
)


def fuel_cell_operating(values: Values) -> bool:
    """Fuel cell runs when no fault and there is stack voltage, inverter voltage or inverter output."""
    return _no_fault(values) and (
        _positive(values.get("pre_voltage_v"))
        or _positive(values.get("post_voltage_v"))
        or _positive(values.get("post_output_w"))
    )


FUEL_CELL = VariantLayout(
    energy_source=EnergySource.FUEL_CELL,
    variant=0x01,
    name="fuel_cell",
    label="Fuel cell",
    min_length=56,
    fields=(
        FieldDef("pre_voltage_v", 0, "U16", unit="V"),
        FieldDef("pre_current_a", 2, "U16", unit="A"),
        FieldDef("pre_output_w", 4, "U16", unit="W"),
        FieldDef("post_voltage_v", 6, "U16", unit="V"),
        FieldDef("post_current_a", 8, "U16", unit="A"),
        FieldDef("post_output_w", 10, "U16", unit="W"),
        FieldDef("heat_generation_w", 12, "U16", unit="W"),
        FieldDef("produced_kwh", 14, "U64", divisor=10, unit="kWh"),
        FieldDef("used_heat_kwh", 22, "U64", divisor=10, unit="kWh"),
        FieldDef("used_elec_kwh", 30, "U64", divisor=10, unit="kWh"),
        FieldDef("feed_temp_c", 38, "TEMP10", unit="C"),
        FieldDef("outlet_temp_c", 40, "TEMP10", unit="C"),
        FieldDef("efficiency_pct", 42, "U16", divisor=10, unit="%"),
        FieldDef("frequency_hz", 44, "U16", divisor=10, unit="Hz"),
        FieldDef("fault_flags", 54, "U16"),
    ),
    counter=CounterDef(offsets=(46,)),
    fault_labels=FUEL_CELL_FAULT_LABELS,
    is_operating=fuel_cell_operating,
    power_field="post_output_w",
)


def ess_operating(values: Values) -> bool:
    """ESS runs when no fault and the inverter delivers output or sees grid voltage."""
    return _no_fault(values) and (
        _positive(values.get("inverter_output_w")) or _positive(values.get("grid_voltage_v"))
    )


# ESS payloads vary in length between firmware revisions; the tail
# (frequency, inverter output, counter, fault bitmap) is fixed relative to the end.
ESS = VariantLayout(
    energy_source=EnergySource.ESS,
    variant=0x01,
    name="ess",
    label="Energy storage system",
    min_length=31,
    fields=(
        FieldDef("battery_voltage_v", 0, "U16", unit="V"),
        FieldDef("battery_current_a", 2, "U16", unit="A"),
        FieldDef("grid_voltage_v", 4, "U16", unit="V"),
        FieldDef("grid_current_a", 6, "U16", unit="A"),
        FieldDef("soc_pct", 8, "U16", divisor=10, unit="%"),
        FieldDef("frequency_hz", -14, "U16", divisor=10, unit="Hz"),
        FieldDef("inverter_output_w", -12, "U16", unit="W"),
        FieldDef("fault_flags", -2, "U16"),
    ),
    counter=CounterDef(offsets=(-10,)),
    fault_labels=ESS_FAULT_LABELS,
    is_operating=ess_operating,
    power_field="inverter_output_w",
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

ALL_LAYOUTS: list[VariantLayout] = [
    SOLAR_SINGLE_PHASE,
    SOLAR_THREE_PHASE,
    SOLAR_THERMAL_FORCED,
    SOLAR_THERMAL_NATURAL,
    GEOTHERMAL_HEAT_PUMP,
    GEOTHERMAL_LOAD_SIDE,
    WIND,
    FUEL_CELL,
    ESS,
]
"""Every supported layout."""

LAYOUTS: dict[tuple[int, int], VariantLayout] = {
    (layout.energy_source.value, layout.variant): layout for layout in ALL_LAYOUTS
}
"""Lookup by (energy source code, variant code)."""

HEARTBEAT_VARIANTS: frozenset[tuple[int, int]] = frozenset(
    {(EnergySource.WIND.value, 0x00)}
)
"""Keep-alive frames that carry no measurements."""


def layout_for(energy_source_code: int, variant: int) -> VariantLayout | None:
    """Return the layout for a header, or ``None`` when the pair is unknown."""
    return LAYOUTS.get((energy_source_code, variant))
