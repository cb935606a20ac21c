"""
CO2 offset and tree-equivalent conversions.

Electric sources (solar, wind, fuel cell, ESS) and thermal sources (solar
thermal, geothermal) use different grid emission factors. Defaults match the
published factors; both are overridable through settings.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from rtu_energy.protocol.codes import EnergySource

ELECTRIC_CO2_PER_KWH = 0.4747
THERMAL_CO2_PER_KWH = 0.198
KG_CO2_PER_TREE = 6.6


@dataclass(frozen=True, slots=True)
class EmissionFactors:
    """Emission factors in kg CO2 per kWh, plus kg CO2 absorbed per tree."""

    electric: float = ELECTRIC_CO2_PER_KWH
    thermal: float = THERMAL_CO2_PER_KWH
    kg_per_tree: float = KG_CO2_PER_TREE

    def for_source(self, source: EnergySource) -> float:
        return self.thermal if source.is_thermal else self.electric

    def co2_kg(self, kwh: float, source: EnergySource) -> float:
        return round2(kwh * self.for_source(source))

    def trees(self, co2_kg: float) -> int:
        return math.floor(co2_kg / self.kg_per_tree)


DEFAULT_FACTORS = EmissionFactors()


def round2(value: float) -> float:
    return round(value, 2)
