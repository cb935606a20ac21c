"""
RTU energy telemetry package.

Decodes hexadecimal telemetry frames stored by field RTUs (solar, solar
thermal, geothermal, wind, fuel cell, ESS) and aggregates them into energy
series, KPI snapshots and hourly breakdowns served over a read-only API.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""
