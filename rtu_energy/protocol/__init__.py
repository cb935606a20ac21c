"""
Telemetry frame protocol: wire constants, byte reader, variant layouts, decoder.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from rtu_energy.protocol.codes import EnergySource
from rtu_energy.protocol.decoder import decode_frame, parse_hex, read_header
from rtu_energy.protocol.models import (
    DecodedMetrics,
    DecodeFailure,
    DecodeResult,
    FrameHeader,
)

__all__ = [
    "DecodeFailure",
    "DecodeResult",
    "DecodedMetrics",
    "EnergySource",
    "FrameHeader",
    "decode_frame",
    "parse_hex",
    "read_header",
]
