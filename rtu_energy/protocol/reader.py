"""
Bounds-checked big-endian reader over a telemetry payload.

All integer reads return Python ``int`` so 64-bit energy counters keep full
precision; no value passes through ``float`` before the caller applies a
scale factor.

Offsets may be negative, in which case they are anchored to the end of the
buffer (``-2`` is the last two bytes). Tail-anchored layouts such as ESS rely
on this.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

_WIDTHS: dict[str, int] = {
    "U8": 1,
    "U16": 2,
    "U32": 4,
    "U64": 8,
    "TEMP10": 2,
}


class FrameBoundsError(IndexError):
    """Raised when a read would run past either end of the buffer."""


def width_of(kind: str) -> int:
    """Return the byte width of a field kind.

    Raises:
        ValueError: If the kind is unknown.
    """
    try:
        return _WIDTHS[kind]
    except KeyError:
        raise ValueError(f"Unknown field kind '{kind}'") from None


class ByteReader:
    """Read fixed-width big-endian fields from an immutable byte buffer."""

    __slots__ = ("_data",)

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)

    def __len__(self) -> int:
        return len(self._data)

    def _resolve(self, offset: int, width: int) -> int:
        start = offset + len(self._data) if offset < 0 else offset
        if start < 0 or start + width > len(self._data):
            raise FrameBoundsError(
                f"read of {width} byte(s) at offset {offset} exceeds "
                f"buffer of {len(self._data)} byte(s)"
            )
        return start

    def uint(self, offset: int, width: int) -> int:
        """Unsigned big-endian integer of *width* bytes."""
        start = self._resolve(offset, width)
        return int.from_bytes(self._data[start : start + width], "big")

    def u8(self, offset: int) -> int:
        return self.uint(offset, 1)

    def u16(self, offset: int) -> int:
        return self.uint(offset, 2)

    def u32(self, offset: int) -> int:
        return self.uint(offset, 4)

    def u64(self, offset: int) -> int:
        return self.uint(offset, 8)

    def temp10(self, offset: int) -> float:
        """Signed temperature in degrees from the 2-byte tenths encoding.

        The high nibble of the first byte is a sign flag (0 = positive, any
        other value = negative); the remaining 12 bits are the magnitude in
        tenths of a degree.
        """
        start = self._resolve(offset, 2)
        b0, b1 = self._data[start], self._data[start + 1]
        magnitude = ((b0 & 0x0F) << 8) | b1
        value = magnitude / 10
        return value if (b0 & 0xF0) == 0 else -value

    def read(self, offset: int, kind: str) -> int | float:
        """Generic field read dispatched on *kind* (``U8`` .. ``U64``, ``TEMP10``)."""
        if kind == "TEMP10":
            return self.temp10(offset)
        return self.uint(offset, width_of(kind))
