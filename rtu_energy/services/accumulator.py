"""
Bucket accumulator: first/last cumulative counter per (bucket, slot).

Consumes frames for one device and one query window in ascending time order
and records, for every local calendar bucket and slot, the first and last
cumulative energy counter seen. Interval energy is later derived by
subtracting the two (see :mod:`rtu_energy.services.aggregation`).

High-volume devices report every few seconds, so interior rows are sampled:
a row closer than ``min_spacing`` to the last *processed* row of the same
slot is skipped before it is decoded. The first and last row of every
(bucket, slot) are always processed, so sampling never moves a bucket
boundary. When the closing row of a bucket is unusable, the newest
skipped row that decodes takes its place.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from rtu_energy.protocol.codes import EnergySource
from rtu_energy.protocol.decoder import decode_frame
from rtu_energy.services.models import BucketSpan, FrameRow
from rtu_energy.services.timeutil import bucket_key

logger = logging.getLogger(__name__)

BucketSlot = tuple[str, int]

# ---------------------------------------------------------------------------
# Sampling spacing per energy source
# ---------------------------------------------------------------------------

SERIES_SPACING: dict[EnergySource, timedelta] = {
    EnergySource.SOLAR: timedelta(minutes=1),
}
SERIES_SPACING_DEFAULT = timedelta(minutes=10)

HOURLY_SPACING: dict[EnergySource, timedelta] = {
    EnergySource.SOLAR: timedelta(seconds=15),
}
HOURLY_SPACING_DEFAULT = timedelta(minutes=2)


def series_spacing(source: EnergySource) -> timedelta:
    """Minimum spacing between processed rows for day/month buckets."""
    return SERIES_SPACING.get(source, SERIES_SPACING_DEFAULT)


def hourly_spacing(source: EnergySource) -> timedelta:
    """Minimum spacing between processed rows for hour buckets."""
    return HOURLY_SPACING.get(source, HOURLY_SPACING_DEFAULT)


@dataclass(slots=True)
class AccumulatorStats:
    """Row counters for one accumulation pass.

    Attributes:
        rows_seen: Rows handed to the accumulator.
        rows_sampled_out: Interior rows skipped by adaptive sampling.
        rows_rejected: Rows that failed to decode, carried no counter or
            belonged to another energy source.
    """

    rows_seen: int = 0
    rows_sampled_out: int = 0
    rows_rejected: int = 0

    @property
    def rows_used(self) -> int:
        return self.rows_seen - self.rows_sampled_out - self.rows_rejected


def _slot_token(body: str) -> str:
    """Raw slot token (4th hex byte) without decoding the frame."""
    parts = body.split(maxsplit=4)
    return parts[3].lower() if len(parts) > 3 else ""


# ---------------------------------------------------------------------------
# Accumulator
# ---------------------------------------------------------------------------


class BucketAccumulator:
    """Collect first/last counters per (bucket, slot) for one energy source.

    Args:
        energy_source: Source requested by the caller; rows of any other
            source are rejected.
        bucket: ``"day"``, ``"month"`` or ``"hour"``.
        slot: Pinned slot. Applied to every row of a multi-slot source;
            ignored for single-slot sources, which always use slot 0.
        min_spacing: Sampling spacing. ``None`` uses the series spacing of
            the source; ``timedelta(0)`` disables sampling.
    """

    def __init__(
        self,
        energy_source: EnergySource,
        bucket: str = "day",
        *,
        slot: int | None = None,
        min_spacing: timedelta | None = None,
    ) -> None:
        self.energy_source = energy_source
        self.bucket = bucket
        self.slot = slot
        self.min_spacing = (
            series_spacing(energy_source) if min_spacing is None else min_spacing
        )
        self.stats = AccumulatorStats()

    def _resolve_slot(self, row_slot: int) -> int:
        if not self.energy_source.supports_multi_slot:
            return 0
        if self.slot is not None:
            return self.slot
        return row_slot

    def _counter(self, row: FrameRow) -> tuple[int, int] | None:
        """Decode *row* into ``(cumulative_wh, slot)``, or ``None`` if unusable."""
        result = decode_frame(row.body)
        wh = result.cumulative_wh
        if (
            not result.ok
            or wh is None
            or result.header is None
            or result.header.energy_source is not self.energy_source
        ):
            return None
        return wh, self._resolve_slot(result.header.slot)

    @staticmethod
    def _record(
        spans: dict[BucketSlot, BucketSpan],
        bucket: str,
        row: FrameRow,
        wh: int,
        slot: int,
    ) -> None:
        span = spans.get((bucket, slot))
        if span is None:
            spans[(bucket, slot)] = BucketSpan(
                first_wh=wh, first_at=row.time, last_wh=wh, last_at=row.time
            )
        elif row.time >= span.last_at:
            span.observe(wh, row.time)

    def accumulate(self, rows: Iterable[FrameRow]) -> dict[BucketSlot, BucketSpan]:
        """Scan *rows* (ascending by time) and return the per-bucket spans.

        Args:
            rows: Frames for one device and window, oldest first.

        Returns:
            dict: ``(bucket_key, slot) -> BucketSpan`` in first-seen order.
            Empty when no row carried a usable counter.
        """
        rows = list(rows)
        keys = [bucket_key(row.time, self.bucket) for row in rows]
        tokens = [_slot_token(row.body) for row in rows]

        # Edge rows: first and last index of every (bucket, raw slot).
        first_index: dict[tuple[str, str], int] = {}
        last_index: dict[tuple[str, str], int] = {}
        for index, group in enumerate(zip(keys, tokens)):
            first_index.setdefault(group, index)
            last_index[group] = index
        edges = set(first_index.values()) | set(last_index.values())

        spans: dict[BucketSlot, BucketSpan] = {}
        last_processed: dict[str, datetime] = {}
        last_used: dict[tuple[str, str], int] = {}
        skipped: dict[tuple[str, str], list[int]] = {}
        sampling = self.min_spacing > timedelta(0)

        for index, row in enumerate(rows):
            self.stats.rows_seen += 1
            token = tokens[index]
            group = (keys[index], token)

            if sampling and index not in edges:
                previous = last_processed.get(token)
                if previous is not None and row.time - previous < self.min_spacing:
                    self.stats.rows_sampled_out += 1
                    skipped.setdefault(group, []).append(index)
                    continue

            counter = self._counter(row)
            if counter is None:
                self.stats.rows_rejected += 1
                continue

            last_processed[token] = row.time
            last_used[group] = index
            self._record(spans, keys[index], row, *counter)

        # A rejected closing edge falls back to the newest valid skipped row.
        for group, closing in last_index.items():
            used = last_used.get(group, -1)
            if used == closing:
                continue
            for index in reversed(skipped.get(group, [])):
                if index < used:
                    break
                self.stats.rows_sampled_out -= 1
                counter = self._counter(rows[index])
                if counter is None:
                    self.stats.rows_rejected += 1
                    continue
                self._record(spans, keys[index], rows[index], *counter)
                break

        logger.debug(
            "Accumulated %s/%s: seen=%d sampled_out=%d rejected=%d spans=%d",
            self.energy_source.name,
            self.bucket,
            self.stats.rows_seen,
            self.stats.rows_sampled_out,
            self.stats.rows_rejected,
            len(spans),
        )
        return spans


def accumulate(
    rows: Iterable[FrameRow],
    energy_source: EnergySource,
    bucket: str = "day",
    *,
    slot: int | None = None,
    min_spacing: timedelta | None = None,
) -> dict[BucketSlot, BucketSpan]:
    """One-shot helper around :class:`BucketAccumulator`."""
    accumulator = BucketAccumulator(
        energy_source, bucket, slot=slot, min_spacing=min_spacing
    )
    return accumulator.accumulate(rows)
