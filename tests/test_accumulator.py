"""
Tests for the bucket accumulator.

Verifies first/last tracking per (bucket, slot), adaptive sampling with
bucket-edge preservation, slot resolution and row rejection.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from hexframes import frame, row, solar_frame, solar_single_payload, wind_payload

from rtu_energy.protocol.codes import EnergySource
from rtu_energy.services.accumulator import (
    BucketAccumulator,
    accumulate,
    hourly_spacing,
    series_spacing,
)

# 2026-03-10 10:00 KST
_T0 = datetime(2026, 3, 10, 1, 0, 0, tzinfo=UTC)
_DAY = "2026-03-10"


def _wind(counter: int, *, slot: int = 0) -> str:
    return frame(0x04, 0x01, wind_payload(counter=counter), slot=slot)


class TestFirstLast:
    """First/last counters per bucket."""

    def test_three_solar_frames_one_day(self) -> None:
        rows = [
            row(_T0, solar_frame(1000)),
            row(_T0 + timedelta(hours=1), solar_frame(1500)),
            row(_T0 + timedelta(hours=2), solar_frame(4000)),
        ]
        spans = accumulate(rows, EnergySource.SOLAR)
        assert list(spans) == [(_DAY, 0)]
        span = spans[(_DAY, 0)]
        assert (span.first_wh, span.last_wh) == (1000, 4000)
        assert span.first_at == _T0
        assert span.last_at == _T0 + timedelta(hours=2)
        assert span.samples == 3

    def test_day_boundary_uses_local_time(self) -> None:
        # 14:59 UTC is 23:59 KST; 15:00 UTC is the next local day.
        before = datetime(2026, 3, 10, 14, 59, tzinfo=UTC)
        after = datetime(2026, 3, 10, 15, 0, tzinfo=UTC)
        spans = accumulate(
            [row(before, solar_frame(10)), row(after, solar_frame(20))], EnergySource.SOLAR
        )
        assert set(spans) == {("2026-03-10", 0), ("2026-03-11", 0)}

    def test_month_bucket(self) -> None:
        rows = [row(_T0, _wind(1)), row(_T0 + timedelta(days=2), _wind(5))]
        spans = accumulate(rows, EnergySource.WIND, "month")
        assert spans[("2026-03", 0)].last_wh == 5

    def test_empty_input(self) -> None:
        assert accumulate([], EnergySource.SOLAR) == {}


class TestSampling:
    """Adaptive sampling skips dense interior rows only."""

    def test_solar_rows_every_ten_seconds(self) -> None:
        rows = [
            row(_T0 + timedelta(seconds=10 * i), solar_frame(1000 + i)) for i in range(61)
        ]
        acc = BucketAccumulator(EnergySource.SOLAR, "day")
        spans = acc.accumulate(rows)

        span = spans[(_DAY, 0)]
        assert span.first_wh == 1000
        assert span.last_wh == 1060
        assert span.samples == 11
        assert acc.stats.rows_seen == 61
        assert acc.stats.rows_sampled_out == 50
        assert acc.stats.rows_used == 11

    def test_bucket_edges_survive_sampling(self) -> None:
        local_2358 = datetime(2026, 3, 10, 14, 58, tzinfo=UTC)
        rows = [
            row(local_2358, _wind(100)),
            row(local_2358 + timedelta(minutes=1), _wind(110)),
            row(local_2358 + timedelta(minutes=2), _wind(120)),
            row(local_2358 + timedelta(minutes=3), _wind(130)),
        ]
        acc = BucketAccumulator(EnergySource.WIND, "day")
        spans = acc.accumulate(rows)
        assert acc.stats.rows_sampled_out == 0
        assert (spans[("2026-03-10", 0)].first_wh, spans[("2026-03-10", 0)].last_wh) == (100, 110)
        assert (spans[("2026-03-11", 0)].first_wh, spans[("2026-03-11", 0)].last_wh) == (120, 130)

    def test_zero_spacing_disables_sampling(self) -> None:
        rows = [row(_T0 + timedelta(seconds=i), solar_frame(i)) for i in range(10)]
        acc = BucketAccumulator(EnergySource.SOLAR, min_spacing=timedelta(0))
        spans = acc.accumulate(rows)
        assert acc.stats.rows_sampled_out == 0
        assert spans[(_DAY, 0)].samples == 10

    def test_slots_are_sampled_independently(self) -> None:
        rows = []
        for i in range(4):
            ts = _T0 + timedelta(seconds=5 * i)
            rows.append(row(ts, solar_frame(100 + i, slot=0)))
            rows.append(row(ts, solar_frame(200 + i, slot=1)))
        spans = accumulate(rows, EnergySource.SOLAR)
        assert spans[(_DAY, 0)].last_wh == 103
        assert spans[(_DAY, 1)].last_wh == 203

    def test_unusable_closing_row_falls_back_to_skipped_row(self) -> None:
        rows = [
            row(_T0, _wind(1000)),
            row(_T0 + timedelta(minutes=5), _wind(3000)),
            # Wind payloads need 24 bytes; this one fails as SHORT_PAYLOAD.
            row(_T0 + timedelta(minutes=6), frame(0x04, 0x01, bytes(10))),
        ]
        acc = BucketAccumulator(EnergySource.WIND, "day")
        spans = acc.accumulate(rows)

        span = spans[(_DAY, 0)]
        assert (span.first_wh, span.last_wh) == (1000, 3000)
        assert span.last_at == _T0 + timedelta(minutes=5)
        assert acc.stats.rows_sampled_out == 0
        assert acc.stats.rows_rejected == 1
        assert acc.stats.rows_used == 2

    def test_fallback_takes_newest_decodable_skipped_row(self) -> None:
        rows = [
            row(_T0, _wind(1000)),
            row(_T0 + timedelta(minutes=2), _wind(2000)),
            row(_T0 + timedelta(minutes=4), frame(0x04, 0x01, bytes(10))),
            row(_T0 + timedelta(minutes=6), frame(0x04, 0x01, bytes(10))),
        ]
        acc = BucketAccumulator(EnergySource.WIND, "day")
        spans = acc.accumulate(rows)

        assert spans[(_DAY, 0)].last_wh == 2000
        assert acc.stats.rows_sampled_out == 0
        assert acc.stats.rows_rejected == 2

    def test_default_spacings(self) -> None:
        assert series_spacing(EnergySource.SOLAR) == timedelta(minutes=1)
        assert series_spacing(EnergySource.GEOTHERMAL) == timedelta(minutes=10)
        assert hourly_spacing(EnergySource.SOLAR) == timedelta(seconds=15)
        assert hourly_spacing(EnergySource.ESS) == timedelta(minutes=2)


class TestRejection:
    """Rows that cannot contribute are skipped, never fatal."""

    def test_device_error_and_garbage_rows_are_skipped(self) -> None:
        bad_status = frame(0x01, 0x01, solar_single_payload(counter=9_999), status=0x39)
        rows = [
            row(_T0, solar_frame(1000)),
            row(_T0 + timedelta(minutes=5), bad_status),
            row(_T0 + timedelta(minutes=10), "14 01"),
            row(_T0 + timedelta(minutes=15), solar_frame(2000)),
        ]
        acc = BucketAccumulator(EnergySource.SOLAR)
        spans = acc.accumulate(rows)
        assert (spans[(_DAY, 0)].first_wh, spans[(_DAY, 0)].last_wh) == (1000, 2000)
        assert acc.stats.rows_rejected == 2

    def test_rows_without_counter_are_skipped(self) -> None:
        no_counter = frame(0x01, 0x01, solar_single_payload(counter=None))
        rows = [row(_T0, no_counter), row(_T0 + timedelta(minutes=5), solar_frame(50))]
        spans = accumulate(rows, EnergySource.SOLAR)
        assert spans[(_DAY, 0)].first_wh == 50

    def test_other_source_is_rejected(self) -> None:
        rows = [row(_T0, _wind(100)), row(_T0 + timedelta(minutes=30), solar_frame(5))]
        acc = BucketAccumulator(EnergySource.SOLAR)
        spans = acc.accumulate(rows)
        assert list(spans) == [(_DAY, 0)]
        assert spans[(_DAY, 0)].first_wh == 5
        assert acc.stats.rows_rejected == 1


class TestSlotResolution:
    """Pinned slot applies to multi-slot sources only."""

    def test_solar_slots_tracked_separately(self) -> None:
        rows = [
            row(_T0, solar_frame(10, slot=0)),
            row(_T0, solar_frame(500, slot=3)),
        ]
        spans = accumulate(rows, EnergySource.SOLAR)
        assert set(spans) == {(_DAY, 0), (_DAY, 3)}

    def test_pinned_slot_for_solar(self) -> None:
        rows = [row(_T0, solar_frame(10, slot=1)), row(_T0 + timedelta(hours=1), solar_frame(30, slot=1))]
        spans = accumulate(rows, EnergySource.SOLAR, slot=1)
        assert list(spans) == [(_DAY, 1)]

    def test_single_slot_source_always_slot_zero(self) -> None:
        rows = [row(_T0, _wind(10, slot=2))]
        assert list(accumulate(rows, EnergySource.WIND, slot=2)) == [(_DAY, 0)]
