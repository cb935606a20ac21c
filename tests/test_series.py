"""
Tests for series window resolution and report building.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest
from hexframes import frame, row, solar_frame, wind_payload

from rtu_energy.protocol.codes import EnergySource
from rtu_energy.services.series import (
    YEARLY_RECENT_DAYS,
    SeriesRequest,
    build_series_report,
    resolve_series_window,
)
from rtu_energy.services.timeutil import TimeWindow

# 2026-03-10 10:00 KST
_NOW = datetime(2026, 3, 10, 1, 0, tzinfo=UTC)
_END_OF_TODAY = datetime(2026, 3, 10, 15, 0, tzinfo=UTC)


class TestResolveWindow:
    """Named ranges, explicit dates and the yearly clamp."""

    def test_weekly_default(self) -> None:
        window = resolve_series_window(SeriesRequest(EnergySource.SOLAR), _NOW)
        assert window.end_utc == _END_OF_TODAY
        assert window.end_utc - window.start_utc == timedelta(days=7)

    def test_yearly_geothermal_clamped_to_seven_days(self) -> None:
        request = SeriesRequest(EnergySource.GEOTHERMAL, range="yearly")
        window = resolve_series_window(request, _NOW)
        assert window.start_utc == _END_OF_TODAY - timedelta(days=7)
        assert window.end_utc == _END_OF_TODAY

    @pytest.mark.parametrize("source", list(YEARLY_RECENT_DAYS))
    def test_yearly_clamp_per_source(self, source: EnergySource) -> None:
        window = resolve_series_window(SeriesRequest(source, range="yearly"), _NOW)
        assert window.end_utc - window.start_utc == timedelta(days=YEARLY_RECENT_DAYS[source])

    def test_yearly_early_january_not_widened(self) -> None:
        now = datetime(2026, 1, 3, 1, 0, tzinfo=UTC)
        window = resolve_series_window(SeriesRequest(EnergySource.GEOTHERMAL, range="yearly"), now)
        assert window.start_utc == datetime(2025, 12, 31, 15, 0, tzinfo=UTC)

    def test_explicit_dates_override_range(self) -> None:
        request = SeriesRequest(
            EnergySource.SOLAR,
            range="yearly",
            start=date(2025, 6, 1),
            end=date(2025, 6, 3),
        )
        window = resolve_series_window(request, _NOW)
        assert window.start_utc == datetime(2025, 5, 31, 15, 0, tzinfo=UTC)
        assert window.end_utc == datetime(2025, 6, 3, 15, 0, tzinfo=UTC)
        assert request.effective_range is None
        assert request.yearly is False

    def test_end_before_start(self) -> None:
        request = SeriesRequest(EnergySource.SOLAR, start=date(2026, 3, 5), end=date(2026, 3, 1))
        with pytest.raises(ValueError, match="end must not be before start"):
            resolve_series_window(request, _NOW)

    def test_unknown_range(self) -> None:
        with pytest.raises(ValueError):
            resolve_series_window(SeriesRequest(EnergySource.SOLAR, range="hourly"), _NOW)


class TestBuildSeriesReport:
    """Report assembly."""

    def _rows(self):
        day1 = datetime(2026, 3, 8, 1, 0, tzinfo=UTC)
        day2 = datetime(2026, 3, 9, 1, 0, tzinfo=UTC)
        return [
            row(day1, solar_frame(1000)),
            row(day1 + timedelta(hours=1), solar_frame(1500)),
            row(day1 + timedelta(hours=2), solar_frame(4000)),
            row(day2, solar_frame(4000)),
            row(day2 + timedelta(hours=3), solar_frame(6000)),
        ]

    def test_weekly_report(self) -> None:
        request = SeriesRequest(EnergySource.SOLAR)
        window = resolve_series_window(request, _NOW)
        report = build_series_report(self._rows(), request, window)

        assert report.energy_hex == "01"
        assert report.range == "weekly"
        assert report.bucket == "day"
        assert report.tz == "Asia/Seoul"
        assert report.range_utc.start == window.start_utc
        assert [(r.bucket, r.kwh) for r in report.series] == [
            ("2026-03-08", 3.0),
            ("2026-03-09", 2.0),
        ]
        assert report.series[0].co2_kg == 1.42
        assert report.summary.total_kwh == 5.0
        assert report.detail_hourly is None

    def test_yearly_rolls_up_to_month(self) -> None:
        request = SeriesRequest(EnergySource.SOLAR, range="yearly")
        window = resolve_series_window(request, _NOW)
        report = build_series_report(self._rows(), request, window)
        assert report.bucket == "month"
        assert [(r.bucket, r.kwh) for r in report.series] == [("2026-03", 5.0)]
        assert report.summary.total_kwh == sum(r.kwh for r in report.series)

    def test_detail_hourly_for_last_day(self) -> None:
        request = SeriesRequest(EnergySource.SOLAR, detail_hourly=True)
        window = resolve_series_window(request, _NOW)
        report = build_series_report(self._rows(), request, window)
        assert report.detail_hourly is not None
        assert report.detail_hourly.day == "2026-03-09"
        assert len(report.detail_hourly.hours) == 24

    def test_no_detail_without_rows(self) -> None:
        request = SeriesRequest(EnergySource.SOLAR, detail_hourly=True)
        window = resolve_series_window(request, _NOW)
        report = build_series_report([], request, window)
        assert report.detail_hourly is None
        assert report.series == []
        assert report.summary.total_kwh is None

    def test_slot_reported_for_solar_only(self) -> None:
        window = TimeWindow(_NOW - timedelta(days=1), _END_OF_TODAY, "day")
        solar = build_series_report([], SeriesRequest(EnergySource.SOLAR, slot=2), window)
        wind_rows = [row(_NOW, frame(0x04, 0x01, wind_payload(counter=10)))]
        wind = build_series_report(wind_rows, SeriesRequest(EnergySource.WIND, slot=2), window)
        assert solar.slot == 2
        assert wind.slot is None
        assert wind.energy_hex == "04"
