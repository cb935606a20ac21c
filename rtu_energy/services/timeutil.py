"""
Local civil time helpers for bucketing and query windows.

Devices report in Korea Standard Time. KST has no daylight saving, so a fixed
UTC+9 offset is used everywhere instead of the host timezone; all returned
datetimes are timezone-aware.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, timezone

TZ_NAME = "Asia/Seoul"
KST = timezone(timedelta(hours=9), name="KST")

VALID_RANGES = frozenset({"weekly", "monthly", "yearly"})

_YMD_PATTERNS = (
    re.compile(r"^(\d{4})-(\d{2})-(\d{2})$"),
    re.compile(r"^(\d{4})(\d{2})(\d{2})$"),
)


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Half-open ``[start_utc, end_utc)`` query window with its bucket size."""

    start_utc: datetime
    end_utc: datetime
    bucket: str


def to_local(ts: datetime) -> datetime:
    """Convert an aware datetime to KST. Naive values are taken as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(KST)


def bucket_key(ts: datetime, bucket: str) -> str:
    """Return the calendar key of *ts* in local time.

    ``day`` -> ``YYYY-MM-DD``, ``month`` -> ``YYYY-MM``, ``hour`` -> ``HH``.

    Raises:
        ValueError: If *bucket* is not a known bucket size.
    """
    local = to_local(ts)
    if bucket == "day":
        return local.strftime("%Y-%m-%d")
    if bucket == "month":
        return local.strftime("%Y-%m")
    if bucket == "hour":
        return local.strftime("%H")
    raise ValueError(f"Unknown bucket '{bucket}'")


def local_day(ts: datetime) -> date:
    return to_local(ts).date()


def local_day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC bounds ``[start, end)`` of a local calendar day."""
    start = datetime.combine(day, time.min, tzinfo=KST)
    return start.astimezone(UTC), (start + timedelta(days=1)).astimezone(UTC)


def local_midnight_utc(now: datetime) -> datetime:
    """Start of the local day containing *now*, in UTC."""
    return local_day_bounds(local_day(now))[0]


def month_starts_utc(now: datetime) -> tuple[datetime, datetime]:
    """Return ``(previous_month_start, current_month_start)`` in UTC."""
    local = to_local(now)
    this_month = datetime(local.year, local.month, 1, tzinfo=KST)
    if local.month == 1:
        prev_month = datetime(local.year - 1, 12, 1, tzinfo=KST)
    else:
        prev_month = datetime(local.year, local.month - 1, 1, tzinfo=KST)
    return prev_month.astimezone(UTC), this_month.astimezone(UTC)


def range_window(range_name: str, now: datetime) -> TimeWindow:
    """Resolve a named range into a UTC window ending at the end of today.

    * ``weekly``  -- today and the six days before it
    * ``monthly`` -- first day of the current month through today
    * ``yearly``  -- January 1st through today

    Raises:
        ValueError: If *range_name* is not a known range.
    """
    today = local_day(now)
    end_utc = local_day_bounds(today)[1]
    if range_name == "weekly":
        start_day = today - timedelta(days=6)
    elif range_name == "monthly":
        start_day = today.replace(day=1)
    elif range_name == "yearly":
        start_day = today.replace(month=1, day=1)
    else:
        raise ValueError(f"range must be one of {sorted(VALID_RANGES)}")
    return TimeWindow(local_day_bounds(start_day)[0], end_utc, "day")


def parse_ymd(value: str | None) -> date | None:
    """Parse ``YYYY-MM-DD`` or ``YYYYMMDD``; ``None`` when absent or malformed."""
    if not value:
        return None
    for pattern in _YMD_PATTERNS:
        match = pattern.match(value.strip())
        if match:
            try:
                return date(int(match[1]), int(match[2]), int(match[3]))
            except ValueError:
                return None
    return None
