"""Time bucketing helpers.

All buckets are aligned to UTC: days start at midnight, weeks on Monday,
months on the 1st.  Every helper returns half-open :class:`Window` ranges.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone

from .enums import Interval, Timeframe
from .errors import InvalidWindowError
from .models import Window, ensure_utc

_ISO_DAY = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def day_start(ts: datetime) -> datetime:
    ts = ensure_utc(ts)
    return datetime.combine(ts.date(), time.min, tzinfo=timezone.utc)


def bucket_start(ts: datetime, interval: Interval) -> datetime:
    """Start of the bucket containing ``ts``."""
    start = day_start(ts)
    if interval == Interval.DAILY:
        return start
    if interval == Interval.WEEKLY:
        return start - timedelta(days=start.weekday())
    return start.replace(day=1)


def next_bucket_start(start: datetime, interval: Interval) -> datetime:
    if interval == Interval.DAILY:
        return start + timedelta(days=1)
    if interval == Interval.WEEKLY:
        return start + timedelta(days=7)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def previous_bucket_start(start: datetime, interval: Interval) -> datetime:
    if interval == Interval.DAILY:
        return start - timedelta(days=1)
    if interval == Interval.WEEKLY:
        return start - timedelta(days=7)
    if start.month == 1:
        return start.replace(year=start.year - 1, month=12)
    return start.replace(month=start.month - 1)


def trailing_buckets(interval: Interval, limit: int, now: datetime) -> list[Window]:
    """The ``limit`` buckets ending with the one containing ``now``, oldest first."""
    if limit < 1:
        raise InvalidWindowError(f"limit must be >= 1, got {limit}")
    starts = [bucket_start(now, interval)]
    while len(starts) < limit:
        starts.append(previous_bucket_start(starts[-1], interval))
    starts.reverse()
    return [Window(start=s, end=next_bucket_start(s, interval)) for s in starts]


def day_window(day: date) -> Window:
    """The UTC day ``[day, day + 1)``.

    Raises:
        InvalidWindowError: If the day is the last representable date.
    """
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    try:
        end = start + timedelta(days=1)
    except OverflowError as exc:
        raise InvalidWindowError(f"date {day.isoformat()} is out of range") from exc
    return Window(start=start, end=end)


def parse_day(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string, raising :class:`InvalidWindowError`."""
    if not isinstance(value, str) or not _ISO_DAY.fullmatch(value):
        raise InvalidWindowError(f"invalid date {value!r}, expected YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidWindowError(f"invalid date {value!r}, expected YYYY-MM-DD") from exc


def trailing_window(now: datetime, days: int) -> Window:
    now = ensure_utc(now)
    return Window(start=now - timedelta(days=days), end=now)


def timeframe_window(
    timeframe: Timeframe,
    now: datetime,
    *,
    epoch_start: datetime | None = None,
    weekly_days: int = 7,
    monthly_days: int = 30,
) -> Window:
    """Resolve an account-snapshot timeframe into a concrete window.

    ``epoch`` spans from the open epoch's start to ``now``; with no open
    epoch it falls back to the monthly lookback.
    """
    now = ensure_utc(now)
    if timeframe == Timeframe.WEEKLY:
        return trailing_window(now, weekly_days)
    if timeframe == Timeframe.EPOCH and epoch_start is not None and epoch_start < now:
        return Window(start=epoch_start, end=now)
    return trailing_window(now, monthly_days)


def complete_days(after: datetime | None, first: datetime, until: datetime) -> list[Window]:
    """Whole UTC days strictly after ``after`` (or from ``first``) that end by ``until``."""
    start = day_start(first)
    if after is not None:
        start = max(start, day_start(after) + timedelta(days=1))
    until = ensure_utc(until)
    days: list[Window] = []
    while start + timedelta(days=1) <= until:
        days.append(Window(start=start, end=start + timedelta(days=1)))
        start += timedelta(days=1)
    return days
