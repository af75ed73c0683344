"""Logical-day arithmetic.

A logical day for ``date`` starts at ``start_hour`` local time on that date
and ends ``end_hour_extension`` hours after the following midnight. With a
10 AM start and a 3 hour extension, 2024-03-10 covers
``[2024-03-10 10:00, 2024-03-11 03:00)``. The window is intentionally not a
fixed 24 hours; late-night records belong to the day that was still running.

Windows are half open: an instant equal to a window's start belongs to it, an
instant equal to its end does not.

Timezones are always passed in explicitly as ``tz_offset_minutes``, using the
browser convention of minutes *added to local time to reach UTC* (UTC-5 is
``300``, UTC+9 is ``-540``). The process timezone is never consulted, so a
browser and a UTC server compute identical window edges.

Any "is this today" or "which day does this belong to" decision should go
through this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum

from .clock import ensure_utc
from .config import DayBoundaryConfig


class DayLabel(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    EARLIER = "earlier"
    LATER = "later"


@dataclass(slots=True, frozen=True)
class DayWindow:
    start: datetime
    end: datetime

    def __contains__(self, value: datetime) -> bool:
        return self.start <= ensure_utc(value) < self.end

    @property
    def seconds(self) -> int:
        return int((self.end - self.start).total_seconds())


def to_local(timestamp: datetime, tz_offset_minutes: int = 0) -> datetime:
    """Naive local wall time for an instant."""
    return ensure_utc(timestamp).replace(tzinfo=None) - timedelta(minutes=tz_offset_minutes)


def to_utc(local: datetime, tz_offset_minutes: int = 0) -> datetime:
    """Aware UTC instant for a naive local wall time."""
    return (local + timedelta(minutes=tz_offset_minutes)).replace(tzinfo=timezone.utc)


def local_date(timestamp: datetime, tz_offset_minutes: int = 0) -> date:
    return to_local(timestamp, tz_offset_minutes).date()


def day_window(
    day: date, config: DayBoundaryConfig, tz_offset_minutes: int = 0
) -> DayWindow:
    start_local = datetime.combine(day, time()) + timedelta(hours=config.start_hour)
    end_local = datetime.combine(day + timedelta(days=1), time()) + timedelta(
        hours=config.end_hour_extension
    )
    return DayWindow(
        start=to_utc(start_local, tz_offset_minutes),
        end=to_utc(end_local, tz_offset_minutes),
    )


def logical_day_start(
    timestamp: datetime, start_hour: int, tz_offset_minutes: int = 0
) -> date:
    """Calendar date whose logical day contains ``timestamp``.

    Uses the simple rule for history grouping: before ``start_hour`` on its
    calendar date, an instant belongs to the previous date.
    """
    local = to_local(timestamp, tz_offset_minutes)
    day_start = datetime.combine(local.date(), time()) + timedelta(hours=start_hour)
    if local < day_start:
        return local.date() - timedelta(days=1)
    return local.date()


def is_logical_today(
    timestamp: datetime, start_hour: int, now: datetime, tz_offset_minutes: int = 0
) -> bool:
    return logical_day_start(timestamp, start_hour, tz_offset_minutes) == logical_day_start(
        now, start_hour, tz_offset_minutes
    )


def is_logical_yesterday(
    timestamp: datetime, start_hour: int, now: datetime, tz_offset_minutes: int = 0
) -> bool:
    today = logical_day_start(now, start_hour, tz_offset_minutes)
    return logical_day_start(timestamp, start_hour, tz_offset_minutes) == today - timedelta(days=1)


def classify(
    timestamp: datetime, start_hour: int, now: datetime, tz_offset_minutes: int = 0
) -> DayLabel:
    today = logical_day_start(now, start_hour, tz_offset_minutes)
    day = logical_day_start(timestamp, start_hour, tz_offset_minutes)
    if day == today:
        return DayLabel.TODAY
    if day == today - timedelta(days=1):
        return DayLabel.YESTERDAY
    if day < today:
        return DayLabel.EARLIER
    return DayLabel.LATER


def owning_day(
    timestamp: datetime, config: DayBoundaryConfig, tz_offset_minutes: int = 0
) -> date | None:
    """The date whose full window contains ``timestamp``.

    When windows overlap, the previous date's extension wins. Instants in the
    gap between one day's extension and the next day's start belong to no day.
    """
    calendar_day = local_date(timestamp, tz_offset_minutes)
    for candidate in (calendar_day - timedelta(days=1), calendar_day):
        if timestamp in day_window(candidate, config, tz_offset_minutes):
            return candidate
    return None


def logical_today(
    now: datetime, config: DayBoundaryConfig, tz_offset_minutes: int = 0
) -> date:
    """The date to present as "today"."""
    local = to_local(now, tz_offset_minutes)
    if config.end_hour_extension > 0 and local.hour < config.end_hour_extension:
        return local.date() - timedelta(days=1)
    return local.date()


def relative_day_label(
    timestamp: datetime, start_hour: int, now: datetime, tz_offset_minutes: int = 0
) -> str:
    label = classify(timestamp, start_hour, now, tz_offset_minutes)
    if label is DayLabel.TODAY:
        return "Today"
    if label is DayLabel.YESTERDAY:
        return "Yesterday"
    day = logical_day_start(timestamp, start_hour, tz_offset_minutes)
    today = logical_day_start(now, start_hour, tz_offset_minutes)
    # Weeks start on Sunday.
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    if week_start <= day <= today:
        return day.strftime("%A")
    return f"{day.strftime('%b')} {day.day}, {day.year}"
