"""Wall-clock access for elapsed-time math.

Elapsed time is always derived from the difference between two timestamps read
from a clock, never from counting interval ticks. A process that is suspended
or throttled therefore neither loses nor double counts time.
"""

from __future__ import annotations

import math
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current instant as an aware UTC datetime."""


class SystemClock:
    """Reads the real wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = ensure_utc(start) if start else datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(
        self, seconds: float = 0.0, *, milliseconds: float = 0.0, minutes: float = 0.0
    ) -> datetime:
        delta = timedelta(seconds=seconds, milliseconds=milliseconds, minutes=minutes)
        with self._lock:
            self._now = self._now + delta
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = ensure_utc(value)


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up, so 2.5 becomes 3."""
    return math.floor(value + 0.5)


def precise_seconds_between(start: datetime, end: datetime) -> float:
    """Unrounded seconds from ``start`` to ``end``, clamped at zero."""
    return max(0.0, (ensure_utc(end) - ensure_utc(start)).total_seconds())


def seconds_between(start: datetime, end: datetime) -> int:
    """Whole seconds from ``start`` to ``end``, rounded half up, clamped at zero."""
    return round_half_up(precise_seconds_between(start, end))


def milliseconds_between(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() * 1000.0
