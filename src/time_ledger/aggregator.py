"""Combines durable records with live timers into one total."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from .clock import Clock, SystemClock
from .config import DayBoundaryConfig
from .day_boundary import DayWindow, day_window, logical_today
from .db import RecordStore
from .models import TimeRecord
from .timers import TimerStore

logger = logging.getLogger(__name__)


class Aggregator:
    """Reads totals. Never writes anything."""

    def __init__(
        self,
        records: RecordStore,
        timers: TimerStore,
        clock: Optional[Clock] = None,
    ) -> None:
        self._records = records
        self._timers = timers
        self._clock = clock or SystemClock()

    def records_for(
        self, day: date, config: DayBoundaryConfig, tz_offset_minutes: int = 0
    ) -> list[TimeRecord]:
        window = day_window(day, config, tz_offset_minutes)
        return self._records_in(window)

    def durable_seconds(
        self, day: date, config: DayBoundaryConfig, tz_offset_minutes: int = 0
    ) -> int:
        return sum(r.duration_seconds for r in self.records_for(day, config, tz_offset_minutes))

    def live_seconds(
        self, day: date, config: DayBoundaryConfig, tz_offset_minutes: int = 0
    ) -> int:
        """Seconds of running segments that started inside the day's window.

        Paused time is excluded: it was recorded when the pause happened.
        """
        window = day_window(day, config, tz_offset_minutes)
        return sum(
            self._timers.unrecorded_seconds(entity_id)
            for entity_id, started_at in self._timers.live_segments().items()
            if started_at in window
        )

    def total_for(
        self, day: date, config: DayBoundaryConfig, tz_offset_minutes: int = 0
    ) -> int:
        return self.durable_seconds(day, config, tz_offset_minutes) + self.live_seconds(
            day, config, tz_offset_minutes
        )

    def total_today(self, config: DayBoundaryConfig, tz_offset_minutes: int = 0) -> int:
        today = logical_today(self._clock.now(), config, tz_offset_minutes)
        return self.total_for(today, config, tz_offset_minutes)

    def _records_in(self, window: DayWindow) -> list[TimeRecord]:
        try:
            return list(self._records.list_for_window(window.start, window.end))
        except Exception:
            logger.exception(
                "Could not load records for %s - %s; counting none.",
                window.start.isoformat(),
                window.end.isoformat(),
            )
            return []
