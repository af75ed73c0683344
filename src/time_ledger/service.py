"""One object wiring the time-accounting pieces together for a host."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from .activity import InputActivityWatcher, InputProbe, default_probe
from .aggregator import Aggregator
from .clock import Clock, SystemClock
from .config import DayBoundaryConfig, TrackerSettings
from .day_boundary import (
    DayLabel,
    DayWindow,
    classify,
    day_window,
    is_logical_today,
    is_logical_yesterday,
    logical_day_start,
    logical_today,
)
from .db import InMemoryRecordStore, RecordStore, SQLiteRecordStore
from .idle import IdleDetector, IdleWatcher
from .local_store import JsonFileStore, LocalStore, MemoryStore
from .models import TimeRecord
from .normalization import build_meta
from .recorder import SegmentRecorder
from .reporting import DaySummary, summarize_day
from .timers import TimerStore

logger = logging.getLogger(__name__)


class TimeAccounting:
    """Timers, idle detection and day totals behind one surface.

    ``day_config`` and ``tz_offset_minutes`` are the defaults for day math;
    every day-related method also accepts explicit values.
    """

    def __init__(
        self,
        records: RecordStore,
        *,
        local_store: Optional[LocalStore] = None,
        clock: Optional[Clock] = None,
        settings: Optional[TrackerSettings] = None,
        day_config: Optional[DayBoundaryConfig] = None,
        tz_offset_minutes: int = 0,
        synchronous_writes: bool = False,
        input_probe: Optional[InputProbe] = None,
    ) -> None:
        self.clock = clock or SystemClock()
        self.settings = settings or TrackerSettings()
        self.day_config = day_config or DayBoundaryConfig()
        self.tz_offset_minutes = tz_offset_minutes
        self.records = records
        self.local_store = local_store or MemoryStore()
        self.recorder = SegmentRecorder(records, synchronous=synchronous_writes)
        self.timers = TimerStore(self.clock, self.recorder, self.local_store)
        self.idle = IdleDetector(
            self.settings.idle_timeout_ms,
            clock=self.clock,
            throttle_ms=int(self.settings.activity_throttle.total_seconds() * 1000),
            local_store=self.local_store,
        )
        self.aggregator = Aggregator(records, self.timers, self.clock)
        self._idle_watcher = IdleWatcher(
            self.idle, self.settings.idle_poll_interval.total_seconds()
        )
        self._input_probe = input_probe
        self._input_watcher: Optional[InputActivityWatcher] = None

    @classmethod
    def open(
        cls,
        db_path: Optional[Path] = None,
        state_path: Optional[Path] = None,
        **kwargs,
    ) -> "TimeAccounting":
        """Build on SQLite and a JSON state file; either may be omitted."""
        records: RecordStore = SQLiteRecordStore(db_path) if db_path else InMemoryRecordStore()
        settings = kwargs.get("settings") or TrackerSettings()
        local_store: LocalStore = (
            JsonFileStore(state_path, max_bytes=settings.local_store_max_bytes)
            if state_path
            else MemoryStore()
        )
        return cls(records, local_store=local_store, **kwargs)

    # Timers

    def register_entity(
        self,
        entity_id: str,
        label: Optional[str] = None,
        category_label: Optional[str] = None,
        category_color: Optional[str] = None,
        activity_type: Optional[str] = None,
    ) -> None:
        self.timers.register_meta(
            build_meta(entity_id, label, category_label, category_color, activity_type)
        )

    def start(self, entity_id: str) -> None:
        self.timers.start(entity_id)

    def pause(self, entity_id: str) -> None:
        self.timers.pause(entity_id)

    def resume(self, entity_id: str) -> None:
        self.timers.resume(entity_id)

    def stop(self, entity_id: str) -> int:
        return self.timers.stop(entity_id)

    def reset(self, entity_id: str) -> None:
        self.timers.reset(entity_id)

    def elapsed_seconds(self, entity_id: str) -> int:
        return self.timers.elapsed_seconds(entity_id)

    # Idle

    @property
    def is_idle(self) -> bool:
        return self.idle.is_idle

    def check_idle(self) -> bool:
        """Run the idle countdown now and return the resulting state."""
        return self.idle.check()

    def reset_idle(self) -> None:
        self.idle.reset_idle()

    # Day boundaries

    def day_window(self, day: date, config: Optional[DayBoundaryConfig] = None) -> DayWindow:
        return day_window(day, config or self.day_config, self.tz_offset_minutes)

    def logical_day_start(self, timestamp: datetime) -> date:
        return logical_day_start(timestamp, self.day_config.start_hour, self.tz_offset_minutes)

    def is_logical_today(self, timestamp: datetime) -> bool:
        return is_logical_today(
            timestamp, self.day_config.start_hour, self.clock.now(), self.tz_offset_minutes
        )

    def is_logical_yesterday(self, timestamp: datetime) -> bool:
        return is_logical_yesterday(
            timestamp, self.day_config.start_hour, self.clock.now(), self.tz_offset_minutes
        )

    def classify(self, timestamp: datetime) -> DayLabel:
        return classify(
            timestamp, self.day_config.start_hour, self.clock.now(), self.tz_offset_minutes
        )

    def logical_today(self, config: Optional[DayBoundaryConfig] = None) -> date:
        return logical_today(self.clock.now(), config or self.day_config, self.tz_offset_minutes)

    # Totals

    def total_for(
        self,
        day: date,
        config: Optional[DayBoundaryConfig] = None,
        tz_offset_minutes: Optional[int] = None,
    ) -> int:
        return self.aggregator.total_for(
            day,
            config or self.day_config,
            self.tz_offset_minutes if tz_offset_minutes is None else tz_offset_minutes,
        )

    def records_for(
        self,
        day: date,
        config: Optional[DayBoundaryConfig] = None,
        tz_offset_minutes: Optional[int] = None,
    ) -> list[TimeRecord]:
        return self.aggregator.records_for(
            day,
            config or self.day_config,
            self.tz_offset_minutes if tz_offset_minutes is None else tz_offset_minutes,
        )

    def summary_for(
        self,
        day: date,
        config: Optional[DayBoundaryConfig] = None,
        tz_offset_minutes: Optional[int] = None,
    ) -> DaySummary:
        config = config or self.day_config
        tz = self.tz_offset_minutes if tz_offset_minutes is None else tz_offset_minutes
        return summarize_day(
            day,
            self.aggregator.records_for(day, config, tz),
            config,
            self.clock.now(),
            tz,
            live_seconds=self.aggregator.live_seconds(day, config, tz),
        )

    # Lifecycle

    def start_background(self) -> None:
        self._idle_watcher.start()
        probe = self._input_probe or default_probe()
        if probe is not None and self._input_watcher is None:
            self._input_watcher = InputActivityWatcher(
                self.idle, probe, self.settings.input_poll_interval.total_seconds()
            )
            self._input_watcher.start()

    def shutdown(self) -> None:
        """Record live segments so far, wait for pending writes, then close the store."""
        self._idle_watcher.stop()
        if self._input_watcher is not None:
            self._input_watcher.stop()
            self._input_watcher = None
        try:
            self.timers.checkpoint_all()
            self.recorder.flush(timeout=10)
            self.recorder.close()
        finally:
            close = getattr(self.records, "close", None)
            if close is not None:
                close()
            logger.info("Time accounting shut down.")
