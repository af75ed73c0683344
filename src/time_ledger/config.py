"""Configuration models and helpers for time accounting."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True, frozen=True)
class DayBoundaryConfig:
    """When a logical day starts and how far past midnight it runs.

    ``start_hour`` is the local hour the day begins. ``end_hour_extension`` is
    the number of hours past the *next* midnight that still belong to the day.
    No range checks happen here; the settings UI constrains the inputs.
    """

    start_hour: int = 0
    end_hour_extension: int = 0

    @classmethod
    def from_timeline_hours(cls, start_hour: int, end_hour: int) -> "DayBoundaryConfig":
        """Build from a timeline end hour where 27 means 3 AM the next day."""
        extension = end_hour - 24 if end_hour > 24 else 0
        return cls(start_hour=int(start_hour), end_hour_extension=int(extension))

    @property
    def timeline_end_hour(self) -> int:
        return 24 + self.end_hour_extension


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the idle detector and background watchers."""

    idle_timeout: timedelta = timedelta(minutes=5)
    activity_throttle: timedelta = timedelta(seconds=1)
    idle_poll_interval: timedelta = timedelta(seconds=1)
    input_poll_interval: timedelta = timedelta(seconds=5)
    local_store_max_bytes: int = 5 * 1024 * 1024

    @classmethod
    def from_intervals(
        cls,
        idle_minutes: float,
        poll_seconds: float | None = None,
        input_poll_seconds: float | None = None,
    ) -> "TrackerSettings":
        poll = poll_seconds if poll_seconds is not None else 1.0
        input_poll = (
            input_poll_seconds if input_poll_seconds is not None else max(poll * 5, 5.0)
        )
        return cls(
            idle_timeout=timedelta(minutes=idle_minutes),
            idle_poll_interval=timedelta(seconds=poll),
            input_poll_interval=timedelta(seconds=input_poll),
        )

    @property
    def idle_timeout_ms(self) -> int:
        return int(self.idle_timeout.total_seconds() * 1000)
