"""Domain models for timers and recorded time."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .clock import ensure_utc, precise_seconds_between, round_half_up


class TimerPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(slots=True)
class TimerState:
    """Live tracking session for one entity. Stopped entities have no state.

    ``accumulated_seconds`` keeps sub-second precision; only reads round.
    """

    phase: TimerPhase
    accumulated_seconds: float = 0.0
    current_segment_started_at: Optional[datetime] = None
    session_started_at: Optional[datetime] = None

    def elapsed_at(self, now: datetime) -> int:
        if self.phase is TimerPhase.RUNNING and self.current_segment_started_at:
            return round_half_up(
                self.accumulated_seconds
                + precise_seconds_between(self.current_segment_started_at, now)
            )
        return round_half_up(self.accumulated_seconds)

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "accumulated_seconds": self.accumulated_seconds,
            "current_segment_started_at": _iso(self.current_segment_started_at),
            "session_started_at": _iso(self.session_started_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimerState":
        phase = TimerPhase(data["phase"])
        segment_start = _parse(data.get("current_segment_started_at"))
        if phase is TimerPhase.RUNNING and segment_start is None:
            raise ValueError("running timer without a segment start")
        return cls(
            phase=phase,
            accumulated_seconds=max(0.0, float(data.get("accumulated_seconds", 0))),
            current_segment_started_at=segment_start if phase is TimerPhase.RUNNING else None,
            session_started_at=_parse(data.get("session_started_at")),
        )


@dataclass(slots=True, frozen=True)
class EntityMeta:
    """Descriptive fields copied onto every record an entity produces."""

    entity_id: str
    label: str
    category_label: str = "Unknown"
    category_color: str = "#888888"
    activity_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "label": self.label,
            "category_label": self.category_label,
            "category_color": self.category_color,
            "activity_type": self.activity_type,
        }

    @classmethod
    def fallback(cls, entity_id: str) -> "EntityMeta":
        return cls(entity_id=entity_id, label=entity_id)


@dataclass(slots=True)
class TimeRecord:
    """A completed segment of tracked time, as stored durably."""

    entity_label: str
    category_label: str
    category_color: str
    activity_type: str
    start_time: datetime
    end_time: datetime
    duration_seconds: int = 0
    entity_id: Optional[str] = None
    id: Optional[int] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        self.start_time = ensure_utc(self.start_time)
        self.end_time = ensure_utc(self.end_time)
        self.duration_seconds = round_half_up((self.end_time - self.start_time).total_seconds())

    @classmethod
    def for_segment(cls, meta: EntityMeta, start: datetime, end: datetime) -> "TimeRecord":
        return cls(
            entity_label=meta.label,
            category_label=meta.category_label,
            category_color=meta.category_color,
            activity_type=meta.activity_type,
            start_time=start,
            end_time=end,
            entity_id=meta.entity_id,
        )

    def with_id(self, record_id: int) -> "TimeRecord":
        return replace(self, id=record_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "entity_label": self.entity_label,
            "category_label": self.category_label,
            "category_color": self.category_color,
            "activity_type": self.activity_type,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_seconds": self.duration_seconds,
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))
