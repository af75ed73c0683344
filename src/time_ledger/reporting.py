"""Day analytics and plain-text rendering of recorded time."""

from __future__ import annotations

import csv
import io
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

from .config import DayBoundaryConfig
from .day_boundary import day_window, logical_today, to_local
from .models import TimeRecord


@dataclass(slots=True)
class DaySummary:
    day: date
    window_start: datetime
    window_end: datetime
    focus_seconds: int
    longest_session_seconds: int
    idle_seconds: int
    productivity_percent: int
    record_count: int
    categories: list[tuple[str, str, int]] = field(default_factory=list)
    entities: list[tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.day.isoformat(),
            "window": {
                "start": self.window_start.isoformat(),
                "end": self.window_end.isoformat(),
            },
            "focus_seconds": self.focus_seconds,
            "longest_session_seconds": self.longest_session_seconds,
            "idle_seconds": self.idle_seconds,
            "productivity_percent": self.productivity_percent,
            "record_count": self.record_count,
            "categories": [
                {"category_label": name, "category_color": color, "seconds": seconds}
                for name, color, seconds in self.categories
            ],
            "entities": [
                {"entity_label": label, "seconds": seconds} for label, seconds in self.entities
            ],
        }


def summarize_day(
    day: date,
    records: Iterable[TimeRecord],
    config: DayBoundaryConfig,
    now: datetime,
    tz_offset_minutes: int = 0,
    live_seconds: int = 0,
) -> DaySummary:
    """Focus, idle and ratio figures for one logical day.

    For the current logical day the span ends at ``now``; earlier days use the
    full window.
    """
    records = list(records)
    window = day_window(day, config, tz_offset_minutes)
    focus = sum(r.duration_seconds for r in records) + live_seconds
    longest = max((r.duration_seconds for r in records), default=0)

    span_end = window.end
    if day == logical_today(now, config, tz_offset_minutes):
        span_end = min(max(now, window.start), window.end)
    span = max(0, int((span_end - window.start).total_seconds()))
    idle = max(0, span - focus)
    ratio = round(focus / span * 100) if span > 0 else 0

    return DaySummary(
        day=day,
        window_start=window.start,
        window_end=window.end,
        focus_seconds=focus,
        longest_session_seconds=longest,
        idle_seconds=idle,
        productivity_percent=ratio,
        record_count=len(records),
        categories=aggregate_by_category(records),
        entities=aggregate_by_entity(records),
    )


def aggregate_by_category(records: Iterable[TimeRecord]) -> list[tuple[str, str, int]]:
    totals: defaultdict[str, int] = defaultdict(int)
    colors: dict[str, str] = {}
    for record in records:
        totals[record.category_label] += record.duration_seconds
        colors.setdefault(record.category_label, record.category_color)
    sorted_items = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [(name, colors[name], seconds) for name, seconds in sorted_items]


def aggregate_by_entity(records: Iterable[TimeRecord]) -> list[tuple[str, int]]:
    totals: defaultdict[str, int] = defaultdict(int)
    for record in records:
        totals[record.entity_label] += record.duration_seconds
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def records_to_csv(records: Iterable[TimeRecord], tz_offset_minutes: int = 0) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["Task", "Category", "Type", "Start", "End", "Duration"])
    for record in records:
        writer.writerow(
            [
                record.entity_label,
                record.category_label,
                record.activity_type,
                format_clock_time(to_local(record.start_time, tz_offset_minutes)),
                format_clock_time(to_local(record.end_time, tz_offset_minutes)),
                format_duration_short(record.duration_seconds),
            ]
        )
    return buffer.getvalue()


def render_summary(summary: DaySummary, tz_offset_minutes: int = 0) -> str:
    start = to_local(summary.window_start, tz_offset_minutes)
    end = to_local(summary.window_end, tz_offset_minutes)
    lines = [
        f"Summary for {summary.day.isoformat()}",
        f"Window: {start:%Y-%m-%d %H:%M} -> {end:%Y-%m-%d %H:%M}",
        "-" * 40,
        f"Focus time:      {format_duration(summary.focus_seconds)}",
        f"Longest session: {format_duration(summary.longest_session_seconds)}",
        f"Idle time:       {format_duration(summary.idle_seconds)}",
        f"Productivity:    {summary.productivity_percent}%",
    ]
    if summary.categories:
        lines += ["", "Categories:"]
        for name, _color, seconds in summary.categories[:5]:
            lines.append(f"  {name:<30} {format_duration(seconds)}")
    if summary.entities:
        lines += ["", "Top tasks:"]
        for label, seconds in summary.entities[:5]:
            lines.append(f"  {label[:45]:<45} {format_duration(seconds)}")
    return "\n".join(lines)


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, records, tz_offset_minutes: int = 0) -> None:
        self._records = records
        self._tz = tz_offset_minutes

    def print_daily_summary(
        self, day: date, config: DayBoundaryConfig, now: Optional[datetime] = None
    ) -> None:
        window = day_window(day, config, self._tz)
        rows = self._records.list_for_window(window.start, window.end)
        if not rows:
            print("No time recorded for the selected day.")
            return
        summary = summarize_day(day, rows, config, now or window.end, self._tz)
        print(render_summary(summary, self._tz))


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_duration_short(seconds: int) -> str:
    sign = "-" if seconds < 0 else ""
    hours, remainder = divmod(abs(int(seconds)), 3600)
    minutes = remainder // 60
    if hours and minutes:
        return f"{sign}{hours}h {minutes}m"
    if hours:
        return f"{sign}{hours}h"
    return f"{sign}{minutes}m"


def format_clock_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"
