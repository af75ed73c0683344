"""Tests for logical-day windows and classification."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from time_ledger.config import DayBoundaryConfig
from time_ledger.day_boundary import (
    DayLabel,
    classify,
    day_window,
    is_logical_today,
    is_logical_yesterday,
    logical_day_start,
    logical_today,
    owning_day,
    relative_day_label,
    to_local,
    to_utc,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


NIGHT_OWL = DayBoundaryConfig(start_hour=10, end_hour_extension=3)


class TestDayWindow:

    def test_asymmetric_window(self):
        window = day_window(date(2024, 3, 10), NIGHT_OWL)
        assert window.start == utc(2024, 3, 10, 10, 0)
        assert window.end == utc(2024, 3, 11, 3, 0)
        assert window.seconds == 17 * 3600

    def test_midnight_boundary_matches_calendar_day(self):
        window = day_window(date(2024, 3, 10), DayBoundaryConfig())
        assert window.start == utc(2024, 3, 10)
        assert window.end == utc(2024, 3, 11)

    def test_no_extension_ends_at_next_midnight(self):
        window = day_window(date(2024, 3, 10), DayBoundaryConfig(start_hour=6))
        assert window.end == utc(2024, 3, 11)

    def test_start_is_inclusive_end_exclusive(self):
        window = day_window(date(2024, 3, 10), NIGHT_OWL)
        assert window.start in window
        assert window.end not in window
        assert window.end - timedelta(microseconds=1) in window

    def test_offset_shifts_window_into_utc(self):
        # UTC-5: local 10:00 is 15:00 UTC.
        window = day_window(date(2024, 3, 10), NIGHT_OWL, tz_offset_minutes=300)
        assert window.start == utc(2024, 3, 10, 15, 0)
        assert window.end == utc(2024, 3, 11, 8, 0)

    def test_positive_zone(self):
        # UTC+9: local midnight is 15:00 UTC the previous day.
        window = day_window(date(2024, 3, 10), DayBoundaryConfig(), tz_offset_minutes=-540)
        assert window.start == utc(2024, 3, 9, 15, 0)

    def test_large_extension_is_accepted(self):
        window = day_window(date(2024, 3, 10), DayBoundaryConfig(end_hour_extension=30))
        assert window.end == utc(2024, 3, 12, 6, 0)

    def test_local_round_trip(self):
        instant = utc(2024, 3, 10, 4, 30)
        assert to_utc(to_local(instant, 300), 300) == instant


class TestFromTimelineHours:

    def test_end_hour_past_midnight(self):
        config = DayBoundaryConfig.from_timeline_hours(10, 27)
        assert config == NIGHT_OWL
        assert config.timeline_end_hour == 27

    def test_end_hour_at_or_before_midnight(self):
        assert DayBoundaryConfig.from_timeline_hours(8, 24).end_hour_extension == 0
        assert DayBoundaryConfig.from_timeline_hours(8, 20).end_hour_extension == 0


class TestLogicalDayStart:

    def test_before_start_hour_belongs_to_previous_day(self):
        assert logical_day_start(utc(2024, 3, 11, 2, 0), 10) == date(2024, 3, 10)

    def test_after_start_hour_belongs_to_same_day(self):
        assert logical_day_start(utc(2024, 3, 11, 11, 0), 10) == date(2024, 3, 11)

    def test_exactly_at_start_hour(self):
        assert logical_day_start(utc(2024, 3, 11, 10, 0), 10) == date(2024, 3, 11)

    def test_midnight_start_is_calendar_date(self):
        assert logical_day_start(utc(2024, 3, 11, 0, 0), 0) == date(2024, 3, 11)
        assert logical_day_start(utc(2024, 3, 10, 23, 59, 59), 0) == date(2024, 3, 10)

    def test_offset_is_applied_before_grouping(self):
        # 03:00 UTC is 22:00 the previous evening at UTC-5.
        assert logical_day_start(utc(2024, 3, 11, 3, 0), 0, 300) == date(2024, 3, 10)


class TestTodayAndYesterday:

    NOW = utc(2024, 3, 11, 14, 0)

    def test_same_logical_day(self):
        assert is_logical_today(utc(2024, 3, 11, 10, 30), 10, self.NOW)
        assert not is_logical_yesterday(utc(2024, 3, 11, 10, 30), 10, self.NOW)

    def test_after_midnight_is_yesterday_before_start(self):
        ts = utc(2024, 3, 11, 2, 0)
        assert not is_logical_today(ts, 10, self.NOW)
        assert is_logical_yesterday(ts, 10, self.NOW)

    @pytest.mark.parametrize(
        "timestamp, expected",
        [
            (utc(2024, 3, 11, 12, 0), DayLabel.TODAY),
            (utc(2024, 3, 10, 12, 0), DayLabel.YESTERDAY),
            (utc(2024, 3, 8, 12, 0), DayLabel.EARLIER),
            (utc(2024, 3, 12, 12, 0), DayLabel.LATER),
        ],
    )
    def test_classify(self, timestamp, expected):
        assert classify(timestamp, 10, self.NOW) is expected


class TestOwningDay:

    def test_last_second_of_extension(self):
        assert owning_day(utc(2024, 3, 11, 2, 59, 59), NIGHT_OWL) == date(2024, 3, 10)

    def test_late_night_record_belongs_to_previous_day(self):
        assert owning_day(utc(2024, 3, 11, 2, 0), NIGHT_OWL) == date(2024, 3, 10)

    def test_first_instant_after_extension_is_unowned(self):
        assert owning_day(utc(2024, 3, 11, 3, 0, 1), NIGHT_OWL) is None

    def test_extension_end_is_exclusive(self):
        assert owning_day(utc(2024, 3, 11, 3, 0), NIGHT_OWL) is None

    def test_day_start_is_owned(self):
        assert owning_day(utc(2024, 3, 11, 10, 0), NIGHT_OWL) == date(2024, 3, 11)

    def test_overlap_prefers_previous_day(self):
        config = DayBoundaryConfig(start_hour=0, end_hour_extension=3)
        assert owning_day(utc(2024, 3, 11, 1, 0), config) == date(2024, 3, 10)


class TestLogicalToday:

    def test_within_extension_is_previous_date(self):
        assert logical_today(utc(2024, 3, 11, 2, 0), NIGHT_OWL) == date(2024, 3, 10)

    def test_after_extension_is_calendar_date(self):
        assert logical_today(utc(2024, 3, 11, 4, 0), NIGHT_OWL) == date(2024, 3, 11)

    def test_without_extension_is_calendar_date(self):
        assert logical_today(utc(2024, 3, 11, 2, 0), DayBoundaryConfig(start_hour=10)) == date(
            2024, 3, 11
        )


class TestRelativeLabel:

    # Thursday.
    NOW = utc(2024, 3, 14, 12, 0)

    def test_today_and_yesterday(self):
        assert relative_day_label(utc(2024, 3, 14, 9, 0), 0, self.NOW) == "Today"
        assert relative_day_label(utc(2024, 3, 13, 9, 0), 0, self.NOW) == "Yesterday"

    def test_weekday_within_current_week(self):
        assert relative_day_label(utc(2024, 3, 10, 9, 0), 0, self.NOW) == "Sunday"

    def test_older_dates_are_spelled_out(self):
        assert relative_day_label(utc(2024, 3, 9, 9, 0), 0, self.NOW) == "Mar 9, 2024"


@pytest.mark.parametrize("hours_back", range(0, 24 * 9, 5))
def test_today_yesterday_earlier_are_exclusive(hours_back):
    now = utc(2024, 3, 14, 12, 0)
    timestamp = now - timedelta(hours=hours_back)
    flags = [
        is_logical_today(timestamp, 10, now),
        is_logical_yesterday(timestamp, 10, now),
        classify(timestamp, 10, now) is DayLabel.EARLIER,
    ]
    assert flags.count(True) == 1
