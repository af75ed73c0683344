"""Tests for the durable record stores."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from time_ledger.db import (
    InMemoryRecordStore,
    InvalidRecordError,
    RecordNotFoundError,
    SQLiteRecordStore,
    format_timestamp,
    parse_timestamp,
)
from time_ledger.models import TimeRecord

START = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


def make_record(start: datetime = START, seconds: int = 600) -> TimeRecord:
    return TimeRecord(
        entity_label="Problem set",
        category_label="Math",
        category_color="#aa3300",
        activity_type="Homework",
        start_time=start,
        end_time=start + timedelta(seconds=seconds),
        entity_id="ps-1",
    )


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_path):
    if request.param == "sqlite":
        sqlite_store = SQLiteRecordStore(tmp_path / "records.sqlite3")
        yield sqlite_store
        sqlite_store.close()
    else:
        yield InMemoryRecordStore()


class TestRecordStore:

    def test_create_assigns_id_and_duration(self, store):
        stored = store.create(make_record(seconds=754))
        assert stored.id is not None
        assert stored.duration_seconds == 754

    def test_end_must_follow_start(self, store):
        with pytest.raises(InvalidRecordError):
            store.create(make_record(seconds=0))

    def test_list_for_window_is_half_open(self, store):
        store.create(make_record(START))
        store.create(make_record(START + timedelta(hours=1)))
        store.create(make_record(START + timedelta(hours=2)))

        found = store.list_for_window(START, START + timedelta(hours=2))
        assert [r.start_time for r in found] == [START, START + timedelta(hours=1)]

    def test_list_returns_aware_utc(self, store):
        store.create(make_record())
        (found,) = store.list_for_window(START, START + timedelta(days=1))
        assert found.start_time.tzinfo is not None
        assert found.start_time == START
        assert found.entity_id == "ps-1"

    def test_update_recomputes_duration(self, store):
        stored = store.create(make_record(seconds=600))
        updated = store.update(
            stored.id, end_time=START + timedelta(seconds=900), entity_label="Renamed"
        )
        assert updated.duration_seconds == 900
        assert updated.entity_label == "Renamed"
        assert store.get(stored.id).duration_seconds == 900

    def test_update_rejects_inverted_range(self, store):
        stored = store.create(make_record())
        with pytest.raises(InvalidRecordError):
            store.update(stored.id, end_time=START - timedelta(seconds=1))

    def test_update_rejects_unknown_fields(self, store):
        stored = store.create(make_record())
        with pytest.raises(InvalidRecordError):
            store.update(stored.id, duration_seconds=5)

    def test_update_missing(self, store):
        with pytest.raises(RecordNotFoundError):
            store.update(999, entity_label="x")

    def test_delete(self, store):
        stored = store.create(make_record())
        store.delete(stored.id)
        with pytest.raises(RecordNotFoundError):
            store.get(stored.id)
        with pytest.raises(RecordNotFoundError):
            store.delete(stored.id)


class TestTimestamps:

    def test_text_sorts_in_time_order(self):
        earlier = format_timestamp(START)
        later = format_timestamp(START + timedelta(microseconds=1))
        assert earlier < later

    def test_offset_input_is_stored_as_utc(self):
        eastern = datetime(2024, 3, 10, 4, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert parse_timestamp(format_timestamp(eastern)) == START
