"""Shared pytest fixtures."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from time_ledger.clock import ManualClock
from time_ledger.db import InMemoryRecordStore
from time_ledger.local_store import MemoryStore
from time_ledger.models import EntityMeta
from time_ledger.recorder import SegmentRecorder
from time_ledger.timers import TimerStore

T0 = datetime(2024, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def records() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def local_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def recorder(records: InMemoryRecordStore) -> SegmentRecorder:
    return SegmentRecorder(records, synchronous=True)


@pytest.fixture
def timers(clock, recorder, local_store) -> TimerStore:
    store = TimerStore(clock, recorder, local_store)
    store.register_meta(
        EntityMeta(
            entity_id="task-1",
            label="Read chapter 4",
            category_label="Biology",
            category_color="#22aa55",
            activity_type="Lecture",
        )
    )
    return store
