"""Durable stores for time records: SQLite on disk, or a list in memory."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from .clock import ensure_utc
from .models import TimeRecord


DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"

_EDITABLE_FIELDS = (
    "entity_label",
    "category_label",
    "category_color",
    "activity_type",
    "start_time",
    "end_time",
)


class TimeLedgerError(Exception):
    """Base class for errors raised by the explicit record API."""


class RecordNotFoundError(TimeLedgerError, LookupError):
    pass


class InvalidRecordError(TimeLedgerError, ValueError):
    pass


class RecordStore(Protocol):
    def create(self, record: TimeRecord) -> TimeRecord: ...

    def list_for_window(self, start: datetime, end: datetime) -> list[TimeRecord]: ...

    def update(self, record_id: int, **fields: object) -> TimeRecord: ...

    def delete(self, record_id: int) -> None: ...


def validate_record(record: TimeRecord) -> None:
    if record.end_time <= record.start_time:
        raise InvalidRecordError("end_time must be after start_time")


def format_timestamp(value: datetime) -> str:
    """UTC text that sorts in time order."""
    return ensure_utc(value).replace(tzinfo=None).strftime(DATETIME_FMT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, DATETIME_FMT).replace(tzinfo=timezone.utc)


def _apply_updates(record: TimeRecord, fields: dict[str, object]) -> TimeRecord:
    unknown = set(fields) - set(_EDITABLE_FIELDS)
    if unknown:
        raise InvalidRecordError(f"Unknown record fields: {', '.join(sorted(unknown))}")
    values = {name: getattr(record, name) for name in _EDITABLE_FIELDS}
    values.update({name: value for name, value in fields.items() if value is not None})
    # Duration is always rederived from the endpoints.
    updated = TimeRecord(
        entity_id=record.entity_id,
        id=record.id,
        **values,  # type: ignore[arg-type]
    )
    validate_record(updated)
    return updated


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS time_records (
            id INTEGER PRIMARY KEY,
            entity_id TEXT,
            entity_label TEXT NOT NULL,
            category_label TEXT NOT NULL,
            category_color TEXT NOT NULL,
            activity_type TEXT NOT NULL DEFAULT '',
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            duration_seconds INTEGER NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_records_start_time
            ON time_records(start_time);
        """
    )


def insert_record(conn: sqlite3.Connection, record: TimeRecord) -> int:
    cur = conn.execute(
        """
        INSERT INTO time_records (
            entity_id,
            entity_label,
            category_label,
            category_color,
            activity_type,
            start_time,
            end_time,
            duration_seconds
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            record.entity_id,
            record.entity_label,
            record.category_label,
            record.category_color,
            record.activity_type,
            format_timestamp(record.start_time),
            format_timestamp(record.end_time),
            record.duration_seconds,
        ),
    )
    return int(cur.lastrowid)


def fetch_records_between(
    conn: sqlite3.Connection, start: datetime, end: datetime
) -> list[sqlite3.Row]:
    """Records whose start time falls in ``[start, end)``."""
    return list(
        conn.execute(
            """
            SELECT
                id,
                entity_id,
                entity_label,
                category_label,
                category_color,
                activity_type,
                start_time,
                end_time,
                duration_seconds
            FROM time_records
            WHERE start_time >= ? AND start_time < ?
            ORDER BY start_time, id;
            """,
            (format_timestamp(start), format_timestamp(end)),
        )
    )


def fetch_record(conn: sqlite3.Connection, record_id: int) -> Optional[sqlite3.Row]:
    return conn.execute(
        """
        SELECT
            id,
            entity_id,
            entity_label,
            category_label,
            category_color,
            activity_type,
            start_time,
            end_time,
            duration_seconds
        FROM time_records
        WHERE id = ?
        """,
        (record_id,),
    ).fetchone()


def row_to_record(row: sqlite3.Row) -> TimeRecord:
    return TimeRecord(
        id=row["id"],
        entity_id=row["entity_id"],
        entity_label=row["entity_label"],
        category_label=row["category_label"],
        category_color=row["category_color"],
        activity_type=row["activity_type"],
        start_time=parse_timestamp(row["start_time"]),
        end_time=parse_timestamp(row["end_time"]),
    )


class SQLiteRecordStore:
    """Record store backed by one SQLite connection shared across threads."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._conn = open_database(self.path, check_same_thread=False)
        self._lock = threading.Lock()

    def create(self, record: TimeRecord) -> TimeRecord:
        validate_record(record)
        with self._lock:
            record_id = insert_record(self._conn, record)
        return record.with_id(record_id)

    def list_for_window(self, start: datetime, end: datetime) -> list[TimeRecord]:
        with self._lock:
            rows = fetch_records_between(self._conn, start, end)
        return [row_to_record(row) for row in rows]

    def get(self, record_id: int) -> TimeRecord:
        with self._lock:
            row = fetch_record(self._conn, record_id)
        if row is None:
            raise RecordNotFoundError(f"No record found for id={record_id}")
        return row_to_record(row)

    def update(self, record_id: int, **fields: object) -> TimeRecord:
        with self._lock:
            row = fetch_record(self._conn, record_id)
            if row is None:
                raise RecordNotFoundError(f"No record found for id={record_id}")
            updated = _apply_updates(row_to_record(row), fields)
            self._conn.execute(
                """
                UPDATE time_records SET
                    entity_label = ?,
                    category_label = ?,
                    category_color = ?,
                    activity_type = ?,
                    start_time = ?,
                    end_time = ?,
                    duration_seconds = ?
                WHERE id = ?
                """,
                (
                    updated.entity_label,
                    updated.category_label,
                    updated.category_color,
                    updated.activity_type,
                    format_timestamp(updated.start_time),
                    format_timestamp(updated.end_time),
                    updated.duration_seconds,
                    record_id,
                ),
            )
        return updated

    def delete(self, record_id: int) -> None:
        with self._lock:
            cur = self._conn.execute("DELETE FROM time_records WHERE id = ?", (record_id,))
        if cur.rowcount == 0:
            raise RecordNotFoundError(f"No record found for id={record_id}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class InMemoryRecordStore:
    """Record store for tests and for running without a database."""

    def __init__(self) -> None:
        self._records: dict[int, TimeRecord] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def create(self, record: TimeRecord) -> TimeRecord:
        validate_record(record)
        with self._lock:
            stored = record.with_id(self._next_id)
            self._records[stored.id] = stored
            self._next_id += 1
        return stored

    def list_for_window(self, start: datetime, end: datetime) -> list[TimeRecord]:
        start, end = ensure_utc(start), ensure_utc(end)
        with self._lock:
            matches = [r for r in self._records.values() if start <= r.start_time < end]
        return sorted(matches, key=lambda r: (r.start_time, r.id))

    def all(self) -> list[TimeRecord]:
        with self._lock:
            return sorted(self._records.values(), key=lambda r: (r.start_time, r.id))

    def get(self, record_id: int) -> TimeRecord:
        with self._lock:
            record = self._records.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"No record found for id={record_id}")
        return record

    def update(self, record_id: int, **fields: object) -> TimeRecord:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise RecordNotFoundError(f"No record found for id={record_id}")
            updated = _apply_updates(record, fields)
            self._records[record_id] = updated
        return updated

    def delete(self, record_id: int) -> None:
        with self._lock:
            if self._records.pop(record_id, None) is None:
                raise RecordNotFoundError(f"No record found for id={record_id}")
