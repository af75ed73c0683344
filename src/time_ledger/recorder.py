"""Turns finished running intervals into durable time records."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Optional

from .db import RecordStore
from .models import EntityMeta, TimeRecord

logger = logging.getLogger(__name__)


class SegmentRecorder:
    """Writes one record per contiguous running interval.

    Writes go through a single worker thread so segments are stored in the
    order they ended. A failed write is logged and dropped; callers never see
    it, because the timer transition that produced the segment has already
    happened.
    """

    def __init__(self, store: RecordStore, *, synchronous: bool = False) -> None:
        self._store = store
        self._synchronous = synchronous
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def record_segment(
        self, meta: EntityMeta, start: datetime, end: datetime
    ) -> Optional[Future]:
        record = TimeRecord.for_segment(meta, start, end)
        if record.duration_seconds <= 0:
            logger.debug(
                "Discarding %ss segment for %s (%s -> %s).",
                record.duration_seconds,
                meta.entity_id,
                start.isoformat(),
                end.isoformat(),
            )
            return None

        if self._synchronous:
            self._write(record)
            return None

        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="segment-recorder"
                )
            future = self._executor.submit(self._write, record)
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every submitted write has finished."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def _write(self, record: TimeRecord) -> None:
        try:
            stored = self._store.create(record)
        except Exception:
            logger.exception(
                "Failed to persist %ss segment for %s; dropping it.",
                record.duration_seconds,
                record.entity_id,
            )
            return
        logger.debug(
            "Recorded %ss for %s as record %s.",
            stored.duration_seconds,
            stored.entity_id,
            stored.id,
        )

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
