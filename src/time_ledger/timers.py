"""Per-entity timer state machine.

::

            start            pause            stop
    Stopped ----> Running <----------> Paused ----> Stopped
                     |__________________________________|
                                     stop

Elapsed time is recomputed from stored timestamps on every read. Anything that
ticks (a UI refresh, a watcher thread) only triggers a new read; it is never
the source of truth.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Optional

from .clock import Clock, SystemClock, precise_seconds_between, seconds_between
from .local_store import LocalStore
from .models import EntityMeta, TimerPhase, TimerState
from .normalization import build_meta
from .recorder import SegmentRecorder

logger = logging.getLogger(__name__)

STORAGE_KEY = "timers"


class TimerStore:
    """Owns every entity's live timer.

    Each mutating operation runs as one critical section, so interleaved
    calls for the same entity from several surfaces never lose an update.
    Invalid transitions are silent no-ops.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        recorder: Optional[SegmentRecorder] = None,
        local_store: Optional[LocalStore] = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._recorder = recorder
        self._local_store = local_store
        self._lock = threading.RLock()
        self._states: dict[str, TimerState] = {}
        self._meta: dict[str, EntityMeta] = {}
        self._load()

    def register_meta(self, meta: EntityMeta) -> None:
        with self._lock:
            self._meta[meta.entity_id] = meta
            if meta.entity_id in self._states:
                self._save_locked()

    def meta_for(self, entity_id: str) -> EntityMeta:
        with self._lock:
            return self._meta.get(entity_id) or EntityMeta.fallback(entity_id)

    def start(self, entity_id: str) -> None:
        with self._lock:
            state = self._states.get(entity_id)
            if state is not None and state.phase is TimerPhase.RUNNING:
                logger.debug("Ignoring start for %s: already running.", entity_id)
                return
            now = self._clock.now()
            self._states[entity_id] = TimerState(
                phase=TimerPhase.RUNNING,
                accumulated_seconds=0.0,
                current_segment_started_at=now,
                session_started_at=now,
            )
            self._save_locked()
            logger.info("Started timer for %s.", entity_id)

    def pause(self, entity_id: str) -> None:
        with self._lock:
            state = self._states.get(entity_id)
            if state is None or state.phase is not TimerPhase.RUNNING:
                logger.debug("Ignoring pause for %s: not running.", entity_id)
                return
            now = self._clock.now()
            segment_start = state.current_segment_started_at
            state.accumulated_seconds += precise_seconds_between(segment_start, now)
            state.current_segment_started_at = None
            state.phase = TimerPhase.PAUSED
            self._record_locked(entity_id, segment_start, now)
            self._save_locked()
            logger.info("Paused timer for %s at %ss.", entity_id, state.elapsed_at(now))

    def resume(self, entity_id: str) -> None:
        with self._lock:
            state = self._states.get(entity_id)
            if state is None or state.phase is not TimerPhase.PAUSED:
                logger.debug("Ignoring resume for %s: not paused.", entity_id)
                return
            state.current_segment_started_at = self._clock.now()
            state.phase = TimerPhase.RUNNING
            self._save_locked()
            logger.info("Resumed timer for %s.", entity_id)

    def stop(self, entity_id: str) -> int:
        """Stop the session and return its total elapsed seconds."""
        with self._lock:
            state = self._states.pop(entity_id, None)
            if state is None:
                logger.debug("Ignoring stop for %s: no active timer.", entity_id)
                return 0
            now = self._clock.now()
            elapsed = state.elapsed_at(now)
            if state.phase is TimerPhase.RUNNING:
                self._record_locked(entity_id, state.current_segment_started_at, now)
            self._save_locked()
            logger.info("Stopped timer for %s after %ss.", entity_id, elapsed)
            return elapsed

    def reset(self, entity_id: str) -> None:
        """Drop the session without recording its live segment."""
        with self._lock:
            if self._states.pop(entity_id, None) is not None:
                self._save_locked()
                logger.info("Reset timer for %s.", entity_id)

    def checkpoint(self, entity_id: str) -> None:
        """Record the live segment so far and continue in a fresh one."""
        with self._lock:
            self._checkpoint_locked(entity_id)
            self._save_locked()

    def checkpoint_all(self) -> None:
        with self._lock:
            for entity_id in list(self._states):
                self._checkpoint_locked(entity_id)
            self._save_locked()

    def elapsed_seconds(self, entity_id: str) -> int:
        with self._lock:
            state = self._states.get(entity_id)
            if state is None:
                return 0
            return state.elapsed_at(self._clock.now())

    def unrecorded_seconds(self, entity_id: str) -> int:
        """Seconds of the live segment, which no record covers yet."""
        with self._lock:
            state = self._states.get(entity_id)
            if state is None or state.phase is not TimerPhase.RUNNING:
                return 0
            return seconds_between(state.current_segment_started_at, self._clock.now())

    def state(self, entity_id: str) -> Optional[TimerState]:
        with self._lock:
            state = self._states.get(entity_id)
            if state is None:
                return None
            return TimerState.from_dict(state.to_dict())

    def phase(self, entity_id: str) -> Optional[TimerPhase]:
        with self._lock:
            state = self._states.get(entity_id)
            return state.phase if state else None

    def active_entities(self) -> list[str]:
        with self._lock:
            return list(self._states)

    def live_segments(self) -> dict[str, datetime]:
        """Start of every live segment, keyed by entity id."""
        with self._lock:
            return {
                entity_id: state.current_segment_started_at
                for entity_id, state in self._states.items()
                if state.phase is TimerPhase.RUNNING and state.current_segment_started_at
            }

    def snapshot(self) -> list[dict[str, Any]]:
        with self._lock:
            now = self._clock.now()
            return [
                {
                    "entity_id": entity_id,
                    "label": self.meta_for(entity_id).label,
                    "elapsed_seconds": state.elapsed_at(now),
                    **state.to_dict(),
                }
                for entity_id, state in self._states.items()
            ]

    def _checkpoint_locked(self, entity_id: str) -> None:
        state = self._states.get(entity_id)
        if state is None or state.phase is not TimerPhase.RUNNING:
            return
        now = self._clock.now()
        segment_start = state.current_segment_started_at
        # Sub-second tails stay in the live segment until they round to a record.
        if seconds_between(segment_start, now) <= 0:
            return
        state.accumulated_seconds += precise_seconds_between(segment_start, now)
        state.current_segment_started_at = now
        self._record_locked(entity_id, segment_start, now)

    def _record_locked(self, entity_id: str, start: datetime, end: datetime) -> None:
        if self._recorder is None:
            return
        self._recorder.record_segment(self.meta_for(entity_id), start, end)

    def _load(self) -> None:
        if self._local_store is None:
            return
        try:
            payload = self._local_store.get(STORAGE_KEY) or {}
        except Exception:
            logger.warning("Could not read saved timers; starting empty.", exc_info=True)
            return
        for entity_id, entry in payload.items():
            try:
                self._states[entity_id] = TimerState.from_dict(entry["state"])
                meta = entry.get("meta")
                if meta:
                    self._meta[entity_id] = build_meta(
                        entity_id,
                        label=meta.get("label"),
                        category_label=meta.get("category_label"),
                        category_color=meta.get("category_color"),
                        activity_type=meta.get("activity_type"),
                    )
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping unreadable saved timer for %s.", entity_id, exc_info=True)
        if self._states:
            logger.info("Restored %d saved timer(s).", len(self._states))

    def _save_locked(self) -> None:
        if self._local_store is None:
            return
        payload = {
            entity_id: {
                "state": state.to_dict(),
                "meta": self._meta[entity_id].to_dict() if entity_id in self._meta else None,
            }
            for entity_id, state in self._states.items()
        }
        try:
            self._local_store.set(STORAGE_KEY, payload)
        except Exception:
            logger.warning("Could not save timers; keeping them in memory.", exc_info=True)
