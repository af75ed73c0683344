"""Global user-inactivity detection.

The detector knows nothing about individual timers and never pauses one; it
only tells the host when it may suspend expensive presentation work. Idleness
is derived from timestamps, so it stays correct even if the countdown check is
delayed or skipped while the host is backgrounded.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .clock import Clock, SystemClock, ensure_utc, milliseconds_between
from .local_store import LocalStore

logger = logging.getLogger(__name__)

ACTIVITY_EVENTS = frozenset(
    {
        "mousemove",
        "mousedown",
        "pointermove",
        "pointerdown",
        "keydown",
        "scroll",
        "touchstart",
        "input",
    }
)

DEFAULT_TIMEOUT_MS = 5 * 60 * 1000
DEFAULT_THROTTLE_MS = 1000
STORAGE_KEY = "idle_session"

IdleListener = Callable[[bool], None]


@dataclass(slots=True)
class IdleSession:
    last_activity_at: datetime
    is_idle: bool = False
    hidden_at: Optional[datetime] = None


class IdleDetector:
    """Raises idle after ``timeout_ms`` without a qualifying activity signal."""

    def __init__(
        self,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        *,
        clock: Optional[Clock] = None,
        throttle_ms: int = DEFAULT_THROTTLE_MS,
        local_store: Optional[LocalStore] = None,
    ) -> None:
        self.timeout_ms = timeout_ms
        self.throttle_ms = throttle_ms
        self._clock = clock or SystemClock()
        self._local_store = local_store
        self._lock = threading.RLock()
        self._listeners: list[IdleListener] = []
        self._last_signal_at: Optional[datetime] = None
        self._queued: list[bool] = []
        self._session = IdleSession(last_activity_at=self._clock.now())
        self._restore()

    @property
    def is_idle(self) -> bool:
        with self._lock:
            return self._session.is_idle

    @property
    def session(self) -> IdleSession:
        with self._lock:
            s = self._session
            return IdleSession(s.last_activity_at, s.is_idle, s.hidden_at)

    def subscribe(self, listener: IdleListener) -> Callable[[], None]:
        """Call ``listener(is_idle)`` on every transition. Returns an unsubscribe."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def record_activity(self, kind: str = "pointermove") -> bool:
        """Handle an input signal. Returns whether it was accepted."""
        if kind not in ACTIVITY_EVENTS:
            logger.debug("Ignoring unknown activity signal %r.", kind)
            return False
        with self._lock:
            now = self._clock.now()
            if (
                self._last_signal_at is not None
                and milliseconds_between(self._last_signal_at, now) < self.throttle_ms
            ):
                return False
            self._last_signal_at = now
            self._mark_active_locked(now)
        self._notify_pending()
        return True

    def page_hidden(self) -> None:
        with self._lock:
            self._session.hidden_at = self._clock.now()
            self._save_locked()

    def page_visible(self) -> None:
        with self._lock:
            hidden_at = self._session.hidden_at
            if hidden_at is None:
                return
            now = self._clock.now()
            self._session.hidden_at = None
            if milliseconds_between(hidden_at, now) >= self.timeout_ms:
                self._set_idle_locked(True)
                self._save_locked()
            else:
                self._mark_active_locked(now)
        self._notify_pending()

    def reset_idle(self) -> None:
        """Force not-idle and restart the countdown."""
        with self._lock:
            self._mark_active_locked(self._clock.now())
        self._notify_pending()

    def check(self) -> bool:
        """Flip to idle once the timeout has passed. Safe to call at any rate."""
        with self._lock:
            if not self._session.is_idle:
                idle_for = milliseconds_between(self._session.last_activity_at, self._clock.now())
                if idle_for >= self.timeout_ms:
                    self._set_idle_locked(True)
                    self._save_locked()
            idle = self._session.is_idle
        self._notify_pending()
        return idle

    def remaining_ms(self) -> float:
        """Milliseconds until the countdown expires; zero when already idle."""
        with self._lock:
            if self._session.is_idle:
                return 0.0
            idle_for = milliseconds_between(self._session.last_activity_at, self._clock.now())
            return max(0.0, self.timeout_ms - idle_for)

    def _mark_active_locked(self, now: datetime) -> None:
        self._session.last_activity_at = now
        self._set_idle_locked(False)
        self._save_locked()

    def _set_idle_locked(self, value: bool) -> None:
        if self._session.is_idle == value:
            return
        self._session.is_idle = value
        logger.info("User is now %s.", "idle" if value else "active")
        self._queued.append(value)

    def _notify_pending(self) -> None:
        with self._lock:
            events, self._queued = self._queued, []
            listeners = list(self._listeners)
        for value in events:
            for listener in listeners:
                try:
                    listener(value)
                except Exception:
                    logger.exception("Idle listener %r failed.", listener)

    def _restore(self) -> None:
        if self._local_store is None:
            return
        try:
            saved = self._local_store.get(STORAGE_KEY)
        except Exception:
            logger.warning("Could not read saved idle session.", exc_info=True)
            return
        if not saved:
            return
        try:
            last_activity = ensure_utc(datetime.fromisoformat(saved["last_activity_at"]))
            hidden = saved.get("hidden_at")
            hidden_at = ensure_utc(datetime.fromisoformat(hidden)) if hidden else None
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring unreadable idle session.", exc_info=True)
            return
        self._session = IdleSession(
            last_activity_at=last_activity,
            is_idle=bool(saved.get("is_idle", False)),
            hidden_at=hidden_at,
        )

    def _save_locked(self) -> None:
        if self._local_store is None:
            return
        s = self._session
        try:
            self._local_store.set(
                STORAGE_KEY,
                {
                    "last_activity_at": s.last_activity_at.isoformat(),
                    "is_idle": s.is_idle,
                    "hidden_at": s.hidden_at.isoformat() if s.hidden_at else None,
                },
            )
        except Exception:
            logger.warning("Could not save idle session.", exc_info=True)


class IdleWatcher:
    """Runs ``detector.check()`` on a background thread."""

    def __init__(self, detector: IdleDetector, interval_seconds: float = 1.0) -> None:
        self._detector = detector
        self._interval = interval_seconds
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run, args=(stop_event,), name="idle-watcher", daemon=True
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info("Idle watcher started.")

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        thread.join(timeout=10)
        logger.info("Idle watcher stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self._detector.check()
            except Exception:
                logger.exception("Idle check failed.")
            # Sleep in an interruptible manner.
            stop_event.wait(self._interval)
