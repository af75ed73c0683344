"""Feeds operating-system input activity into the idle detector.

Browsers deliver pointer and key events directly; a desktop host has to ask
the OS how long ago the last input happened. The watcher polls a probe and
forwards recent input as an activity signal.
"""

from __future__ import annotations

import ctypes
import logging
import sys
import threading
from typing import Optional, Protocol

from .idle import IdleDetector

logger = logging.getLogger(__name__)


class InputProbe(Protocol):
    def milliseconds_since_input(self) -> int: ...


class WindowsInputProbe:
    """Reads the time since the last keyboard or mouse input via Win32."""

    def __init__(self) -> None:
        from ctypes import wintypes

        class LASTINPUTINFO(ctypes.Structure):
            _fields_ = [("cbSize", wintypes.UINT), ("dwTime", wintypes.DWORD)]

        self._info_type = LASTINPUTINFO
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
        self._kernel32.GetTickCount64.restype = ctypes.c_ulonglong

    def milliseconds_since_input(self) -> int:
        last_input = self._info_type()
        last_input.cbSize = ctypes.sizeof(last_input)
        if not self._user32.GetLastInputInfo(ctypes.byref(last_input)):
            raise ctypes.WinError()  # type: ignore[attr-defined]
        # dwTime wraps every ~49.7 days; compare against the low 32 bits.
        now = self._kernel32.GetTickCount64() & 0xFFFFFFFF
        return int((now - last_input.dwTime) & 0xFFFFFFFF)


def default_probe() -> Optional[InputProbe]:
    """The probe for this platform, or None where none is available."""
    if sys.platform == "win32":
        return WindowsInputProbe()
    return None


class InputActivityWatcher:
    """Polls an input probe and reports fresh input to the idle detector."""

    def __init__(
        self,
        detector: IdleDetector,
        probe: InputProbe,
        interval_seconds: float = 5.0,
    ) -> None:
        self._detector = detector
        self._probe = probe
        self._interval = interval_seconds
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def poll_once(self) -> bool:
        """Forward input seen since the previous poll. Returns whether any was."""
        try:
            since_input = self._probe.milliseconds_since_input()
        except Exception:
            logger.exception("Failed to query last input time; assuming no input.")
            return False
        if since_input < self._interval * 1000:
            self._detector.record_activity("input")
            return True
        return False

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run, args=(stop_event,), name="input-watcher", daemon=True
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info("Input activity watcher started.")

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
        logger.info("Input activity watcher stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            self.poll_once()
            stop_event.wait(self._interval)
