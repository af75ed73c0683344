"""Tests for OS input polling."""
from __future__ import annotations

from time_ledger.activity import InputActivityWatcher
from time_ledger.idle import IdleDetector


class FakeProbe:
    def __init__(self, since_input_ms: int) -> None:
        self.since_input_ms = since_input_ms

    def milliseconds_since_input(self) -> int:
        return self.since_input_ms


class TestInputActivityWatcher:

    def test_recent_input_counts_as_activity(self, clock):
        detector = IdleDetector(60_000, clock=clock)
        watcher = InputActivityWatcher(detector, FakeProbe(1_000), interval_seconds=5)
        clock.advance(seconds=50)
        assert watcher.poll_once() is True
        clock.advance(seconds=50)
        assert detector.check() is False

    def test_stale_input_is_ignored(self, clock):
        detector = IdleDetector(60_000, clock=clock)
        watcher = InputActivityWatcher(detector, FakeProbe(120_000), interval_seconds=5)
        clock.advance(seconds=50)
        assert watcher.poll_once() is False
        clock.advance(seconds=10)
        assert detector.check() is True

    def test_probe_failure_is_treated_as_no_input(self, clock):
        class BrokenProbe:
            def milliseconds_since_input(self) -> int:
                raise OSError("no session")

        detector = IdleDetector(60_000, clock=clock)
        watcher = InputActivityWatcher(detector, BrokenProbe())
        assert watcher.poll_once() is False

    def test_start_and_stop(self, clock):
        detector = IdleDetector(60_000, clock=clock)
        watcher = InputActivityWatcher(detector, FakeProbe(0), interval_seconds=0.01)
        watcher.start()
        assert watcher.is_running()
        watcher.stop()
        assert not watcher.is_running()
