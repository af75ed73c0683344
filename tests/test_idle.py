"""Tests for the idle detector."""
from __future__ import annotations

import time

import pytest

from time_ledger.idle import IdleDetector, IdleWatcher
from time_ledger.local_store import MemoryStore


@pytest.fixture
def detector(clock, local_store) -> IdleDetector:
    return IdleDetector(300_000, clock=clock, local_store=local_store)


class TestCountdown:

    def test_five_second_timeout_flips_once(self, clock):
        detector = IdleDetector(5_000, clock=clock)
        events = []
        detector.subscribe(events.append)
        clock.advance(milliseconds=5_001)
        detector.check()
        detector.check()
        assert events == [True]

    def test_activity_inside_window_keeps_active(self, clock):
        detector = IdleDetector(5_000, clock=clock)
        clock.advance(milliseconds=4_000)
        detector.record_activity("pointerdown")
        clock.advance(milliseconds=4_000)
        assert detector.check() is False

    def test_goes_idle_after_timeout(self, detector, clock):
        clock.advance(minutes=4, seconds=59)
        assert detector.check() is False
        clock.advance(1)
        assert detector.check() is True

    def test_idle_even_if_checks_were_skipped(self, detector, clock):
        """A delayed check still sees the full elapsed time."""
        clock.advance(minutes=30)
        assert detector.check() is True

    def test_activity_restarts_countdown(self, detector, clock):
        clock.advance(minutes=4)
        assert detector.record_activity("keydown")
        clock.advance(minutes=4)
        assert detector.check() is False
        assert detector.remaining_ms() == pytest.approx(60_000)

    def test_activity_while_idle_clears_it(self, detector, clock):
        clock.advance(minutes=6)
        assert detector.check()
        detector.record_activity("mousemove")
        assert detector.is_idle is False

    def test_unknown_signal_is_ignored(self, detector, clock):
        clock.advance(minutes=4)
        assert detector.record_activity("resize") is False
        clock.advance(minutes=1)
        assert detector.check() is True

    def test_reset_idle(self, detector, clock):
        clock.advance(minutes=10)
        detector.check()
        detector.reset_idle()
        assert detector.is_idle is False
        assert detector.remaining_ms() == pytest.approx(300_000)


class TestThrottle:

    def test_signals_within_a_second_are_dropped(self, detector, clock):
        assert detector.record_activity("mousemove")
        clock.advance(milliseconds=500)
        assert detector.record_activity("mousemove") is False
        clock.advance(milliseconds=500)
        assert detector.record_activity("mousemove")

    def test_throttled_signal_does_not_move_last_activity(self, detector, clock):
        detector.record_activity("scroll")
        first = detector.session.last_activity_at
        clock.advance(milliseconds=200)
        detector.record_activity("scroll")
        assert detector.session.last_activity_at == first


class TestVisibility:

    def test_long_hidden_goes_idle_on_return(self, detector, clock):
        detector.page_hidden()
        clock.advance(minutes=5)
        detector.page_visible()
        assert detector.is_idle is True

    def test_short_hidden_counts_as_activity(self, detector, clock):
        clock.advance(minutes=4)
        detector.page_hidden()
        clock.advance(minutes=2)
        detector.page_visible()
        assert detector.is_idle is False
        assert detector.remaining_ms() == pytest.approx(300_000)

    def test_visible_without_hidden_is_noop(self, detector, clock):
        clock.advance(minutes=2)
        detector.page_visible()
        assert detector.remaining_ms() == pytest.approx(180_000)


class TestListeners:

    def test_notified_once_per_transition(self, detector, clock):
        events = []
        detector.subscribe(events.append)
        clock.advance(minutes=6)
        detector.check()
        detector.check()
        detector.check()
        detector.record_activity("keydown")
        clock.advance(seconds=2)
        detector.record_activity("keydown")
        assert events == [True, False]

    def test_unsubscribe(self, detector, clock):
        events = []
        unsubscribe = detector.subscribe(events.append)
        unsubscribe()
        clock.advance(minutes=6)
        detector.check()
        assert events == []

    def test_failing_listener_does_not_block_others(self, detector, clock):
        events = []

        def broken(_value):
            raise RuntimeError("boom")

        detector.subscribe(broken)
        detector.subscribe(events.append)
        clock.advance(minutes=6)
        assert detector.check() is True
        assert events == [True]

    def test_listener_may_read_detector(self, detector, clock):
        seen = []
        detector.subscribe(lambda _v: seen.append(detector.remaining_ms()))
        clock.advance(minutes=6)
        detector.check()
        assert seen == [0.0]


class TestPersistence:

    def test_session_survives_reload(self, clock, local_store):
        first = IdleDetector(300_000, clock=clock, local_store=local_store)
        first.page_hidden()
        clock.advance(minutes=10)

        second = IdleDetector(300_000, clock=clock, local_store=local_store)
        second.page_visible()
        assert second.is_idle is True

    def test_unreadable_session_is_ignored(self, clock):
        store = MemoryStore()
        store.set("idle_session", {"last_activity_at": "not a date"})
        detector = IdleDetector(300_000, clock=clock, local_store=store)
        assert detector.is_idle is False
        assert detector.session.last_activity_at == clock.now()


class TestWatcher:

    def test_watcher_flips_detector(self, clock):
        detector = IdleDetector(1_000, clock=clock)
        watcher = IdleWatcher(detector, interval_seconds=0.01)
        watcher.start()
        try:
            assert watcher.is_running()
            clock.advance(seconds=2)
            deadline = time.monotonic() + 2
            while not detector.is_idle and time.monotonic() < deadline:
                time.sleep(0.01)
            assert detector.is_idle
        finally:
            watcher.stop()
        assert not watcher.is_running()

    def test_stop_without_start(self, clock):
        IdleWatcher(IdleDetector(clock=clock)).stop()
