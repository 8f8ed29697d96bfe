"""
Tests for core.time - Clock protocol and validity windows.
"""

import pytest
from datetime import datetime, timezone, timedelta

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
    set_default_clock,
    get_default_clock,
    now_utc,
)
from core.time.temporal import ValidityWindow

NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


# ── Clock Tests ──────────────────────────────────────────────

class TestSystemClock:
    def test_returns_utc_datetime(self):
        clock = SystemClock()
        dt = clock.now_utc()
        assert dt.tzinfo is not None
        assert dt.tzinfo == timezone.utc

    def test_time_advances(self):
        clock = SystemClock()
        t1 = clock.now_utc()
        t2 = clock.now_utc()
        assert t2 >= t1


class TestFixedClock:
    def test_returns_fixed_time(self):
        clock = FixedClock(NOW)
        assert clock.now_utc() == NOW
        assert clock.now_utc() == NOW  # Same every time

    def test_rejects_naive_datetime(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            FixedClock(datetime(2026, 1, 1))

    def test_advance(self):
        clock = FixedClock(NOW)
        clock.advance(60)
        assert clock.now_utc() == NOW + timedelta(seconds=60)

    def test_advance_days(self):
        clock = FixedClock(NOW)
        clock.advance_days(2)
        assert clock.now_utc() == NOW + timedelta(days=2)

    def test_satisfies_protocol(self):
        clock: Clock = FixedClock(NOW)
        assert isinstance(clock.now_utc(), datetime)


class TestDefaultClock:
    def test_set_and_get_default(self):
        original = get_default_clock()
        fixed = FixedClock(NOW)
        set_default_clock(fixed)
        try:
            assert get_default_clock() is fixed
            assert now_utc() == NOW
        finally:
            set_default_clock(original)


# ── Validity Window Tests ────────────────────────────────────

class TestValidityWindow:
    def test_unbounded_window_always_contains(self):
        window = ValidityWindow()
        assert window.contains(NOW)
        assert not window.is_upcoming(NOW)
        assert not window.is_expired(NOW)

    def test_bounds_are_inclusive(self):
        window = ValidityWindow(NOW, NOW + timedelta(days=1))
        assert window.contains(NOW)
        assert window.contains(NOW + timedelta(days=1))

    def test_upcoming(self):
        window = ValidityWindow(valid_from=NOW + timedelta(seconds=1))
        assert window.is_upcoming(NOW)
        assert not window.contains(NOW)

    def test_expired(self):
        window = ValidityWindow(valid_to=NOW - timedelta(days=1))
        assert window.is_expired(NOW)
        assert not window.contains(NOW)

    def test_open_start(self):
        window = ValidityWindow(valid_to=NOW + timedelta(days=30))
        assert window.contains(datetime(2000, 1, 1, tzinfo=timezone.utc))

    def test_rejects_inverted_bounds(self):
        with pytest.raises(ValueError, match="must be <="):
            ValidityWindow(NOW, NOW - timedelta(days=1))

    def test_rejects_naive_bounds(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            ValidityWindow(valid_to=datetime(2026, 3, 9))
        with pytest.raises(ValueError, match="timezone-aware"):
            ValidityWindow(valid_from=datetime(2026, 3, 9), valid_to=NOW)
