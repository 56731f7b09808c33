"""
Tests for the question countdown and time-spent clamping.
Run: pytest tests/test_timer.py -v
"""

import pytest

from timer import Countdown, clamp_time_spent, time_spent_from_remaining


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestClampTimeSpent:
    @pytest.mark.parametrize("spent,limit,expected", [
        (5, 20, 5),
        (-4, 20, 0),
        (300, 60, 60),
        (12.6, 60, 13),
        (None, 20, 20),
        ("abc", 20, 20),
    ])
    def test_clamp(self, spent, limit, expected):
        assert clamp_time_spent(spent, limit) == expected

    def test_from_remaining(self):
        assert time_spent_from_remaining(60, 45) == 15
        assert time_spent_from_remaining(60, 0) == 60
        assert time_spent_from_remaining(60, 90) == 0


class TestCountdown:
    def test_counts_down_from_anchor(self):
        clock = FakeClock()
        cd = Countdown("q1", 20, clock=clock)
        assert cd.remaining() == 20
        clock.now += 7.2
        assert cd.remaining() == 13
        assert cd.time_spent() == 7
        assert not cd.expired()

    def test_long_sleep_does_not_drift(self):
        clock = FakeClock()
        cd = Countdown("q1", 60, clock=clock)
        # a tab asleep for ten minutes still sees the real remaining time
        clock.now += 600
        assert cd.remaining() == 0
        assert cd.expired()
        assert cd.time_spent() == 60

    def test_pause_freezes(self):
        clock = FakeClock()
        cd = Countdown("q1", 60, clock=clock)
        clock.now += 10
        cd.pause()
        clock.now += 100
        assert cd.paused
        assert cd.remaining() == 50
        cd.resume()
        clock.now += 5
        assert cd.remaining() == 45
        assert not cd.paused

    def test_pause_and_resume_are_idempotent(self):
        clock = FakeClock()
        cd = Countdown("q1", 60, clock=clock)
        cd.pause()
        clock.now += 10
        cd.pause()
        clock.now += 10
        cd.resume()
        cd.resume()
        assert cd.remaining() == 60

    def test_display(self):
        clock = FakeClock()
        cd = Countdown("q1", 120, clock=clock)
        assert cd.display() == "02:00"
        clock.now += 61
        assert cd.display() == "00:59"

    def test_explicit_now(self):
        cd = Countdown("q1", 20, started_at=0.0)
        assert cd.remaining(now=5.5) == 15
        assert cd.expired(now=20.0)
