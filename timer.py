"""
Question countdown.

The persisted Question.time_limit is the only authoritative limit. The
server takes the client's reported time spent at submission, clamped to
[0, time_limit]; it does not track wall-clock time between requests.

Countdown is the client-side view: remaining time is always recomputed
from an anchor timestamp and the accumulated paused time, never from
summed one-second ticks, so a sleeping tab cannot drift.
"""

import time
import math


def clamp_time_spent(time_spent, time_limit: int) -> int:
    try:
        spent = float(time_spent)
    except (TypeError, ValueError):
        return time_limit
    if spent != spent:
        return time_limit
    return int(min(time_limit, max(0, round(spent))))


def time_spent_from_remaining(time_limit: int, remaining) -> int:
    return clamp_time_spent(time_limit - remaining, time_limit)


class Countdown:
    def __init__(self, question_id: str, time_limit: int, started_at: float = None, clock=time.monotonic):
        self.question_id = question_id
        self.time_limit = time_limit
        self._clock = clock
        self.started_at = clock() if started_at is None else started_at
        self.paused_total = 0.0
        self.paused_since = None

    @property
    def paused(self) -> bool:
        return self.paused_since is not None

    def elapsed(self, now: float = None) -> float:
        now = self._clock() if now is None else now
        frozen = (now - self.paused_since) if self.paused else 0.0
        return max(0.0, now - self.started_at - self.paused_total - frozen)

    def remaining(self, now: float = None) -> int:
        """Whole seconds left, rounded up so the display hits 0 only at expiry."""
        left = self.time_limit - self.elapsed(now)
        return max(0, math.ceil(left))

    def expired(self, now: float = None) -> bool:
        return self.remaining(now) == 0

    def pause(self, now: float = None):
        if not self.paused:
            self.paused_since = self._clock() if now is None else now

    def resume(self, now: float = None):
        if self.paused:
            now = self._clock() if now is None else now
            self.paused_total += now - self.paused_since
            self.paused_since = None

    def time_spent(self, now: float = None) -> int:
        return time_spent_from_remaining(self.time_limit, self.remaining(now))

    def display(self, now: float = None) -> str:
        left = self.remaining(now)
        return f"{left // 60:02d}:{left % 60:02d}"
