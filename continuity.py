"""
Client-side session continuity.

Only two things are persisted across reloads: the last aggregate view of
the active candidate and the last-activity time. On load the client offers
"continue" when that session is fresh (24h) and still in progress; the
server state machine remains the only source of truth.
"""

import json
import time
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

FRESHNESS_WINDOW = 24 * 60 * 60
RESUMABLE_STATUSES = ("interviewing", "info_collection", "paused")


class SessionCache:
    def __init__(self, path, clock=time.time):
        self.path = Path(path)
        self._clock = clock
        self.candidate = None
        self.last_activity = None
        self.load()

    def load(self):
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError(f"expected an object, got {type(data).__name__}")
            candidate = data.get("candidate")
            if candidate is not None and not isinstance(candidate, dict):
                raise ValueError("candidate is not an object")
            last_activity = data.get("lastActivity")
            if last_activity is not None and not isinstance(last_activity, (int, float)):
                raise ValueError("lastActivity is not a timestamp")
            self.candidate = candidate
            self.last_activity = last_activity
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session cache %s: %s", self.path, e)
            self.candidate = None
            self.last_activity = None

    def _write(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps({"candidate": self.candidate, "lastActivity": self.last_activity}),
            encoding="utf-8",
        )

    def save(self, aggregate: dict):
        self.candidate = aggregate
        self.touch()

    def touch(self):
        self.last_activity = self._clock()
        self._write()

    def candidate_id(self):
        return self.candidate.get("id") if self.candidate else None

    def offer_resume(self, now: float = None) -> bool:
        """True when the client should ask continue-or-start-fresh."""
        if not self.candidate or self.last_activity is None:
            return False
        now = self._clock() if now is None else now
        if now - self.last_activity > FRESHNESS_WINDOW:
            return False
        return self.candidate.get("status") in RESUMABLE_STATUSES

    def start_fresh(self):
        self.candidate = None
        self.last_activity = None
        if self.path.exists():
            self.path.unlink()
