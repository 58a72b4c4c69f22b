"""
Process-wide flags touched from outside the triage loop.

The snooze deadline is written by the user (control API, CLI) and read by
the scheduler every screen cycle; the quit flag is written by a menu or
signal handler and read by the loop. Both may be touched from threads
other than the event loop's, so access goes through a lock or Event.
"""

import threading
import time
from datetime import datetime
from typing import Callable, Optional


Clock = Callable[[], float]

# One week; also keeps the deadline within datetime range
MAX_SNOOZE_MINUTES = 7 * 24 * 60


class SnoozeWindow:
    """Suggestions are suppressed until a wall-clock deadline (epoch seconds)."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._until = 0.0

    def snooze(self, minutes: float) -> float:
        """Suppress suggestions for the next `minutes`; returns the new deadline."""
        if not 0 <= minutes <= MAX_SNOOZE_MINUTES:
            raise ValueError(f"minutes must be between 0 and {MAX_SNOOZE_MINUTES}")
        until = self._clock() + minutes * 60
        with self._lock:
            self._until = until
        return until

    @property
    def until(self) -> float:
        with self._lock:
            return self._until

    def is_snoozed(self, now: Optional[float] = None) -> bool:
        if now is None:
            now = self._clock()
        return now < self.until

    def remaining_seconds(self) -> float:
        return max(0.0, self.until - self._clock())

    def to_dict(self) -> dict:
        until = self.until
        return {
            "snoozed": self.is_snoozed(),
            "until": datetime.fromtimestamp(until).isoformat() if until else None,
            "remaining_seconds": round(self.remaining_seconds(), 1),
        }


class QuitFlag:
    """Level-triggered request to shut the daemon down."""

    def __init__(self):
        self._event = threading.Event()

    def request(self) -> None:
        self._event.set()

    @property
    def requested(self) -> bool:
        return self._event.is_set()
