"""
Error taxonomy and failure bookkeeping.

Three kinds of trouble reach the triage loop:
- probe failures (screenshot/OCR, clipboard or foreground app unavailable)
- sink failures (network or auth errors from capture/analyze calls)
- policy rejections (text filtered by thresholds), which are not errors

The loop swallows the first two at the call site and records them here so
that status reporting can show what has been failing.
"""

from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, List, Optional


class ReattendError(Exception):
    """Base class for daemon errors."""


class NotConfiguredError(ReattendError):
    """No API token has been configured."""

    def __init__(self, message: str = "No API token configured"):
        super().__init__(message)


class ProbeError(ReattendError):
    """A desktop probe could not produce a reading."""


class NetworkError(ReattendError):
    """Transport-level failure talking to the remote service."""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Network error: {cause}")


class ApiError(ReattendError):
    """The remote service answered with a non-success status."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"API error {status_code}: {body}")

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)


class ErrorSource(Enum):
    """Where in the loop a failure happened."""
    CLIPBOARD = "clipboard"
    APP = "app"
    SCREEN = "screen"
    CAPTURE = "capture"
    SUGGEST = "suggest"
    TICK = "tick"


@dataclass
class ErrorEvent:
    """A single recorded failure."""
    source: ErrorSource
    error_type: str
    message: str
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'source': self.source.value,
            'error_type': self.error_type,
            'message': self.message,
        }


class ErrorTracker:
    """Counts failures per source and keeps the most recent ones."""

    def __init__(self, max_recent: int = 50):
        self.counts: Counter = Counter()
        self.recent: Deque[ErrorEvent] = deque(maxlen=max_recent)

    def record(self, source: ErrorSource, error: BaseException) -> ErrorEvent:
        event = ErrorEvent(
            source=source,
            error_type=type(error).__name__,
            message=str(error),
        )
        self.counts[source.value] += 1
        self.recent.append(event)
        return event

    def count(self, source: Optional[ErrorSource] = None) -> int:
        if source is None:
            return sum(self.counts.values())
        return self.counts[source.value]

    def last(self) -> Optional[ErrorEvent]:
        return self.recent[-1] if self.recent else None

    def summary(self) -> Dict[str, Any]:
        last = self.last()
        return {
            'counts': dict(self.counts),
            'total': self.count(),
            'last_error': last.to_dict() if last else None,
        }

    def recent_events(self, limit: int = 10) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in list(self.recent)[-limit:]]
