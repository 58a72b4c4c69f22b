"""Data types shared by the triage engine and its collaborators."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union, get_args


# Passive signals plus the manual quick-capture entry point
SourceKind = Literal["clipboard", "screen", "selection", "tray-manual"]
SOURCE_KINDS = get_args(SourceKind)

UNKNOWN_APP = "Unknown"

MetadataValue = Union[str, bool]


@dataclass
class CaptureEvent:
    """A piece of text handed to the capture sink."""
    text: str
    source: SourceKind
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.source not in SOURCE_KINDS:
            raise ValueError(f"Unknown capture source: {self.source!r}")
        if self.created_at is None:
            self.created_at = datetime.utcnow()


@dataclass
class ScreenCapture:
    """Raw OCR text plus the app that was in front when the shot was taken."""
    text: str
    app_name: str = UNKNOWN_APP


@dataclass
class SuggestionResult:
    """Response of the analyze endpoint."""
    related: List[Dict[str, Any]] = field(default_factory=list)
    context: Optional[str] = None

    @classmethod
    def from_response(cls, data: Any) -> "SuggestionResult":
        if not isinstance(data, dict):
            return cls()
        related = data.get("related")
        if not isinstance(related, list):
            related = []
        context = data.get("context")
        if not isinstance(context, str):
            context = None
        return cls(related=related, context=context)

    @property
    def has_related(self) -> bool:
        return bool(self.related)


@dataclass
class AmbientSuggestion:
    """Surfaced to the rest of the application when screen content recalls memories."""
    related: List[Dict[str, Any]]
    app_name: str
    context: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "related": self.related,
            "context": self.context,
            "app_name": self.app_name,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class SignalSnapshot:
    """Last values seen by the scheduler. Only the scheduler mutates this."""
    clipboard_text: str = ""
    screen_text: str = ""
    app_name: str = ""
