"""Where triaged observations go: the capture and analyze endpoints."""

from typing import Callable, Protocol

from .api import ReattendClient
from .models import CaptureEvent, SuggestionResult


class CaptureSink(Protocol):
    async def submit_capture(self, event: CaptureEvent) -> str:
        """Persist the event as a memory and return its id."""


class SuggestionSink(Protocol):
    async def request_suggestions(self, text: str, app_name: str) -> SuggestionResult:
        """Related memories for the given screen text."""


class ApiCaptureSink:
    """CaptureSink backed by POST /api/tray/capture."""

    def __init__(self, client_factory: Callable[[], ReattendClient]):
        self.client_factory = client_factory

    async def submit_capture(self, event: CaptureEvent) -> str:
        return await self.client_factory().capture(
            event.text,
            event.source,
            dict(event.metadata) if event.metadata else None
        )


class ApiSuggestionSink:
    """SuggestionSink backed by POST /api/tray/analyze."""

    def __init__(self, client_factory: Callable[[], ReattendClient]):
        self.client_factory = client_factory

    async def request_suggestions(self, text: str, app_name: str) -> SuggestionResult:
        data = await self.client_factory().analyze(text, app_name)
        return SuggestionResult.from_response(data)
