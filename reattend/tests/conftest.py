"""Shared fakes for the triage tests."""

import asyncio
from typing import List, Optional

import pytest

from reattend.daemon.actions import UserActions
from reattend.daemon.bus import EventBus
from reattend.daemon.config import Config, ControlConfig
from reattend.daemon.errors import ErrorTracker, ProbeError
from reattend.daemon.models import CaptureEvent, ScreenCapture, SuggestionResult
from reattend.daemon.scheduler import TriageScheduler
from reattend.daemon.state import QuitFlag, SnoozeWindow


# Distinct paragraphs with almost no shared words
PARAGRAPHS = [
    "Quarterly planning meeting moved to Thursday afternoon because the venue changed last minute.",
    "Remember to renew passport before traveling abroad; embassy appointments fill quickly during summer months.",
    "Grandma's lasagna recipe needs fresh basil, ricotta cheese, and slow baking for ninety minutes.",
    "Investors asked whether churn improved after onboarding emails were rewritten by marketing staff.",
]


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAppProbe:
    def __init__(self, name: str = "Safari"):
        self.name = name
        self.calls = 0

    def get_foreground_app(self) -> str:
        self.calls += 1
        return self.name


class FakeClipboardProbe:
    def __init__(self, text: Optional[str] = None):
        self.text = text
        self.calls = 0

    def read_clipboard_text(self) -> Optional[str]:
        self.calls += 1
        return self.text


class FakeScreenProbe:
    def __init__(self, text: str = PARAGRAPHS[0], app_name: str = "Safari"):
        self.text = text
        self.app_name = app_name
        self.error: Optional[Exception] = None
        self.calls = 0

    async def capture_screen_text(self) -> ScreenCapture:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return ScreenCapture(text=self.text, app_name=self.app_name)


class FakeCaptureSink:
    def __init__(self):
        self.events: List[CaptureEvent] = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def submit_capture(self, event: CaptureEvent) -> str:
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        self.events.append(event)
        return f"mem_{len(self.events)}"

    def by_source(self, source: str) -> List[CaptureEvent]:
        return [e for e in self.events if e.source == source]


class FakeSuggestionSink:
    def __init__(self, result: Optional[SuggestionResult] = None):
        self.result = result or SuggestionResult()
        self.requests = []
        self.error: Optional[Exception] = None

    async def request_suggestions(self, text: str, app_name: str) -> SuggestionResult:
        self.requests.append((text, app_name))
        if self.error is not None:
            raise self.error
        return self.result


class Harness:
    """A scheduler wired to fakes."""

    def __init__(self, config: Config):
        self.config = config
        self.clock = FakeClock()
        self.app = FakeAppProbe()
        self.clipboard = FakeClipboardProbe()
        self.screen = FakeScreenProbe()
        self.capture = FakeCaptureSink()
        self.suggest = FakeSuggestionSink()
        self.bus = EventBus()
        self.snooze = SnoozeWindow(clock=self.clock)
        self.quit_flag = QuitFlag()
        self.errors = ErrorTracker()
        self.scheduler = TriageScheduler(
            config_provider=lambda: self.config,
            app_probe=self.app,
            clipboard_probe=self.clipboard,
            screen_probe=self.screen,
            capture_sink=self.capture,
            suggestion_sink=self.suggest,
            event_bus=self.bus,
            snooze=self.snooze,
            quit_flag=self.quit_flag,
            errors=self.errors,
        )

    async def settle(self) -> None:
        """Wait for background capture submissions."""
        pending = [t for t in self.scheduler._inflight if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def ticks(self, count: int) -> None:
        for _ in range(count):
            await self.scheduler.tick()
        await self.settle()

    async def screen_cycle(self, text: str, app_name: str = "Safari") -> None:
        """Advance to the next tick on which the screen is sampled."""
        self.screen.text = text
        self.screen.app_name = app_name
        before = self.screen.calls
        while self.screen.calls == before:
            await self.scheduler.tick()
        await self.settle()


def make_config(**overrides) -> Config:
    data = {"api_token": "test-token", "control": ControlConfig(enabled=False)}
    data.update(overrides)
    return Config(**data)


class ActionsHarness:
    """UserActions wired to fakes."""

    def __init__(self, **config_overrides):
        self.config = make_config(**config_overrides)
        self.clock = FakeClock()
        self.capture = FakeCaptureSink()
        self.clipboard = FakeClipboardProbe()
        self.snooze = SnoozeWindow(clock=self.clock)
        self.quit_flag = QuitFlag()
        self.bus = EventBus()
        self.actions = UserActions(
            config_provider=lambda: self.config,
            capture_sink=self.capture,
            clipboard_probe=self.clipboard,
            snooze=self.snooze,
            quit_flag=self.quit_flag,
            event_bus=self.bus,
        )

    def queued_events(self):
        events = []
        while not self.bus._event_queue.empty():
            events.append(self.bus._event_queue.get_nowait())
        return events


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def harness(config):
    return Harness(config)


@pytest.fixture
def probe_error():
    return ProbeError("OCR request failed: timed out")
