"""
User-initiated actions.

Unlike the passive loop, these report their outcome: every action returns
an ActionResult that the caller shows to the user as a notification.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from loguru import logger

from .bus import QUIT_REQUESTED, SNOOZE_UPDATED, Event, EventBus
from .config import Config
from .errors import ReattendError
from .models import CaptureEvent, SourceKind
from .probes import ClipboardProbe
from .sinks import CaptureSink
from .state import QuitFlag, SnoozeWindow


APP_TITLE = "Reattend"
SAVED_TITLE = "Saved to Reattend"
NOT_CONNECTED = "Not connected. Set your API token in Settings."
NO_SELECTION = "No text selected. Select some text and try again."

MIN_SELECTION_WORDS = 2
PREVIEW_CHARS = 60


@dataclass
class ActionResult:
    ok: bool
    title: str
    body: str
    memory_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "title": self.title,
            "body": self.body,
            "id": self.memory_id,
        }


def preview(text: str) -> str:
    """Notification body for saved text."""
    if len(text) > PREVIEW_CHARS:
        return text[:PREVIEW_CHARS - 3] + "..."
    return text


class UserActions:
    """Capture, selection, snooze and quit commands."""

    def __init__(
        self,
        config_provider: Callable[[], Config],
        capture_sink: CaptureSink,
        clipboard_probe: ClipboardProbe,
        snooze: SnoozeWindow,
        quit_flag: QuitFlag,
        event_bus: Optional[EventBus] = None
    ):
        self.config_provider = config_provider
        self.capture_sink = capture_sink
        self.clipboard_probe = clipboard_probe
        self.snooze_window = snooze
        self.quit_flag = quit_flag
        self.event_bus = event_bus

    async def _capture(self, event: CaptureEvent, success_title: str) -> ActionResult:
        if not self.config_provider().is_configured:
            return ActionResult(False, APP_TITLE, NOT_CONNECTED)
        try:
            memory_id = await self.capture_sink.submit_capture(event)
        except ReattendError as e:
            logger.warning(f"Save failed: {e}")
            return ActionResult(False, APP_TITLE, f"Failed to save: {e}")
        return ActionResult(True, success_title, preview(event.text), memory_id=memory_id)

    async def capture_text(self, text: str, source: SourceKind = "tray-manual") -> ActionResult:
        """Quick capture of typed text."""
        text = (text or "").strip()
        if not text:
            return ActionResult(False, APP_TITLE, "Nothing to capture.")
        return await self._capture(CaptureEvent(text=text, source=source), "Captured")

    async def save_selection(self, text: str, origin: str = "manual_selection") -> ActionResult:
        """Save selected text; origin is manual_selection or services_menu."""
        if not text or len(text.split()) < MIN_SELECTION_WORDS:
            return ActionResult(False, APP_TITLE, NO_SELECTION)
        event = CaptureEvent(
            text=text,
            source="selection",
            metadata={"capture_type": "selection", "source": origin}
        )
        return await self._capture(event, SAVED_TITLE)

    async def save_clipboard_selection(self) -> ActionResult:
        """Save whatever the user just copied."""
        try:
            text = self.clipboard_probe.read_clipboard_text()
        except Exception as e:
            logger.debug(f"Clipboard probe failed: {e}")
            text = None
        return await self.save_selection(text or "", "manual_selection")

    def snooze(self, minutes: float) -> ActionResult:
        until = self.snooze_window.snooze(minutes)
        logger.info(f"Ambient suggestions snoozed for {minutes} minutes")
        if self.event_bus is not None:
            self.event_bus.emit_nowait(Event(
                type=SNOOZE_UPDATED,
                data={"minutes": minutes, "until": until},
                source="user_actions"
            ))
        return ActionResult(True, APP_TITLE, f"Suggestions snoozed for {minutes:g} minutes.")

    def request_quit(self) -> ActionResult:
        logger.info("Quit requested")
        self.quit_flag.request()
        if self.event_bus is not None:
            self.event_bus.emit_nowait(Event(type=QUIT_REQUESTED, data={}, source="user_actions"))
        return ActionResult(True, APP_TITLE, "Quitting Reattend.")
