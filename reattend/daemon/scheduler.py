"""
Passive triage loop.

One coroutine ticks every couple of seconds and decides which desktop
signals to sample on this tick:

- clipboard every 3rd tick: new, meaningful text is captured
- foreground app every 2nd tick: a switch pulls the next screen sample forward
- screen every 30th tick: OCR text is cleaned, compared with the last
  accepted screen text, captured in the background, and sent for analysis
  unless suggestions are snoozed

All branches due on a tick run in that order. Only this loop mutates the
tick counter and the signal snapshot; the snooze deadline and quit flag are
the only state shared with other tasks.
"""

import asyncio
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from .bus import (
    AMBIENT_SUGGESTION, CAPTURE_FAILED, CAPTURE_SUBMITTED, Event, EventBus
)
from .config import Config
from .errors import ErrorSource, ErrorTracker
from .models import AmbientSuggestion, CaptureEvent, SignalSnapshot
from .normalizer import clean_ocr_text, word_count
from .probes import AppActivityProbe, ClipboardProbe, ScreenTextProbe
from .similarity import is_material_change
from .sinks import CaptureSink, SuggestionSink
from .skip_apps import is_known_app, is_skip_app
from .state import QuitFlag, SnoozeWindow


class TriageScheduler:
    """Multiplexes clipboard, app and screen signals on a single tick loop."""

    def __init__(
        self,
        config_provider: Callable[[], Config],
        app_probe: AppActivityProbe,
        clipboard_probe: ClipboardProbe,
        screen_probe: ScreenTextProbe,
        capture_sink: CaptureSink,
        suggestion_sink: SuggestionSink,
        event_bus: Optional[EventBus] = None,
        snooze: Optional[SnoozeWindow] = None,
        quit_flag: Optional[QuitFlag] = None,
        errors: Optional[ErrorTracker] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        max_inflight_captures: int = 16
    ):
        self.config_provider = config_provider
        self.app_probe = app_probe
        self.clipboard_probe = clipboard_probe
        self.screen_probe = screen_probe
        self.capture_sink = capture_sink
        self.suggestion_sink = suggestion_sink
        self.event_bus = event_bus or EventBus()
        self.snooze = snooze or SnoozeWindow()
        self.quit_flag = quit_flag or QuitFlag()
        self.errors = errors or ErrorTracker()
        self._sleep = sleep
        self.max_inflight_captures = max_inflight_captures

        self.ticks = 0
        self._snapshot = SignalSnapshot()
        self._inflight: List[asyncio.Task] = []

        self.running = False
        self.task: Optional[asyncio.Task] = None
        self.started_at: Optional[float] = None

        self.stats = {
            "ticks": 0,
            "idle_ticks": 0,
            "clipboard_samples": 0,
            "clipboard_captures": 0,
            "app_samples": 0,
            "app_switches": 0,
            "screen_samples": 0,
            "screen_skipped_apps": 0,
            "screen_too_short": 0,
            "screen_unchanged": 0,
            "screen_captures": 0,
            "captures_dropped": 0,
            "suggestions_requested": 0,
            "suggestions_snoozed": 0,
            "suggestions_surfaced": 0,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.started_at = time.time()
        self.task = asyncio.create_task(self.run())
        logger.info(
            f"Triage scheduler started (tick: {self.config_provider().cadence.tick_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop ticking. In-flight captures are abandoned, not awaited."""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        for task in self._inflight:
            task.cancel()
        self._inflight.clear()
        logger.info("Triage scheduler stopped")

    async def run(self) -> None:
        """Tick until stopped or a quit is requested."""
        while self.running and not self.quit_flag.requested:
            await self._sleep(self.config_provider().cadence.tick_seconds)
            if self.quit_flag.requested:
                break
            await self.tick()
        self.running = False

    # ------------------------------------------------------------------
    # One iteration
    # ------------------------------------------------------------------

    async def tick(self) -> None:
        """Run every signal branch that is due on this tick."""
        self.ticks += 1
        self.stats["ticks"] += 1

        try:
            config = self.config_provider()
            if not config.is_configured:
                self.stats["idle_ticks"] += 1
                return

            cadence = config.cadence
            if self.ticks % cadence.clipboard_every == 0:
                await self._sample_clipboard(config)
            if self.ticks % cadence.app_every == 0:
                await self._sample_app(config)
            if self.ticks % cadence.screen_every == 0:
                await self._sample_screen(config)
        except Exception as e:
            # A single bad tick must never end the loop
            logger.exception(f"Triage tick {self.ticks} failed: {e}")
            self.errors.record(ErrorSource.TICK, e)

    async def _sample_clipboard(self, config: Config) -> None:
        self.stats["clipboard_samples"] += 1
        try:
            text = await asyncio.to_thread(self.clipboard_probe.read_clipboard_text)
        except Exception as e:
            logger.debug(f"Clipboard probe failed: {e}")
            self.errors.record(ErrorSource.CLIPBOARD, e)
            return

        if not text or text == self._snapshot.clipboard_text:
            return
        self._snapshot.clipboard_text = text

        triage = config.triage
        if word_count(text) < triage.min_clipboard_words or len(text) < triage.min_clipboard_chars:
            logger.debug("Clipboard text too short to capture")
            return

        event = CaptureEvent(
            text=text,
            source="clipboard",
            metadata={
                "capture_type": "clipboard",
                "app_name": self._snapshot.app_name,
            }
        )
        self.stats["clipboard_captures"] += 1
        await self._submit_capture(event)

    async def _sample_app(self, config: Config) -> None:
        self.stats["app_samples"] += 1
        try:
            current = await asyncio.to_thread(self.app_probe.get_foreground_app)
        except Exception as e:
            logger.debug(f"App probe failed: {e}")
            self.errors.record(ErrorSource.APP, e)
            return

        if not is_known_app(current):
            return

        previous = self._snapshot.app_name
        self._snapshot.app_name = current
        if previous and current != previous:
            self.stats["app_switches"] += 1
            logger.debug(f"App switch: {previous} -> {current}")
            self._force_screen_next_tick(config.cadence.screen_every)

    def _force_screen_next_tick(self, screen_every: int) -> None:
        # Advance to the tick just before the next screen boundary
        self.ticks += (screen_every - 1 - self.ticks) % screen_every

    async def _sample_screen(self, config: Config) -> None:
        self.stats["screen_samples"] += 1
        try:
            capture = await self.screen_probe.capture_screen_text()
        except Exception as e:
            logger.debug(f"Screen probe failed: {e}")
            self.errors.record(ErrorSource.SCREEN, e)
            return

        app_name = capture.app_name
        app_switched = False
        if is_known_app(app_name):
            previous = self._snapshot.app_name
            app_switched = bool(previous) and app_name != previous
            self._snapshot.app_name = app_name

        if is_skip_app(app_name):
            logger.debug(f"Skipping screen of {app_name}")
            self.stats["screen_skipped_apps"] += 1
            return

        triage = config.triage
        cleaned = clean_ocr_text(capture.text)
        if word_count(cleaned) < triage.min_screen_words:
            self.stats["screen_too_short"] += 1
            return

        if not is_material_change(
            self._snapshot.screen_text,
            cleaned,
            app_switched=app_switched,
            threshold=triage.similarity_threshold
        ):
            self.stats["screen_unchanged"] += 1
            return
        self._snapshot.screen_text = cleaned

        text = cleaned[:triage.max_capture_chars]
        self.stats["screen_captures"] += 1
        self._spawn_capture(CaptureEvent(
            text=text,
            source="screen",
            metadata={"capture_type": "screen", "app_name": app_name}
        ))

        if self.snooze.is_snoozed():
            self.stats["suggestions_snoozed"] += 1
            return
        await self._request_suggestions(text, app_name)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _submit_capture(self, event: CaptureEvent) -> None:
        try:
            memory_id = await self.capture_sink.submit_capture(event)
        except Exception as e:
            logger.debug(f"Capture of {event.source} text failed: {e}")
            self.errors.record(ErrorSource.CAPTURE, e)
            self.event_bus.emit_nowait(Event(
                type=CAPTURE_FAILED,
                data={"source": event.source, "error": str(e)},
                source="triage_scheduler"
            ))
            return

        logger.debug(f"Captured {event.source} text: {memory_id or '(no id)'}")
        self.event_bus.emit_nowait(Event(
            type=CAPTURE_SUBMITTED,
            data={"id": memory_id, "source": event.source, "metadata": dict(event.metadata)},
            source="triage_scheduler"
        ))

    def _spawn_capture(self, event: CaptureEvent) -> None:
        """Submit in the background; the tick does not wait for the response."""
        self._inflight = [t for t in self._inflight if not t.done()]
        if len(self._inflight) >= self.max_inflight_captures:
            oldest = self._inflight.pop(0)
            oldest.cancel()
            self.stats["captures_dropped"] += 1
            logger.warning("Too many pending captures, dropping the oldest")
        self._inflight.append(asyncio.create_task(self._submit_capture(event)))

    async def _request_suggestions(self, text: str, app_name: str) -> None:
        self.stats["suggestions_requested"] += 1
        try:
            result = await self.suggestion_sink.request_suggestions(text, app_name)
        except Exception as e:
            logger.debug(f"Suggestion request failed: {e}")
            self.errors.record(ErrorSource.SUGGEST, e)
            return

        if not result.has_related:
            return

        suggestion = AmbientSuggestion(
            related=result.related,
            context=result.context,
            app_name=app_name
        )
        self.stats["suggestions_surfaced"] += 1
        logger.info(f"Ambient suggestion: {len(result.related)} related memories in {app_name}")
        self.event_bus.emit_nowait(Event(
            type=AMBIENT_SUGGESTION,
            data=suggestion.to_dict(),
            source="triage_scheduler"
        ))

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> SignalSnapshot:
        """A copy of the last-seen signals."""
        return replace(self._snapshot)

    @property
    def inflight_captures(self) -> int:
        return sum(1 for t in self._inflight if not t.done())

    def get_status(self) -> Dict[str, Any]:
        uptime = time.time() - self.started_at if self.started_at else 0.0
        return {
            "running": self.running,
            "ticks": self.ticks,
            "uptime": f"{uptime:.0f}s",
            "current_app": self._snapshot.app_name or None,
            "inflight_captures": self.inflight_captures,
            "snooze": self.snooze.to_dict(),
            "stats": dict(self.stats),
            "errors": self.errors.summary(),
        }
