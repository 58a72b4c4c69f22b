"""Async event bus used to surface triage results to the rest of the app."""

import asyncio
import inspect
import weakref
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger


AMBIENT_SUGGESTION = "ambient.suggestion"
CAPTURE_SUBMITTED = "capture.submitted"
CAPTURE_FAILED = "capture.failed"
SNOOZE_UPDATED = "snooze.updated"
QUIT_REQUESTED = "daemon.quit"


@dataclass
class Event:
    """Base event class."""
    type: str
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.utcnow)
    source: Optional[str] = None


def _make_ref(handler: Callable) -> Callable[[], Optional[Callable]]:
    # Bound methods need WeakMethod or they die immediately
    if inspect.ismethod(handler):
        return weakref.WeakMethod(handler)
    return weakref.ref(handler)


class EventBus:
    """
    Async pub/sub bus for in-process communication.

    Event types follow category.action, e.g. ambient.suggestion or
    capture.submitted. Handlers are held weakly; the subscriber owns them.
    """

    def __init__(self, maxsize: int = 1000):
        self._subscribers: Dict[str, List[Callable]] = defaultdict(list)
        self._event_queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._running = False
        self._processor_task: Optional[asyncio.Task] = None
        self._stats = defaultdict(int)

    def subscribe(self, event_pattern: str, handler: Callable[[Event], Any]) -> None:
        """
        Subscribe to events matching pattern.
        Pattern can use wildcards: 'capture.*' matches all capture events.
        """
        self._subscribers[event_pattern].append(_make_ref(handler))
        logger.debug(f"Subscribed handler to pattern: {event_pattern}")

    def unsubscribe(self, event_pattern: str, handler: Callable[[Event], Any]) -> None:
        self._subscribers[event_pattern] = [
            ref for ref in self._subscribers[event_pattern]
            if ref() is not None and ref() != handler
        ]

    async def emit(self, event: Event) -> None:
        """Queue an event; dropped if the queue is full."""
        self.emit_nowait(event)

    def emit_nowait(self, event: Event) -> bool:
        try:
            self._event_queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Event queue full, dropping event: {event.type}")
            self._stats['dropped'] += 1
            return False
        self._stats['emitted'] += 1
        logger.debug(f"Emitted event: {event.type}")
        return True

    async def start(self) -> None:
        if self._running:
            logger.warning("Event bus already running")
            return
        self._running = True
        self._processor_task = asyncio.create_task(self._process_events())
        logger.info("Event bus started")

    async def stop(self) -> None:
        self._running = False
        if self._processor_task:
            await self._processor_task
            self._processor_task = None
        logger.info("Event bus stopped")

    def _handlers_for(self, event_type: str) -> List[Callable]:
        handlers = []
        for pattern, refs in list(self._subscribers.items()):
            if not self._matches_pattern(event_type, pattern):
                continue
            live_refs = []
            for ref in refs:
                handler = ref()
                if handler is not None:
                    handlers.append(handler)
                    live_refs.append(ref)
            self._subscribers[pattern] = live_refs
        return handlers

    async def dispatch(self, event: Event) -> None:
        """Deliver one event to every matching handler."""
        tasks = []
        for handler in self._handlers_for(event.type):
            if asyncio.iscoroutinefunction(handler):
                tasks.append(asyncio.create_task(handler(event)))
            else:
                tasks.append(asyncio.create_task(asyncio.to_thread(handler, event)))

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Handler error for event {event.type}: {result}")
                self._stats['handler_errors'] += 1
        self._stats['processed'] += 1

    async def _process_events(self) -> None:
        while self._running:
            try:
                # Timeout so the _running flag is rechecked
                event = await asyncio.wait_for(self._event_queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            try:
                await self.dispatch(event)
            except Exception as e:
                logger.error(f"Error processing event: {e}")
                self._stats['processing_errors'] += 1

    def _matches_pattern(self, event_type: str, pattern: str) -> bool:
        if pattern == "*":
            return True
        if pattern.endswith(".*"):
            prefix = pattern[:-2]
            return event_type.startswith(prefix + ".")
        return event_type == pattern

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats)
