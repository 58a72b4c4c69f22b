"""Main daemon process for Reattend."""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

from aiohttp import web
from loguru import logger

from .actions import UserActions
from .api import ReattendClient
from .bus import AMBIENT_SUGGESTION, EventBus
from .config import Config
from .control import create_control_app
from .errors import ErrorTracker
from .probes import ForegroundAppProbe, ServerOcrProbe, SystemClipboardProbe
from .scheduler import TriageScheduler
from .sinks import ApiCaptureSink, ApiSuggestionSink
from .state import QuitFlag, SnoozeWindow


LOG_DIR = Path.home() / ".local" / "share" / "reattend" / "logs"


class ReattendDaemon:
    """Wires the triage loop to the desktop probes, the API and the control server."""

    def __init__(self, config: Config, config_path: Optional[Path] = None):
        self.config = config
        self.config_path = config_path
        self._config_mtime = self._mtime()

        self.event_bus = EventBus()
        self.snooze = SnoozeWindow()
        self.quit_flag = QuitFlag()
        self.errors = ErrorTracker()

        app_probe = ForegroundAppProbe()
        clipboard_probe = SystemClipboardProbe()
        capture_sink = ApiCaptureSink(self.client)

        self.scheduler = TriageScheduler(
            config_provider=self.current_config,
            app_probe=app_probe,
            clipboard_probe=clipboard_probe,
            screen_probe=ServerOcrProbe(self.client, app_probe),
            capture_sink=capture_sink,
            suggestion_sink=ApiSuggestionSink(self.client),
            event_bus=self.event_bus,
            snooze=self.snooze,
            quit_flag=self.quit_flag,
            errors=self.errors,
        )
        self.actions = UserActions(
            config_provider=self.current_config,
            capture_sink=capture_sink,
            clipboard_probe=clipboard_probe,
            snooze=self.snooze,
            quit_flag=self.quit_flag,
            event_bus=self.event_bus,
        )

        self.latest_suggestion: Optional[dict] = None
        self.control_runner: Optional[web.AppRunner] = None

    def client(self) -> ReattendClient:
        return ReattendClient.from_config(self.current_config())

    def _mtime(self) -> Optional[float]:
        if self.config_path is None or not self.config_path.exists():
            return None
        return self.config_path.stat().st_mtime

    def current_config(self) -> Config:
        """The active config, reloaded if the file changed on disk."""
        mtime = self._mtime()
        if mtime is not None and mtime != self._config_mtime:
            try:
                self.config = Config.load(self.config_path)
                logger.info("Config reloaded")
            except Exception as e:
                logger.warning(f"Config reload failed, keeping previous config: {e}")
            self._config_mtime = mtime
        return self.config

    async def start(self) -> None:
        logger.info("Starting Reattend daemon...")
        await self.event_bus.start()
        self.event_bus.subscribe(AMBIENT_SUGGESTION, self._on_suggestion)

        if self.config.control.enabled:
            await self._start_control()
        if not self.config.is_configured:
            logger.warning("No API token configured; passive capture is idle until one is set")

        await self.scheduler.start()
        logger.info("Reattend daemon started")

    async def stop(self) -> None:
        logger.info("Stopping Reattend daemon...")
        await self.scheduler.stop()
        if self.control_runner:
            await self.control_runner.cleanup()
            self.control_runner = None
        await self.event_bus.stop()
        logger.info("Reattend daemon stopped")

    async def _start_control(self) -> None:
        control = self.config.control
        self.control_runner = web.AppRunner(create_control_app(self))
        await self.control_runner.setup()
        site = web.TCPSite(self.control_runner, control.host, control.port)
        await site.start()
        logger.info(f"Control API listening on http://{control.host}:{control.port}")

    async def _on_suggestion(self, event) -> None:
        self.latest_suggestion = event.data
        context = event.data.get("context")
        logger.info(
            f"{len(event.data.get('related', []))} related memories"
            + (f": {context}" if context else "")
        )

    def get_status(self) -> dict:
        return {
            "status": "running" if self.scheduler.running else "stopped",
            "configured": self.config.is_configured,
            "api_url": self.config.api_url,
            "scheduler": self.scheduler.get_status(),
            "latest_suggestion": self.latest_suggestion,
            "recent_errors": self.errors.recent_events(),
            "bus": self.event_bus.get_stats(),
        }


def watched_config_path(config_path: Optional[Path] = None) -> Path:
    """
    The file the daemon watches for config changes.

    Without an explicit path this is the first default location that exists,
    or else the user config path that `reattend configure` writes, so a token
    saved after startup is still picked up.
    """
    if config_path is not None:
        return Path(config_path)
    defaults = Config.default_paths()
    return next((p for p in defaults if p.exists()), defaults[-1])


def setup_logging(verbose: bool = False) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level="DEBUG" if verbose else "INFO"
    )
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logger.add(
        LOG_DIR / "daemon.log",
        rotation="1 day",
        retention="7 days",
        level="DEBUG"
    )


async def main(config_path: Optional[str] = None, verbose: bool = False) -> None:
    """Main entry point for the daemon."""
    setup_logging(verbose)

    path = Path(config_path) if config_path else None
    try:
        config = Config.load(path)
    except FileNotFoundError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    daemon = ReattendDaemon(config, config_path=watched_config_path(path))

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}, shutting down...")
        daemon.quit_flag.request()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        await daemon.start()
        while not daemon.quit_flag.requested:
            await asyncio.sleep(1)
    except Exception as e:
        logger.exception(f"Daemon error: {e}")
    finally:
        await daemon.stop()


if __name__ == "__main__":
    asyncio.run(main())
