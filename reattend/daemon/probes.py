"""
Desktop probes: foreground app, clipboard and screen text.

The scheduler only depends on the three protocols below. The concrete
classes are the default desktop implementations; each call acquires and
releases whatever OS resource it needs.
"""

import asyncio
import base64
import io
import shutil
import subprocess
import sys
from typing import Callable, Optional, Protocol

import mss
import psutil
import pyperclip
from loguru import logger
from PIL import Image

from .api import ReattendClient
from .errors import ProbeError, ReattendError
from .models import UNKNOWN_APP, ScreenCapture


class AppActivityProbe(Protocol):
    def get_foreground_app(self) -> str:
        """Display name of the foreground app, or "Unknown"."""


class ClipboardProbe(Protocol):
    def read_clipboard_text(self) -> Optional[str]:
        """Clipboard text, or None if empty/unreadable."""


class ScreenTextProbe(Protocol):
    async def capture_screen_text(self) -> ScreenCapture:
        """Screenshot + OCR. Raises ProbeError on failure."""


class ForegroundAppProbe:
    """Reads the foreground application name for the current platform."""

    def __init__(self):
        self._platform = sys.platform

    def get_foreground_app(self) -> str:
        try:
            if self._platform.startswith("win"):
                name = self._windows_app()
            elif self._platform == "darwin":
                name = self._macos_app()
            else:
                name = self._x11_app()
        except Exception as e:
            logger.debug(f"Foreground app lookup failed: {e}")
            return UNKNOWN_APP
        return name or UNKNOWN_APP

    def _windows_app(self) -> str:
        import ctypes
        from ctypes import wintypes

        user32 = ctypes.windll.user32
        hwnd = user32.GetForegroundWindow()
        if not hwnd:
            return ""
        pid = wintypes.DWORD()
        user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        return self._process_name(int(pid.value))

    def _macos_app(self) -> str:
        from AppKit import NSWorkspace

        app = NSWorkspace.sharedWorkspace().frontmostApplication()
        if app is None:
            return ""
        return str(app.localizedName() or "")

    def _x11_app(self) -> str:
        if shutil.which("xdotool") is None:
            return ""
        result = subprocess.run(
            ["xdotool", "getactivewindow", "getwindowpid"],
            capture_output=True,
            text=True,
            timeout=2
        )
        if result.returncode != 0:
            return ""
        return self._process_name(int(result.stdout.strip()))

    @staticmethod
    def _process_name(pid: int) -> str:
        if pid <= 0:
            return ""
        try:
            return psutil.Process(pid).name()
        except (psutil.AccessDenied, psutil.NoSuchProcess, psutil.ZombieProcess):
            return ""


class SystemClipboardProbe:
    """Clipboard access through pyperclip."""

    def read_clipboard_text(self) -> Optional[str]:
        try:
            text = pyperclip.paste()
        except pyperclip.PyperclipException as e:
            logger.debug(f"Clipboard unavailable: {e}")
            return None
        if not text:
            return None
        return text


def grab_primary_screen(scale: float = 0.25) -> bytes:
    """Screenshot of the primary monitor, downscaled, as JPEG bytes."""
    with mss.mss() as sct:
        monitors = sct.monitors
        if len(monitors) < 2:
            raise ProbeError("No monitor found")
        shot = sct.grab(monitors[1])

    image = Image.frombytes("RGB", shot.size, shot.bgra, "raw", "BGRX")
    width = max(1, int(image.width * scale))
    height = max(1, int(image.height * scale))
    image = image.resize((width, height), Image.Resampling.BILINEAR)

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG")
    return buffer.getvalue()


class ServerOcrProbe:
    """
    Captures the primary screen and sends it to the service for OCR.

    The image is shrunk to a quarter of its size and JPEG-encoded before
    upload. The foreground app is read at capture time and returned with the
    text when the server does not report one.
    """

    def __init__(
        self,
        client_factory: Callable[[], ReattendClient],
        app_probe: AppActivityProbe,
        grab: Callable[[], bytes] = grab_primary_screen
    ):
        self.client_factory = client_factory
        self.app_probe = app_probe
        self.grab = grab

    async def capture_screen_text(self) -> ScreenCapture:
        try:
            jpeg = await asyncio.to_thread(self.grab)
        except ProbeError:
            raise
        except Exception as e:
            raise ProbeError(f"Capture error: {e}") from e

        app_name = await asyncio.to_thread(self.app_probe.get_foreground_app)
        image_b64 = base64.b64encode(jpeg).decode("ascii")

        try:
            result = await self.client_factory().ocr(image_b64, app_name)
        except ReattendError as e:
            raise ProbeError(f"OCR request failed: {e}") from e

        text = result.get("text")
        reported_app = result.get("appName")
        return ScreenCapture(
            text=text if isinstance(text, str) else "",
            app_name=reported_app if isinstance(reported_app, str) and reported_app else UNKNOWN_APP,
        )
