"""Local HTTP control API for the Reattend daemon."""

from aiohttp import web
from loguru import logger

from .models import SOURCE_KINDS
from .state import MAX_SNOOZE_MINUTES


def _error(code: str, message: str, status: int = 400) -> web.Response:
    return web.json_response({'error': {'code': code, 'message': message}}, status=status)


async def _read_json(request: web.Request) -> dict:
    try:
        data = await request.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def create_control_app(daemon) -> web.Application:
    """Create the aiohttp application with routes."""
    app = web.Application()
    app['daemon'] = daemon

    app.router.add_get('/status', handle_status)
    app.router.add_post('/snooze', handle_snooze)
    app.router.add_post('/capture', handle_capture)
    app.router.add_post('/selection', handle_selection)
    app.router.add_post('/quit', handle_quit)

    return app


async def handle_status(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    return web.json_response(daemon.get_status())


async def handle_snooze(request: web.Request) -> web.Response:
    """Snooze ambient suggestions: {"minutes": 30}."""
    daemon = request.app['daemon']
    data = await _read_json(request)

    minutes = data.get('minutes')
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)) or not 0 <= minutes <= MAX_SNOOZE_MINUTES:
        return _error('invalid_request', f'minutes must be a number between 0 and {MAX_SNOOZE_MINUTES}')

    result = daemon.actions.snooze(minutes)
    return web.json_response({**result.to_dict(), 'snooze': daemon.snooze.to_dict()})


async def handle_capture(request: web.Request) -> web.Response:
    """Quick capture: {"text": "...", "source": "tray-manual"}."""
    daemon = request.app['daemon']
    data = await _read_json(request)

    text = data.get('text')
    if not isinstance(text, str) or not text.strip():
        return _error('invalid_request', 'text is required')

    source = data.get('source') or 'tray-manual'
    if source not in SOURCE_KINDS:
        return _error('invalid_request', f"source must be one of: {', '.join(SOURCE_KINDS)}")

    result = await daemon.actions.capture_text(text, source=source)
    return web.json_response(result.to_dict(), status=200 if result.ok else 502)


async def handle_selection(request: web.Request) -> web.Response:
    """Save selected text, or the clipboard if no text is given."""
    daemon = request.app['daemon']
    data = await _read_json(request)

    text = data.get('text')
    if text is None:
        result = await daemon.actions.save_clipboard_selection()
    else:
        origin = data.get('origin') or 'manual_selection'
        result = await daemon.actions.save_selection(str(text), origin=origin)
    return web.json_response(result.to_dict(), status=200 if result.ok else 422)


async def handle_quit(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    result = daemon.actions.request_quit()
    logger.info("Quit requested via control API")
    return web.json_response(result.to_dict())
