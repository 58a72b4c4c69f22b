"""Tests for the HTTP client, the API-backed sinks and server OCR."""

import base64
import json

import httpx
import pytest

from conftest import FakeAppProbe, make_config
from reattend.daemon.api import ReattendClient
from reattend.daemon.errors import ApiError, NetworkError, NotConfiguredError, ProbeError
from reattend.daemon.models import CaptureEvent
from reattend.daemon.probes import ServerOcrProbe
from reattend.daemon.sinks import ApiCaptureSink, ApiSuggestionSink


class Recorder:
    """MockTransport handler that records requests and replays a canned response."""

    def __init__(self, status_code=200, json_body=None, text=None):
        self.status_code = status_code
        self.json_body = json_body
        self.text = text
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.json_body if self.json_body is not None else {})

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self):
        return json.loads(self.last.content)


def make_client(handler, token="secret", **kwargs) -> ReattendClient:
    return ReattendClient(
        api_url="https://reattend.example/",
        api_token=token,
        transport=httpx.MockTransport(handler),
        **kwargs
    )


class TestReattendClient:

    @pytest.mark.asyncio
    async def test_capture(self):
        recorder = Recorder(json_body={"id": "mem_42"})
        client = make_client(recorder)

        memory_id = await client.capture("Decided to move the offsite to May", "tray-manual")

        assert memory_id == "mem_42"
        assert recorder.last.method == "POST"
        assert str(recorder.last.url) == "https://reattend.example/api/tray/capture"
        assert recorder.last.headers["Authorization"] == "Bearer secret"
        assert recorder.last_json() == {
            "text": "Decided to move the offsite to May",
            "source": "tray-manual",
        }

    @pytest.mark.asyncio
    async def test_capture_with_metadata(self):
        recorder = Recorder(json_body={"id": "mem_1"})
        client = make_client(recorder)

        await client.capture("text", "clipboard", {"capture_type": "clipboard", "app_name": "Safari"})

        assert recorder.last_json()["metadata"] == {"capture_type": "clipboard", "app_name": "Safari"}

    @pytest.mark.asyncio
    async def test_capture_without_id(self):
        client = make_client(Recorder(json_body={"ok": True}))
        assert await client.capture("text", "screen") == ""

    @pytest.mark.asyncio
    async def test_search(self):
        recorder = Recorder(json_body={"results": [{"title": "Offsite"}]})
        client = make_client(recorder)

        data = await client.search("offsite plans", limit=3)

        assert data == {"results": [{"title": "Offsite"}]}
        assert recorder.last.method == "GET"
        assert recorder.last.url.path == "/api/tray/search"
        assert recorder.last.url.params["q"] == "offsite plans"
        assert recorder.last.url.params["limit"] == "3"

    @pytest.mark.asyncio
    async def test_ask_returns_text(self):
        recorder = Recorder(text="You moved the offsite to May.")
        client = make_client(recorder)

        answer = await client.ask("When is the offsite?")

        assert answer == "You moved the offsite to May."
        assert recorder.last_json() == {"question": "When is the offsite?"}

    @pytest.mark.asyncio
    async def test_analyze(self):
        recorder = Recorder(json_body={"related": [{"id": "m1"}], "context": "From last week"})
        client = make_client(recorder)

        data = await client.analyze("screen words", "Safari")

        assert data["context"] == "From last week"
        assert recorder.last.url.path == "/api/tray/analyze"
        assert recorder.last_json() == {"screen_text": "screen words", "app_name": "Safari"}

    @pytest.mark.asyncio
    async def test_ocr_defaults_app_name(self):
        recorder = Recorder(json_body={"text": "hello"})
        client = make_client(recorder, ocr_timeout=45.0)

        data = await client.ocr("aGVsbG8=", "Slack")

        assert data == {"text": "hello", "appName": "Slack"}
        assert recorder.last_json() == {"image": "aGVsbG8=", "app_name": "Slack"}
        assert recorder.last.extensions["timeout"]["read"] == 45.0

    @pytest.mark.asyncio
    async def test_ocr_keeps_reported_app_name(self):
        client = make_client(Recorder(json_body={"text": "hello", "appName": "Notion"}))
        data = await client.ocr("aGVsbG8=", "Slack")
        assert data["appName"] == "Notion"

    @pytest.mark.asyncio
    async def test_missing_token(self):
        recorder = Recorder()
        client = make_client(recorder, token="")

        with pytest.raises(NotConfiguredError):
            await client.capture("text", "screen")
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_error_status(self):
        client = make_client(Recorder(status_code=401, text="Unauthorized"))

        with pytest.raises(ApiError) as exc_info:
            await client.analyze("text", "Safari")

        assert exc_info.value.status_code == 401
        assert exc_info.value.is_auth_error
        assert str(exc_info.value) == "API error 401: Unauthorized"

    @pytest.mark.asyncio
    async def test_network_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(refuse)

        with pytest.raises(NetworkError) as exc_info:
            await client.capture("text", "screen")
        assert str(exc_info.value) == "Network error: connection refused"

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = make_client(Recorder(text="<html>oops</html>"))
        with pytest.raises(ApiError):
            await client.analyze("text", "Safari")

    def test_from_config(self):
        config = make_config(api_url="https://self-hosted.example/", request_timeout=3.0)
        client = ReattendClient.from_config(config)

        assert client.api_url == "https://self-hosted.example"
        assert client.api_token == "test-token"
        assert client.timeout == 3.0


class TestApiSinks:

    @pytest.mark.asyncio
    async def test_capture_sink(self):
        recorder = Recorder(json_body={"id": "mem_7"})
        sink = ApiCaptureSink(lambda: make_client(recorder))

        memory_id = await sink.submit_capture(CaptureEvent(
            text="Copied paragraph",
            source="clipboard",
            metadata={"capture_type": "clipboard", "app_name": "Safari"},
        ))

        assert memory_id == "mem_7"
        assert recorder.last_json()["source"] == "clipboard"
        assert recorder.last_json()["metadata"]["app_name"] == "Safari"

    @pytest.mark.asyncio
    async def test_capture_sink_without_metadata(self):
        recorder = Recorder(json_body={"id": "mem_8"})
        sink = ApiCaptureSink(lambda: make_client(recorder))

        await sink.submit_capture(CaptureEvent(text="Plain", source="screen"))

        assert "metadata" not in recorder.last_json()

    @pytest.mark.asyncio
    async def test_suggestion_sink(self):
        recorder = Recorder(json_body={"related": [{"id": "m1"}, {"id": "m2"}], "context": "Budget talk"})
        sink = ApiSuggestionSink(lambda: make_client(recorder))

        result = await sink.request_suggestions("screen text", "Mail")

        assert result.has_related
        assert len(result.related) == 2
        assert result.context == "Budget talk"

    @pytest.mark.asyncio
    async def test_suggestion_sink_tolerates_odd_shapes(self):
        sink = ApiSuggestionSink(lambda: make_client(Recorder(json_body={"related": "nope", "context": 5})))

        result = await sink.request_suggestions("screen text", "Mail")

        assert result.related == []
        assert result.context is None


class TestServerOcrProbe:

    @pytest.mark.asyncio
    async def test_uploads_base64_jpeg(self):
        recorder = Recorder(json_body={"text": "raw ocr text"})
        probe = ServerOcrProbe(
            lambda: make_client(recorder),
            FakeAppProbe("Preview"),
            grab=lambda: b"\xff\xd8jpeg",
        )

        capture = await probe.capture_screen_text()

        assert capture.text == "raw ocr text"
        assert capture.app_name == "Preview"
        body = recorder.last_json()
        assert base64.b64decode(body["image"]) == b"\xff\xd8jpeg"
        assert body["app_name"] == "Preview"

    @pytest.mark.asyncio
    async def test_ocr_failure_is_probe_error(self):
        probe = ServerOcrProbe(
            lambda: make_client(Recorder(status_code=500, text="boom")),
            FakeAppProbe(),
            grab=lambda: b"jpeg",
        )

        with pytest.raises(ProbeError, match="OCR request failed"):
            await probe.capture_screen_text()

    @pytest.mark.asyncio
    async def test_grab_failure_is_probe_error(self):
        def no_display():
            raise OSError("no display")

        recorder = Recorder()
        probe = ServerOcrProbe(lambda: make_client(recorder), FakeAppProbe(), grab=no_display)

        with pytest.raises(ProbeError, match="Capture error"):
            await probe.capture_screen_text()
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_missing_text_is_empty(self):
        probe = ServerOcrProbe(
            lambda: make_client(Recorder(json_body={"appName": ""})),
            FakeAppProbe("Preview"),
            grab=lambda: b"jpeg",
        )

        capture = await probe.capture_screen_text()

        assert capture.text == ""
        assert capture.app_name == "Unknown"


def test_capture_event_defaults():
    event = CaptureEvent(text="Plain", source="tray-manual")
    assert event.metadata == {}
    assert event.created_at is not None


def test_capture_event_rejects_unknown_source():
    with pytest.raises(ValueError, match="bogus"):
        CaptureEvent(text="Plain", source="bogus")
