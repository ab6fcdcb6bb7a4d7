"""Tests for the terminal client's log, recorder, gateway client and dispatcher."""

import asyncio
import json

import httpx
import pytest

from chatrelay.chat_client.conversation import ArtifactShelf, ConversationLog
from chatrelay.chat_client.dispatcher import Dispatcher
from chatrelay.chat_client.gateway import GatewayClient, GatewayRequestError
from chatrelay.chat_client.models import UploadedArtifact
from chatrelay.chat_client.recorder import FileAudioCapture, Recorder, RecorderError, RecorderState
from chatrelay.services.fallback import VOICE_FALLBACK

BASE_URL = "http://testserver"


class FakeCapture:
    """Capture source that records its lifecycle."""

    def __init__(self, audio: bytes = b"RIFFdata", fail_on: str | None = None):
        self.audio = audio
        self.fail_on = fail_on
        self.started = False
        self.closed = False

    def start(self) -> None:
        if self.fail_on == "start":
            raise RecorderError("Microphone unavailable")
        self.started = True

    def stop(self) -> bytes:
        if self.fail_on == "stop":
            raise RecorderError("Capture device lost")
        return self.audio

    def close(self) -> None:
        self.closed = True


class Notifications:
    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def __call__(self, message: str, severity: str) -> None:
        self.messages.append((message, severity))

    def severities(self) -> list[str]:
        return [severity for _, severity in self.messages]


def mock_gateway(handler) -> GatewayClient:
    return GatewayClient(BASE_URL, transport=httpx.MockTransport(handler))


def asgi_gateway(app) -> GatewayClient:
    return GatewayClient(BASE_URL, transport=httpx.ASGITransport(app=app))


def ok_chat(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"success": True, "response": f"echo: {body['message']}", "openai": True})


class TestConversationLog:
    """Tests for the append-only conversation log."""

    def test_append_keeps_order(self):
        log = ConversationLog()
        first = log.append("hi", "user")
        second = log.append("hello", "assistant")

        assert log.entries == (first, second)
        assert len(log) == 2

    def test_history_skips_errors_and_is_bounded(self):
        """Test that history holds only the most recent non-error entries."""
        log = ConversationLog()
        for i in range(4):
            log.append(f"q{i}", "user")
            log.append(f"a{i}", "assistant")
        log.append("❌ failed", "error")

        history = log.history(5)

        assert [item.text for item in history] == ["a1", "q2", "a2", "q3", "a3"]
        assert log.history(0) == []

    def test_clear_empties_log(self):
        log = ConversationLog()
        log.append("hi", "user")
        log.clear()
        assert list(log) == []


class TestArtifactShelf:
    """Tests for the uploaded-file shelf."""

    def test_add_remove_and_recent(self):
        shelf = ArtifactShelf()
        artifacts = [
            UploadedArtifact(name=f"{i}.txt", mime_type="text/plain", size_bytes=i, result_summary="")
            for i in range(4)
        ]
        for artifact in artifacts:
            shelf.add(artifact)

        assert shelf.recent() == artifacts[1:]
        assert shelf.remove(artifacts[0].id) is True
        assert shelf.remove(artifacts[0].id) is False
        assert len(shelf) == 3


class TestRecorder:
    """Tests for the two-state recorder."""

    def test_start_stop_releases_capture(self):
        recorder = Recorder()
        capture = FakeCapture(b"abc")

        recorder.start(capture)
        assert recorder.state == RecorderState.RECORDING

        assert recorder.stop() == b"abc"
        assert recorder.state == RecorderState.IDLE
        assert capture.closed is True

    def test_double_start_rejected(self):
        recorder = Recorder()
        recorder.start(FakeCapture())

        with pytest.raises(RecorderError, match="Already recording"):
            recorder.start(FakeCapture())

    def test_stop_when_idle_rejected(self):
        with pytest.raises(RecorderError, match="Not recording"):
            Recorder().stop()

    def test_failed_start_closes_capture(self):
        """Test that a capture that cannot start is released and the recorder stays idle."""
        recorder = Recorder()
        capture = FakeCapture(fail_on="start")

        with pytest.raises(RecorderError):
            recorder.start(capture)

        assert capture.closed is True
        assert recorder.recording is False

    def test_failed_stop_still_releases(self):
        """Test that the capture is released even when stopping fails."""
        recorder = Recorder()
        capture = FakeCapture(fail_on="stop")
        recorder.start(capture)

        with pytest.raises(RecorderError):
            recorder.stop()

        assert capture.closed is True
        assert recorder.recording is False

    def test_file_capture_replays_file(self, tmp_path):
        path = tmp_path / "clip.webm"
        path.write_bytes(b"webm-bytes")
        capture = FileAudioCapture(path)

        capture.start()
        assert capture.stop() == b"webm-bytes"

    def test_file_capture_missing_file(self, tmp_path):
        with pytest.raises(RecorderError, match="Audio file not found"):
            FileAudioCapture(tmp_path / "missing.webm").start()


class TestGatewayClient:
    """Tests for the gateway HTTP client."""

    @pytest.mark.asyncio
    async def test_chat_sends_message_and_history(self):
        """Test the chat request body."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.url.path, json.loads(request.content)))
            return ok_chat(request)

        async with mock_gateway(handler) as gateway:
            log = ConversationLog()
            log.append("before", "user")
            result = await gateway.chat("hi", log.history(5))

        assert result["response"] == "echo: hi"
        assert seen == [("/api/chat", {"message": "hi", "history": [{"text": "before", "sender": "user"}]})]

    @pytest.mark.asyncio
    async def test_error_body_surfaced(self):
        """Test that the server's error string becomes the exception message."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"success": False, "error": "Message is required"})

        async with mock_gateway(handler) as gateway:
            with pytest.raises(GatewayRequestError) as exc_info:
                await gateway.chat("hi", [])

        assert exc_info.value.message == "Message is required"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_timeout_reported(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        async with mock_gateway(handler) as gateway:
            with pytest.raises(GatewayRequestError, match="Request timed out"):
                await gateway.health()

    @pytest.mark.asyncio
    async def test_failed_provider_test_is_returned(self):
        """Test that an unsuccessful provider probe is data, not an exception."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "status": "not_configured", "message": "OpenAI not ready"})

        async with mock_gateway(handler) as gateway:
            result = await gateway.test_provider()

        assert result["success"] is False
        assert result["status"] == "not_configured"

    @pytest.mark.asyncio
    async def test_process_voice_sends_base64(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "text": "hi"})

        async with mock_gateway(handler) as gateway:
            await gateway.process_voice(b"hello")

        assert bodies == [{"audioData": "aGVsbG8="}]

    @pytest.mark.asyncio
    async def test_against_offline_gateway(self, offline_app):
        """Test the client against a real gateway with no provider."""
        async with asgi_gateway(offline_app) as gateway:
            health = await gateway.health()
            voice = await gateway.process_voice(b"audio")

        assert health["openai"] == "not_configured"
        assert voice["text"] == VOICE_FALLBACK


class TestDispatcher:
    """Tests for dispatch and reconciliation into the log."""

    @pytest.mark.asyncio
    async def test_successful_chat_appends_pair(self):
        async with mock_gateway(ok_chat) as gateway:
            dispatcher = Dispatcher(gateway)
            entry = await dispatcher.send_text("  hi  ")

        assert [(e.sender, e.text) for e in dispatcher.log] == [("user", "hi"), ("assistant", "echo: hi")]
        assert entry is dispatcher.log.entries[-1]

    @pytest.mark.asyncio
    async def test_blank_input_ignored(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with mock_gateway(handler) as gateway:
            dispatcher = Dispatcher(gateway)
            assert await dispatcher.send_text("   ") is None

        assert len(dispatcher.log) == 0

    @pytest.mark.asyncio
    async def test_connection_failure_appends_one_error(self):
        """Test that an unreachable gateway yields exactly one error entry and a notification."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        notify = Notifications()
        async with mock_gateway(handler) as gateway:
            dispatcher = Dispatcher(gateway, notify=notify)
            await dispatcher.send_text("hi")

        assert [e.sender for e in dispatcher.log] == ["user", "error"]
        assert dispatcher.log.entries[-1].text == "❌ Failed to get response. Please check connection."
        assert notify.severities() == ["error"]

    @pytest.mark.asyncio
    async def test_history_excludes_current_message_and_errors(self):
        """Test the context sent with each chat request."""
        sent_histories = []
        failures = iter([True, False, False])

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            sent_histories.append([item["text"] for item in body["history"]])
            if next(failures):
                return httpx.Response(500, json={"success": False, "error": "Internal server error"})
            return ok_chat(request)

        async with mock_gateway(handler) as gateway:
            dispatcher = Dispatcher(gateway, history_limit=2)
            await dispatcher.send_text("one")
            await dispatcher.send_text("two")
            await dispatcher.send_text("three")

        assert sent_histories == [[], ["one"], ["two", "echo: two"]]

    @pytest.mark.asyncio
    async def test_concurrent_dispatches_land_in_completion_order(self):
        """Test that overlapping dispatches reconcile in the order they finish."""
        release_slow = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            message = json.loads(request.content)["message"]
            if message == "slow":
                await release_slow.wait()
            return ok_chat(request)

        async with mock_gateway(handler) as gateway:
            dispatcher = Dispatcher(gateway)
            slow = asyncio.create_task(dispatcher.send_text("slow"))
            await asyncio.sleep(0)
            await dispatcher.send_text("fast")
            release_slow.set()
            await slow

        assert [e.text for e in dispatcher.log] == ["slow", "fast", "echo: fast", "echo: slow"]

    @pytest.mark.asyncio
    async def test_upload_success_adds_artifact(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello world")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"success": True, "filename": "notes.txt", "size": 11, "content": "hello world"}
            )

        notify = Notifications()
        async with mock_gateway(handler) as gateway:
            dispatcher = Dispatcher(gateway, notify=notify)
            entry = await dispatcher.upload_file(path)

        assert entry.text == "File processed: hello world..."
        artifact = next(iter(dispatcher.shelf))
        assert (artifact.name, artifact.mime_type, artifact.size_bytes) == ("notes.txt", "text/plain", 11)
        assert notify.messages == [("notes.txt uploaded successfully!", "success")]

    @pytest.mark.asyncio
    async def test_rejected_upload_not_recorded(self, offline_app, tmp_path):
        """Test that an upload the gateway rejects leaves the shelf untouched."""
        path = tmp_path / "archive.zip"
        path.write_bytes(b"PK\x03\x04")

        notify = Notifications()
        async with asgi_gateway(offline_app) as gateway:
            dispatcher = Dispatcher(gateway, notify=notify)
            entry = await dispatcher.upload_file(path)

        assert entry.sender == "error"
        assert len(dispatcher.shelf) == 0
        assert notify.messages == [("Failed to upload archive.zip: Invalid file type", "error")]

    @pytest.mark.asyncio
    async def test_unreadable_upload_appends_one_error(self, tmp_path):
        """Test that a file that cannot be read still closes out the dispatch."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        notify = Notifications()
        async with mock_gateway(handler) as gateway:
            dispatcher = Dispatcher(gateway, notify=notify)
            entry = await dispatcher.upload_file(tmp_path / "gone.txt")

        assert [e.sender for e in dispatcher.log] == ["user", "error"]
        assert entry.text == "❌ Failed to upload gone.txt"
        assert len(dispatcher.shelf) == 0
        assert notify.severities() == ["error"]

    @pytest.mark.asyncio
    async def test_unreadable_photo_appends_one_error(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with mock_gateway(handler) as gateway:
            dispatcher = Dispatcher(gateway)
            await dispatcher.capture_photo(tmp_path / "missing.png")

        assert [(e.sender, e.text) for e in dispatcher.log] == [
            ("user", "📷 Photo: missing.png"),
            ("error", "❌ Failed to process image"),
        ]

    @pytest.mark.asyncio
    async def test_capture_read_error_notifies_without_dispatch(self, tmp_path):
        """Test that an audio file vanishing mid-recording is reported, not raised."""
        path = tmp_path / "clip.webm"
        path.write_bytes(b"webm")
        notify = Notifications()

        async with mock_gateway(ok_chat) as gateway:
            dispatcher = Dispatcher(gateway, notify=notify)
            dispatcher.start_recording(FileAudioCapture(path))
            path.unlink()
            assert await dispatcher.finish_recording() is None

        assert dispatcher.recorder.recording is False
        assert len(dispatcher.log) == 0
        assert notify.severities() == ["info", "error"]

    @pytest.mark.asyncio
    async def test_photo_sent_inline(self, offline_app, tmp_path):
        path = tmp_path / "snap.png"
        path.write_bytes(b"\x89PNG")

        async with asgi_gateway(offline_app) as gateway:
            dispatcher = Dispatcher(gateway)
            entry = await dispatcher.capture_photo(path)

        assert dispatcher.log.entries[0].text == "📷 Photo: snap.png"
        assert entry.text.startswith("📸 Image received!")

    @pytest.mark.asyncio
    async def test_recording_toggle_dispatches_once(self, offline_app):
        """Test that start then stop produces one voice request and releases the capture."""
        capture = FakeCapture(b"12345")

        async with asgi_gateway(offline_app) as gateway:
            dispatcher = Dispatcher(gateway)
            assert await dispatcher.toggle_recording(lambda: capture) is None
            entry = await dispatcher.toggle_recording(lambda: FakeCapture())

        assert capture.closed is True
        assert [e.text for e in dispatcher.log] == ["🎤 Voice message (5 bytes)", f"🎤 {VOICE_FALLBACK}"]
        assert entry.sender == "assistant"

    @pytest.mark.asyncio
    async def test_failed_recording_notifies_without_dispatch(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        capture = FakeCapture(fail_on="stop")
        notify = Notifications()
        async with mock_gateway(handler) as gateway:
            dispatcher = Dispatcher(gateway, notify=notify)
            dispatcher.start_recording(capture)
            assert await dispatcher.finish_recording() is None

        assert capture.closed is True
        assert len(dispatcher.log) == 0
        assert notify.severities() == ["info", "error"]

    @pytest.mark.asyncio
    async def test_clear_empties_log(self):
        async with mock_gateway(ok_chat) as gateway:
            dispatcher = Dispatcher(gateway)
            await dispatcher.send_text("hi")
            dispatcher.clear()

        assert len(dispatcher.log) == 0
