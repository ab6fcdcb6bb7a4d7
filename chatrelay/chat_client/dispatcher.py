"""Turns user actions into gateway calls and reconciles results into the log."""

import asyncio
import base64
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from chatrelay.chat_client.conversation import ArtifactShelf, ConversationLog
from chatrelay.chat_client.gateway import GatewayClient, GatewayRequestError, guess_mime_type
from chatrelay.chat_client.models import ConversationEntry, UploadedArtifact
from chatrelay.chat_client.recorder import AudioCapture, Recorder, RecorderError
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)

Notifier = Callable[[str, str], None]
GatewayCall = Callable[[], Awaitable[dict[str, Any]]]

DEFAULT_HISTORY_LIMIT = 5
SUMMARY_CHARS = 150


def _ignore(message: str, severity: str) -> None:
    pass


class Dispatcher:
    """Dispatches one gateway request per user action.

    Every dispatch appends one user entry, awaits exactly one gateway call and
    then appends exactly one assistant or error entry. Dispatches may overlap;
    their results land in the log in completion order.
    """

    def __init__(
        self,
        gateway: GatewayClient,
        log: ConversationLog | None = None,
        shelf: ArtifactShelf | None = None,
        notify: Notifier | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        """Initialize dispatcher.

        Args:
            gateway: Gateway HTTP client
            log: Conversation log to append to
            shelf: Record of uploaded files
            notify: Callback for transient notifications, called with (message, severity)
            history_limit: Most recent entries sent as chat context
        """
        self.gateway = gateway
        self.log = log or ConversationLog()
        self.shelf = shelf or ArtifactShelf()
        self.notify = notify or _ignore
        self.history_limit = history_limit
        self.recorder = Recorder()

    async def send_text(self, text: str) -> ConversationEntry | None:
        """Send a chat message; blank input is ignored."""
        message = text.strip()
        if not message:
            return None

        history = self.log.history(self.history_limit)
        return await self._dispatch(
            user_text=message,
            call=lambda: self.gateway.chat(message, history),
            render=lambda data: data.get("response", ""),
            failure_text="Failed to get response. Please check connection.",
        )

    async def capture_photo(self, path: Path) -> ConversationEntry:
        """Send an image snapshot inline as a data URI."""

        async def send() -> dict[str, Any]:
            data = await asyncio.to_thread(path.read_bytes)
            data_uri = f"data:{guess_mime_type(path)};base64,{base64.b64encode(data).decode('ascii')}"
            return await self.gateway.process_image(data_uri)

        return await self._dispatch(
            user_text=f"📷 Photo: {path.name}",
            call=send,
            render=lambda result: f"📸 {result.get('description', '')}",
            failure_text="Failed to process image",
        )

    async def upload_file(self, path: Path) -> ConversationEntry:
        """Upload a file and record it on the shelf when it succeeds."""

        def record(result: dict[str, Any]) -> None:
            self.shelf.add(
                UploadedArtifact(
                    name=result.get("filename", path.name),
                    mime_type=guess_mime_type(path),
                    size_bytes=result.get("size", 0),
                    result_summary=result.get("content", "")[:SUMMARY_CHARS],
                    result=result,
                )
            )
            self.notify(f"{path.name} uploaded successfully!", "success")

        return await self._dispatch(
            user_text=f"📄 Uploaded: {path.name}",
            call=lambda: self.gateway.process_file(path),
            render=lambda result: f"File processed: {result.get('content', '')[:SUMMARY_CHARS]}...",
            failure_text=f"Failed to upload {path.name}",
            on_success=record,
        )

    def start_recording(self, capture: AudioCapture) -> None:
        """Acquire the capture resource.

        Raises:
            RecorderError: If already recording or the capture cannot start
        """
        self.recorder.start(capture)
        self.notify("Recording started... Speak now!", "info")

    async def finish_recording(self) -> ConversationEntry | None:
        """Release the capture and dispatch the recording for transcription."""
        try:
            audio = self.recorder.stop()
        except (RecorderError, OSError) as e:
            logger.warning(f"Recording failed: {e}")
            self.notify(f"Recording failed: {e}", "error")
            return None

        return await self._dispatch(
            user_text=f"🎤 Voice message ({len(audio)} bytes)",
            call=lambda: self.gateway.process_voice(audio),
            render=lambda result: f"🎤 {result.get('text', '')}",
            failure_text="Failed to process audio",
        )

    async def toggle_recording(self, capture_factory: Callable[[], AudioCapture]) -> ConversationEntry | None:
        """Start recording when idle, otherwise finish and dispatch."""
        if self.recorder.recording:
            return await self.finish_recording()

        self.start_recording(capture_factory())
        return None

    def clear(self) -> None:
        self.log.clear()
        self.notify("Chat cleared", "info")

    async def _dispatch(
        self,
        user_text: str,
        call: GatewayCall,
        render: Callable[[dict[str, Any]], str],
        failure_text: str,
        on_success: Callable[[dict[str, Any]], None] | None = None,
    ) -> ConversationEntry:
        self.log.append(user_text, "user")

        try:
            result = await call()
        except GatewayRequestError as e:
            logger.warning(f"{failure_text}: {e.message}")
            self.notify(f"{failure_text}: {e.message}", "error")
            return self.log.append(f"❌ {failure_text}", "error")
        except Exception as e:
            # Local failures (unreadable files and the like) still close out the dispatch
            logger.error(f"{failure_text}: {e}", exc_info=e)
            self.notify(f"{failure_text}: {e}", "error")
            return self.log.append(f"❌ {failure_text}", "error")

        if on_success is not None:
            on_success(result)
        return self.log.append(render(result), "assistant")
