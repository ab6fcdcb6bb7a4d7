"""Two-state voice recorder around a pluggable capture source."""

from enum import StrEnum
from pathlib import Path
from typing import Protocol

from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)


class AudioCapture(Protocol):
    """A microphone-like capture resource."""

    def start(self) -> None: ...

    def stop(self) -> bytes: ...

    def close(self) -> None: ...


class RecorderState(StrEnum):
    IDLE = "idle"
    RECORDING = "recording"


class RecorderError(Exception):
    """Invalid recorder transition or capture failure."""


class FileAudioCapture:
    """Capture source that replays a pre-recorded audio file.

    Stands in for a microphone in the terminal client.
    """

    def __init__(self, path: Path):
        self.path = path
        self._started = False

    def start(self) -> None:
        if not self.path.is_file():
            raise RecorderError(f"Audio file not found: {self.path}")
        self._started = True

    def stop(self) -> bytes:
        if not self._started:
            raise RecorderError("Capture was not started")
        return self.path.read_bytes()

    def close(self) -> None:
        self._started = False


class Recorder:
    """`idle -> recording` acquires a capture; `recording -> idle` always releases it."""

    def __init__(self) -> None:
        self.state = RecorderState.IDLE
        self._capture: AudioCapture | None = None

    @property
    def recording(self) -> bool:
        return self.state == RecorderState.RECORDING

    def start(self, capture: AudioCapture) -> None:
        """Acquire the capture resource and begin recording.

        Raises:
            RecorderError: If already recording
        """
        if self.recording:
            raise RecorderError("Already recording")

        try:
            capture.start()
        except Exception:
            capture.close()
            raise

        self._capture = capture
        self.state = RecorderState.RECORDING
        logger.debug("Recording started")

    def stop(self) -> bytes:
        """Finish recording and release the capture resource.

        Returns:
            The recorded audio

        Raises:
            RecorderError: If not recording
        """
        if not self.recording or self._capture is None:
            raise RecorderError("Not recording")

        capture = self._capture
        try:
            return capture.stop()
        finally:
            capture.close()
            self._capture = None
            self.state = RecorderState.IDLE
            logger.debug("Recording stopped, capture released")
