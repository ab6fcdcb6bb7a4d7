"""Shared fixtures and fakes for gateway and client tests."""

import random
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI

from chatrelay.clients.openai import ChatMessage, CompletionResult, TokenUsage
from chatrelay.config import Settings
from chatrelay.errors import ProviderError
from chatrelay.main import create_app
from chatrelay.models.provider import ProviderStatus
from chatrelay.services.provider import ProviderState

VALID_KEY = "sk-test-0123456789abcdefghij"


class FakeOpenAIClient:
    """Stands in for OpenAIClient and records every call."""

    def __init__(self, reply: str = "AI reply", transcript: str = "hello from audio", error: str | None = None):
        self.reply = reply
        self.transcript = transcript
        self.error = error
        self.calls: list[tuple[str, Any]] = []
        self.transcribed_paths: list[tuple[Path, bool]] = []

    async def list_models(self) -> list[str]:
        self.calls.append(("list_models", None))
        self._maybe_fail()
        return ["gpt-3.5-turbo", "whisper-1"]

    async def create_chat_completion(
        self,
        messages: list[ChatMessage],
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
    ) -> CompletionResult:
        self.calls.append(("chat", messages))
        self._maybe_fail()
        return CompletionResult(content=self.reply, model=model or "gpt-3.5-turbo", usage=TokenUsage())

    async def describe_image(self, image_url: str, prompt: str = "Describe this image") -> CompletionResult:
        self.calls.append(("image", image_url))
        self._maybe_fail()
        return CompletionResult(content="A cat on a sofa", model="gpt-4o-mini", usage=TokenUsage())

    async def transcribe(self, audio_path: Path) -> str:
        path = Path(audio_path)
        self.calls.append(("transcribe", path))
        self.transcribed_paths.append((path, path.exists()))
        self._maybe_fail()
        return self.transcript

    def _maybe_fail(self) -> None:
        if self.error:
            raise ProviderError(self.error)


def leftover_files(directory: Path) -> list[Path]:
    """Files still present in an upload directory."""
    return list(directory.iterdir()) if directory.exists() else []


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def settings(upload_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return Settings(_env_file=None, openai_api_key=None, upload_dir=upload_dir, probe_on_startup=False)


@pytest.fixture
def fake_client() -> FakeOpenAIClient:
    return FakeOpenAIClient()


@pytest.fixture
def connected_provider(fake_client: FakeOpenAIClient) -> ProviderState:
    return ProviderState(ProviderStatus.CONNECTED, client=fake_client, api_key_configured=True)  # type: ignore[arg-type]


@pytest.fixture
def offline_app(settings: Settings) -> FastAPI:
    """Gateway with no credential configured."""
    return create_app(settings=settings, provider=ProviderState.from_settings(settings), rng=random.Random(7))


@pytest.fixture
def connected_app(settings: Settings, connected_provider: ProviderState) -> FastAPI:
    """Gateway whose provider is a connected fake client."""
    return create_app(settings=settings, provider=connected_provider, rng=random.Random(7))
