"""OpenAI API client with rate limiting and error handling."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from os import PathLike
from typing import Any, Literal

import openai
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from openai import AsyncOpenAI
from pydantic import BaseModel

from chatrelay.errors import ProviderError
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)

# Longest server-requested back-off we are willing to sit through
MAX_RETRY_AFTER_SECONDS = 120


class ChatMessage(BaseModel):
    """Message format for the chat completions API."""

    role: Literal["system", "user", "assistant"]
    content: str | list[dict[str, Any]]


@dataclass
class TokenUsage:
    """Token usage information from the OpenAI API."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class CompletionResult:
    """Structured completion returned by the OpenAI API."""

    content: str
    model: str
    usage: TokenUsage


@dataclass
class OpenAIConfig:
    """Configuration for the OpenAI API client."""

    chat_model: str = "gpt-3.5-turbo"
    vision_model: str = "gpt-4o-mini"
    transcription_model: str = "whisper-1"

    chat_max_tokens: int = 500
    vision_max_tokens: int = 300
    temperature: float = 0.7

    timeout: float = 30.0
    max_retries: int = 2
    retry_delay: float = 1.0
    requests_per_minute: int = 50


class ProviderRateLimiter:
    """Moving-window limiter for outbound provider requests."""

    def __init__(self, requests_per_minute: int = 50):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)
        self.request_limit = parse(f"{requests_per_minute}/minute")

    async def acquire(self, identifier: str = "openai") -> None:
        """Wait until a request slot is available."""
        while not self.limiter.hit(self.request_limit, identifier):
            window_stats = self.limiter.get_window_stats(self.request_limit, identifier)
            wait_time = max(0.1, window_stats.reset_time - time.time())
            logger.warning(f"Provider rate limit exceeded, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)


class OpenAIClient:
    """Low-level OpenAI API client with rate limiting and error handling."""

    api_key: str
    client: AsyncOpenAI
    config: OpenAIConfig
    rate_limiter: ProviderRateLimiter

    def __init__(self, api_key: str, config: OpenAIConfig | None = None):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            config: Client configuration
        """
        if not api_key:
            raise ValueError("An OpenAI API key is required")

        self.api_key = api_key
        self.config = config or OpenAIConfig()

        # Retries are handled here so the SDK's own loop is disabled
        self.client = AsyncOpenAI(api_key=self.api_key, timeout=self.config.timeout, max_retries=0)
        self.rate_limiter = ProviderRateLimiter(self.config.requests_per_minute)

    async def list_models(self) -> list[str]:
        """List the model ids visible to the configured key."""
        page = await self._request_with_retries(lambda: self.client.models.list())
        return [model.id for model in page.data]

    async def create_chat_completion(
        self,
        messages: list[ChatMessage],
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
    ) -> CompletionResult:
        """Create a chat completion.

        Args:
            messages: Conversation including the system prompt
            max_tokens: Completion token cap (defaults to config)
            temperature: Sampling temperature (defaults to config)
            model: Model override (defaults to the configured chat model)

        Returns:
            Structured completion result
        """
        request_params: dict[str, Any] = {
            "model": model or self.config.chat_model,
            "messages": [message.model_dump() for message in messages],
            "max_tokens": max_tokens or self.config.chat_max_tokens,
            "temperature": self.config.temperature if temperature is None else temperature,
        }

        logger.debug(f"Creating chat completion with {len(messages)} messages, model: {request_params['model']}")
        response = await self._request_with_retries(lambda: self.client.chat.completions.create(**request_params))

        usage = TokenUsage()
        if response.usage:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        content = response.choices[0].message.content or ""
        logger.debug(f"Completion received - {usage.total_tokens} tokens, {len(content)} chars")

        return CompletionResult(content=content, model=response.model, usage=usage)

    async def describe_image(self, image_url: str, prompt: str = "Describe this image") -> CompletionResult:
        """Ask the vision model to describe an image given as a URL or data URI."""
        message = ChatMessage(
            role="user",
            content=[
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_url}},
            ],
        )
        return await self.create_chat_completion(
            [message],
            max_tokens=self.config.vision_max_tokens,
            model=self.config.vision_model,
        )

    async def transcribe(self, audio_path: PathLike[str]) -> str:
        """Transcribe an audio file to plain text."""
        logger.debug(f"Transcribing {audio_path} with {self.config.transcription_model}")
        transcript = await self._request_with_retries(
            lambda: self.client.audio.transcriptions.create(
                file=audio_path,
                model=self.config.transcription_model,
                response_format="text",
            )
        )
        return str(transcript).strip()

    async def _request_with_retries[T](self, call: Callable[[], Awaitable[T]]) -> T:
        """Execute an OpenAI request with rate limiting and retry logic.

        Raises:
            ProviderError: If the request fails or every retry is exhausted
        """
        await self.rate_limiter.acquire()

        for attempt in range(self.config.max_retries + 1):
            retries_left = attempt < self.config.max_retries
            try:
                return await call()

            except openai.RateLimitError as e:
                retry_after = self._retry_after(e, attempt)
                if retry_after < MAX_RETRY_AFTER_SECONDS and retries_left:
                    logger.warning(f"Provider rate limited, retrying in {retry_after:.1f}s")
                    await asyncio.sleep(retry_after)
                    continue
                raise ProviderError(e.message) from e

            except openai.APITimeoutError as e:
                raise ProviderError(f"Request timed out after {self.config.timeout:g}s") from e

            except (openai.InternalServerError, openai.APIConnectionError) as e:
                if retries_left:
                    # Server or network error, retry with exponential backoff
                    await asyncio.sleep(self.config.retry_delay * (2**attempt))
                    continue
                raise ProviderError(e.message) from e

            except openai.OpenAIError as e:
                raise ProviderError(str(e)) from e

        raise ProviderError(f"Failed to complete request after {self.config.max_retries + 1} attempts")

    def _retry_after(self, error: openai.RateLimitError, attempt: int) -> float:
        """Read the server's retry-after hint, falling back to exponential backoff."""
        header = error.response.headers.get("retry-after") if error.response is not None else None
        try:
            return float(header) if header is not None else self.config.retry_delay * (2**attempt)
        except ValueError:
            return self.config.retry_delay * (2**attempt)
