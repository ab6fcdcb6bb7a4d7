"""Chat service: bounded-context completions with graceful degradation."""

import random
from datetime import UTC, datetime

from chatrelay.clients.openai import ChatMessage
from chatrelay.config import Settings
from chatrelay.errors import InvalidInputError, ProviderError
from chatrelay.models.conversation import ChatResponse, HistoryItem, ProviderTestResponse
from chatrelay.services.fallback import chat_degraded, chat_fallback
from chatrelay.services.provider import ProviderState
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT_TEMPLATE = """You are {assistant}, a helpful assistant with capabilities:
- Process images from camera
- Transcribe voice messages
- Analyze uploaded files
- Answer questions knowledgeably
- Provide step-by-step guidance

Be friendly, concise, and helpful. Current time: {now}"""

PROBE_SYSTEM_PROMPT = "You are a test assistant. Respond with 'AI is working!'"
PROBE_MAX_TOKENS = 10


class ChatService:
    """Service for chat replies and the live provider probe."""

    def __init__(self, provider: ProviderState, settings: Settings, rng: random.Random | None = None):
        """Initialize chat service.

        Args:
            provider: Shared provider state
            settings: Gateway settings
            rng: Random source for fallback selection
        """
        self.provider = provider
        self.settings = settings
        self.rng = rng or random.Random()

    def build_messages(self, message: str, history: list[HistoryItem]) -> list[ChatMessage]:
        """Build the provider context: system preamble, recent history, new message."""
        limit = self.settings.history_limit
        recent = history[-limit:] if limit else []

        system_prompt = SYSTEM_PROMPT_TEMPLATE.format(
            assistant=self.settings.assistant_name,
            now=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        )

        messages = [ChatMessage(role="system", content=system_prompt)]
        messages.extend(
            ChatMessage(role="user" if item.sender == "user" else "assistant", content=item.text) for item in recent
        )
        messages.append(ChatMessage(role="user", content=message))
        return messages

    async def reply(self, message: str | None, history: list[HistoryItem]) -> ChatResponse:
        """Reply to a chat message.

        Provider failures never raise; they come back as a successful response
        carrying a diagnostic.

        Raises:
            InvalidInputError: If the message is missing or blank
        """
        if not message or not message.strip():
            raise InvalidInputError("Message is required")

        logger.info(f"Chat request: {message[:50]!r}, provider status: {self.provider.status}")

        if self.provider.available and self.provider.client is not None:
            try:
                result = await self.provider.client.create_chat_completion(self.build_messages(message, history))
            except ProviderError as e:
                logger.warning(f"OpenAI chat error: {e}")
                return ChatResponse(
                    response=chat_degraded(message, str(e), self.settings.assistant_name),
                    timestamp=datetime.now(UTC),
                    openai=False,
                    error=str(e),
                )

            logger.info(f"AI response: {result.content[:100]!r}")
            return ChatResponse(
                response=result.content,
                timestamp=datetime.now(UTC),
                model=result.model,
                openai=True,
            )

        logger.info("Using fallback response")
        return ChatResponse(
            response=chat_fallback(message, self.provider.status, self.settings.assistant_name, self.rng),
            timestamp=datetime.now(UTC),
            openai=False,
            status=self.provider.status,
        )

    async def test_provider(self) -> ProviderTestResponse:
        """Issue one live completion to confirm the provider answers."""
        status = self.provider.status
        if not self.provider.available or self.provider.client is None:
            return ProviderTestResponse(success=False, status=status, message=f"OpenAI not ready. Status: {status}")

        messages = [
            ChatMessage(role="system", content=PROBE_SYSTEM_PROMPT),
            ChatMessage(role="user", content="Say hello"),
        ]
        try:
            result = await self.provider.client.create_chat_completion(messages, max_tokens=PROBE_MAX_TOKENS)
        except ProviderError as e:
            logger.warning(f"OpenAI test failed: {e}")
            return ProviderTestResponse(success=False, status=status, error=str(e), message="OpenAI test failed")

        return ProviderTestResponse(
            success=True,
            status=status,
            message="OpenAI API is working!",
            response=result.content,
            timestamp=datetime.now(UTC),
        )
