"""Provider availability state, evaluated once at startup."""

from collections.abc import Callable

from chatrelay.clients.openai import OpenAIClient, OpenAIConfig
from chatrelay.config import Settings
from chatrelay.models.provider import ProviderStatus
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)

API_KEY_PREFIX = "sk-"
MIN_API_KEY_LENGTH = 20

ClientFactory = Callable[[str, OpenAIConfig], OpenAIClient]


def openai_config_from_settings(settings: Settings) -> OpenAIConfig:
    """Build the provider client configuration from gateway settings."""
    return OpenAIConfig(
        chat_model=settings.chat_model,
        vision_model=settings.vision_model,
        transcription_model=settings.transcription_model,
        timeout=settings.provider_timeout_seconds,
        requests_per_minute=settings.provider_requests_per_minute,
    )


class ProviderState:
    """Owns the provider client and its advisory status.

    Handlers must check `available` before each external call; the status can
    drift after startup and a stale read is acceptable.
    """

    def __init__(
        self,
        status: ProviderStatus,
        client: OpenAIClient | None = None,
        api_key_configured: bool = False,
    ):
        self.status = status
        self.client = client
        self.api_key_configured = api_key_configured

    @property
    def available(self) -> bool:
        """Whether a provider call may be attempted right now."""
        return self.client is not None and self.status == ProviderStatus.CONNECTED

    @classmethod
    def from_settings(cls, settings: Settings, client_factory: ClientFactory = OpenAIClient) -> "ProviderState":
        """Evaluate the credential and construct the provider client if it looks usable."""
        raw_key = settings.openai_api_key
        if not raw_key:
            logger.warning("OPENAI_API_KEY not configured, using fallback responses")
            return cls(ProviderStatus.NOT_CONFIGURED)

        api_key = raw_key.strip()
        has_prefix = api_key.startswith(API_KEY_PREFIX)
        logger.info(f"API key found ({len(api_key)} chars), starts with '{API_KEY_PREFIX}': {has_prefix}")

        if not has_prefix:
            logger.error(f"Invalid API key format, must start with '{API_KEY_PREFIX}'")
            return cls(ProviderStatus.INVALID_FORMAT, api_key_configured=True)

        if len(api_key) < MIN_API_KEY_LENGTH:
            logger.error("API key seems too short")
            return cls(ProviderStatus.TOO_SHORT, api_key_configured=True)

        try:
            client = client_factory(api_key, openai_config_from_settings(settings))
        except Exception as e:
            logger.error(f"OpenAI client initialization failed: {e}")
            return cls(ProviderStatus.INITIALIZATION_ERROR, api_key_configured=True)

        logger.info("OpenAI client configured")
        return cls(ProviderStatus.CONNECTED, client=client, api_key_configured=True)

    async def probe(self) -> ProviderStatus:
        """Confirm connectivity with one live call and record the outcome."""
        if self.client is None:
            return self.status

        try:
            models = await self.client.list_models()
        except Exception as e:
            logger.warning(f"OpenAI connection test failed: {e}")
            self.status = ProviderStatus.CONNECTION_FAILED
        else:
            logger.info(f"OpenAI connection successful, {len(models)} models available")
            self.status = ProviderStatus.CONNECTED

        return self.status
