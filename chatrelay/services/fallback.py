"""Canned responses used when the provider is unavailable."""

import random

from chatrelay.models.provider import ProviderStatus

CHAT_FALLBACK_TEMPLATES: tuple[str, ...] = (
    'Hello! I\'m {assistant}. You said: "{message}". For AI responses, configure your OpenAI API key.',
    'Got your message: "{message}". Set up OpenAI API key to enable AI chat.',
    'You asked: "{message}". Add API key from https://platform.openai.com for intelligent responses.',
    'Hi! Your message: "{message}". OpenAI status: {status}. Configure API key for full features.',
)

IMAGE_FALLBACK = "Image received! Configure OpenAI API key for AI analysis."
VOICE_FALLBACK = "Audio received! Configure OpenAI for transcription."


def chat_fallback(
    message: str,
    status: ProviderStatus,
    assistant_name: str,
    rng: random.Random,
    templates: tuple[str, ...] = CHAT_FALLBACK_TEMPLATES,
) -> str:
    """Pick one of the instructional fallback replies for a chat message."""
    template = rng.choice(templates)
    return template.format(assistant=assistant_name, message=message, status=status.value)


def chat_degraded(message: str, error: str, assistant_name: str) -> str:
    """Reply shown when a provider call for a chat message failed."""
    return f'I\'m {assistant_name}! You said: "{message}".\n\nOpenAI error: {error}. Please check your API key.'
