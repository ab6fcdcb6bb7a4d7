"""Main FastAPI application."""

import random
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatrelay import __version__
from chatrelay.api.endpoints import router
from chatrelay.api.handlers import register_exception_handlers
from chatrelay.config import Settings, get_settings
from chatrelay.services.chat import ChatService
from chatrelay.services.media import MediaService
from chatrelay.services.provider import ProviderState
from chatrelay.services.uploads import UploadStore
from chatrelay.utils.logging import LogConfig, get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and probe the provider once at startup."""
    settings: Settings = app.state.settings
    provider: ProviderState = app.state.provider

    setup_logging(LogConfig(level=settings.log_level))
    logger.info(f"ChatRelay gateway starting, OpenAI status: {provider.status}")

    if settings.probe_on_startup and provider.client is not None:
        await provider.probe()

    logger.info(f"Upload limit: {settings.max_upload_bytes // (1024 * 1024)}MB, OpenAI status: {provider.status}")
    yield
    logger.info("ChatRelay gateway shutting down")


def create_app(
    settings: Settings | None = None,
    provider: ProviderState | None = None,
    rng: random.Random | None = None,
) -> FastAPI:
    """Build the gateway application.

    Args:
        settings: Gateway settings (defaults to the environment)
        provider: Provider state (defaults to evaluating the configured key)
        rng: Random source for fallback replies

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    provider = provider or ProviderState.from_settings(settings)
    store = UploadStore(settings.upload_dir, settings.max_upload_bytes)

    app = FastAPI(
        title="ChatRelay",
        description=(
            "A multimodal chat gateway that relays chat, image, voice and file requests "
            "to OpenAI and degrades to canned responses when the provider is unavailable."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Conversation", "description": "Chat with the assistant."},
            {"name": "Media", "description": "Image description, voice transcription and file extraction."},
            {"name": "Health", "description": "Service health monitoring and provider status checks."},
        ],
    )

    app.state.settings = settings
    app.state.provider = provider
    app.state.upload_store = store
    app.state.chat_service = ChatService(provider, settings, rng)
    app.state.media_service = MediaService(provider, store, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept"],
    )

    register_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    """Run the gateway with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("chatrelay.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
