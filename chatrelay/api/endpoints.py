"""API endpoints for the chat gateway."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request

from chatrelay import __version__
from chatrelay.api.dependencies import (
    get_app_settings,
    get_chat_service,
    get_media_service,
    get_provider,
    get_upload_store,
)
from chatrelay.api.payloads import read_payload
from chatrelay.config import Settings
from chatrelay.models.conversation import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    ProviderTestResponse,
    RootResponse,
)
from chatrelay.models.media import FileContentResponse, ImageResponse, VoiceResponse
from chatrelay.services.chat import ChatService
from chatrelay.services.media import MediaService
from chatrelay.services.provider import ProviderState
from chatrelay.services.uploads import UploadStore
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

ENDPOINTS = {
    "health": "/api/health",
    "chat": "/api/chat",
    "image": "/api/process-image",
    "voice": "/api/process-voice",
    "file": "/api/process-file",
    "test": "/api/test-openai",
}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input or rejected upload"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}


@router.get("/", response_model=RootResponse, tags=["Health"])
async def root(provider: ProviderState = Depends(get_provider)) -> RootResponse:
    """Service banner and endpoint map."""
    return RootResponse(
        message="ChatRelay API is running!",
        version=__version__,
        openai=provider.status,
        endpoints=ENDPOINTS,
    )


@router.get("/api/health", response_model=HealthResponse, tags=["Health"])
async def health_check(provider: ProviderState = Depends(get_provider)) -> HealthResponse:
    """Health check endpoint. Never calls the provider."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        openai=provider.status,
        api_key_configured=provider.api_key_configured,
    )


@router.get(
    "/api/test-openai",
    response_model=ProviderTestResponse,
    response_model_exclude_none=True,
    tags=["Health"],
)
async def test_openai(chat_service: ChatService = Depends(get_chat_service)) -> ProviderTestResponse:
    """Issue one live provider call to confirm connectivity."""
    return await chat_service.test_provider()


@router.post(
    "/api/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
    tags=["Conversation"],
)
async def chat(request: ChatRequest, chat_service: ChatService = Depends(get_chat_service)) -> ChatResponse:
    """Reply to a chat message using the last few history entries as context."""
    return await chat_service.reply(request.message, request.history)


@router.post("/api/process-image", response_model=ImageResponse, responses=ERROR_RESPONSES, tags=["Media"])
async def process_image(
    request: Request,
    media_service: MediaService = Depends(get_media_service),
    store: UploadStore = Depends(get_upload_store),
    settings: Settings = Depends(get_app_settings),
) -> ImageResponse:
    """Describe an image sent as multipart `image` or inline `base64Image`."""
    async with read_payload(
        request, store, file_field="image", inline_field="base64Image", max_inline_bytes=settings.max_inline_bytes
    ) as payload:
        return await media_service.describe_image(payload.inline, payload.upload)


@router.post("/api/process-voice", response_model=VoiceResponse, responses=ERROR_RESPONSES, tags=["Media"])
async def process_voice(
    request: Request,
    media_service: MediaService = Depends(get_media_service),
    store: UploadStore = Depends(get_upload_store),
    settings: Settings = Depends(get_app_settings),
) -> VoiceResponse:
    """Transcribe audio sent as multipart `audio` or inline base64 `audioData`."""
    async with read_payload(
        request, store, file_field="audio", inline_field="audioData", max_inline_bytes=settings.max_inline_bytes
    ) as payload:
        return await media_service.transcribe_voice(payload.inline, payload.upload)


@router.post("/api/process-file", response_model=FileContentResponse, responses=ERROR_RESPONSES, tags=["Media"])
async def process_file(
    request: Request,
    media_service: MediaService = Depends(get_media_service),
    store: UploadStore = Depends(get_upload_store),
) -> FileContentResponse:
    """Return the leading text of an uploaded file with its metadata."""
    async with read_payload(request, store, file_field="file") as payload:
        return await media_service.extract_file(payload.upload)
