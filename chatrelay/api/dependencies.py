"""FastAPI dependencies resolving the objects built by the app factory."""

from fastapi import Request

from chatrelay.config import Settings
from chatrelay.services.chat import ChatService
from chatrelay.services.media import MediaService
from chatrelay.services.provider import ProviderState
from chatrelay.services.uploads import UploadStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_provider(request: Request) -> ProviderState:
    return request.app.state.provider


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_media_service(request: Request) -> MediaService:
    return request.app.state.media_service


def get_upload_store(request: Request) -> UploadStore:
    return request.app.state.upload_store
