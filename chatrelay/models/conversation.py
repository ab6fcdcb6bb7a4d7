"""Request and response models for the gateway endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from chatrelay.models.provider import ProviderStatus


class HistoryItem(BaseModel):
    """A prior conversation entry sent along with a chat message."""

    model_config = ConfigDict(extra="ignore")

    text: str = ""
    sender: str = "user"


class ChatRequest(BaseModel):
    """Request model for the chat endpoint.

    `message` is optional here so that a missing message is reported with the
    same structured error as an empty one.
    """

    message: str | None = None
    history: list[HistoryItem] = []


class ChatResponse(BaseModel):
    """Response model for the chat endpoint."""

    success: bool = True
    response: str
    timestamp: datetime
    openai: bool
    model: str | None = None
    status: ProviderStatus | None = None
    error: str | None = None


class ProviderTestResponse(BaseModel):
    """Response model for the live provider probe."""

    success: bool
    status: ProviderStatus
    message: str
    response: str | None = None
    error: str | None = None
    timestamp: datetime | None = None


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    openai: ProviderStatus
    api_key_configured: bool


class RootResponse(BaseModel):
    """Service banner with the endpoint map."""

    message: str
    version: str
    openai: ProviderStatus
    endpoints: dict[str, str]


class ErrorResponse(BaseModel):
    """Structured error body shared by every failing request."""

    success: bool = False
    error: str
