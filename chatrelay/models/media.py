"""Response models for image, voice and file processing."""

from datetime import datetime

from pydantic import BaseModel


class ImageResponse(BaseModel):
    """Response model for image processing."""

    success: bool = True
    description: str
    timestamp: datetime
    openai: bool


class VoiceResponse(BaseModel):
    """Response model for voice transcription."""

    success: bool = True
    text: str
    timestamp: datetime
    openai: bool


class FileContentResponse(BaseModel):
    """Response model for file processing."""

    success: bool = True
    filename: str
    size: int
    content: str
    timestamp: datetime
