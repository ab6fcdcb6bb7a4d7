"""Image, voice and file processing."""

import base64
import binascii
from datetime import UTC, datetime

from starlette.concurrency import run_in_threadpool

from chatrelay.config import Settings
from chatrelay.errors import InvalidInputError, ProviderError
from chatrelay.models.media import FileContentResponse, ImageResponse, VoiceResponse
from chatrelay.services.fallback import IMAGE_FALLBACK, VOICE_FALLBACK
from chatrelay.services.provider import ProviderState
from chatrelay.services.uploads import StoredUpload, UploadStore
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_IMAGE_MIME = "image/jpeg"
FILE_PREVIEW_CHARS = 500


def to_data_uri(data: bytes, mime_type: str) -> str:
    """Encode raw bytes as a base64 data URI."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def normalize_inline_image(value: str) -> str:
    """Return an inline image as a data URI, wrapping bare base64 if needed."""
    value = value.strip()
    if value.startswith("data:"):
        return value
    return f"data:{DEFAULT_IMAGE_MIME};base64,{value}"


def decode_inline_audio(value: str) -> bytes:
    """Decode inline audio given as bare base64 or a data URI.

    Raises:
        InvalidInputError: If the value is not valid base64
    """
    value = value.strip()
    if value.startswith("data:"):
        value = value.partition(",")[2]
    try:
        return base64.b64decode(value)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError("Invalid audio data") from e


class MediaService:
    """Processes images, voice recordings and uploaded files."""

    def __init__(self, provider: ProviderState, store: UploadStore, settings: Settings):
        self.provider = provider
        self.store = store
        self.settings = settings

    async def describe_image(self, inline: str | None, upload: StoredUpload | None) -> ImageResponse:
        """Describe an image, or acknowledge it when the provider cannot.

        Raises:
            InvalidInputError: If neither form of image is present
        """
        if inline is not None:
            image_url = normalize_inline_image(inline)
        elif upload is not None:
            data = await run_in_threadpool(upload.path.read_bytes)
            image_url = to_data_uri(data, upload.content_type or DEFAULT_IMAGE_MIME)
        else:
            raise InvalidInputError("No image provided")

        if self.provider.available and self.provider.client is not None:
            try:
                result = await self.provider.client.describe_image(image_url)
            except ProviderError as e:
                logger.warning(f"Vision error: {e}")
            else:
                return ImageResponse(description=result.content, timestamp=datetime.now(UTC), openai=True)

        return ImageResponse(description=IMAGE_FALLBACK, timestamp=datetime.now(UTC), openai=False)

    async def transcribe_voice(self, inline: str | None, upload: StoredUpload | None) -> VoiceResponse:
        """Transcribe a voice recording, or acknowledge it when the provider cannot.

        Inline audio is only decoded when it is about to be transcribed.

        Raises:
            InvalidInputError: If no audio is present, or inline audio headed
                for transcription cannot be decoded
        """
        if inline is None and upload is None:
            raise InvalidInputError("No audio provided")

        if self.provider.available and self.provider.client is not None:
            if inline is not None:
                audio = decode_inline_audio(inline)
            else:
                audio = await run_in_threadpool(upload.path.read_bytes)
            try:
                async with self.store.scratch_file(audio, prefix="temp_audio_", suffix=".webm") as audio_path:
                    text = await self.provider.client.transcribe(audio_path)
            except ProviderError as e:
                logger.warning(f"Transcription error: {e}")
            else:
                return VoiceResponse(text=text, timestamp=datetime.now(UTC), openai=True)

        return VoiceResponse(text=VOICE_FALLBACK, timestamp=datetime.now(UTC), openai=False)

    async def extract_file(self, upload: StoredUpload | None) -> FileContentResponse:
        """Return the leading text content of an uploaded file.

        Raises:
            InvalidInputError: If no file was uploaded
        """
        if upload is None:
            raise InvalidInputError("No file uploaded")

        data = await run_in_threadpool(upload.path.read_bytes)
        try:
            # Decoded as-is so line endings survive
            content = data.decode("utf-8")
        except UnicodeDecodeError:
            content = f"File: {upload.filename} ({upload.size} bytes)"

        logger.info(f"Processed file {upload.filename!r} ({upload.size} bytes)")
        return FileContentResponse(
            filename=upload.filename,
            size=upload.size,
            content=content[:FILE_PREVIEW_CHARS],
            timestamp=datetime.now(UTC),
        )
