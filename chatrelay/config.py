"""Gateway configuration loaded from the environment."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MEGABYTE = 1024 * 1024


class Settings(BaseSettings):
    """Runtime configuration for the gateway service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Provider credential; presence and shape decide the provider status
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3001, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")

    # Assistant behaviour
    assistant_name: str = Field(default="ChatRelay", alias="ASSISTANT_NAME")
    chat_model: str = Field(default="gpt-3.5-turbo", alias="CHAT_MODEL")
    vision_model: str = Field(default="gpt-4o-mini", alias="VISION_MODEL")
    transcription_model: str = Field(default="whisper-1", alias="TRANSCRIPTION_MODEL")
    history_limit: int = Field(default=5, alias="HISTORY_LIMIT", ge=0)

    # Provider calls
    provider_timeout_seconds: float = Field(default=30.0, alias="PROVIDER_TIMEOUT_SECONDS", gt=0)
    provider_requests_per_minute: int = Field(default=50, alias="PROVIDER_REQUESTS_PER_MINUTE", ge=1)
    probe_on_startup: bool = Field(default=True, alias="PROBE_ON_STARTUP")

    # Uploads
    upload_dir: Path = Field(default=Path("uploads"), alias="UPLOAD_DIR")
    max_upload_bytes: int = Field(default=100 * MEGABYTE, alias="MAX_UPLOAD_BYTES", ge=1)
    max_inline_bytes: int = Field(default=50 * MEGABYTE, alias="MAX_INLINE_BYTES", ge=1)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
