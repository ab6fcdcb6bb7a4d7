"""Client-side conversation data models."""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from chatrelay.utils.ids import new_id

Sender = Literal["user", "assistant", "error"]


def _now() -> datetime:
    return datetime.now(UTC)


class ConversationEntry(BaseModel):
    """One message in the displayed conversation log."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    text: str
    sender: Sender
    timestamp: datetime = Field(default_factory=_now)


class UploadedArtifact(BaseModel):
    """A file the user uploaded successfully during this session."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str
    mime_type: str
    size_bytes: int
    result_summary: str
    timestamp: datetime = Field(default_factory=_now)
    result: dict[str, Any] = Field(default_factory=dict, repr=False)
