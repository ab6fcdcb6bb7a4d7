"""Append-only conversation log and the uploaded-file shelf."""

from collections.abc import Iterator

from chatrelay.chat_client.models import ConversationEntry, Sender, UploadedArtifact
from chatrelay.models.conversation import HistoryItem


class ConversationLog:
    """Conversation entries in the order they were appended.

    Entries are never removed individually; `clear` empties the log in bulk.
    """

    def __init__(self) -> None:
        self._entries: list[ConversationEntry] = []

    def append(self, text: str, sender: Sender) -> ConversationEntry:
        """Create and append a new entry."""
        entry = ConversationEntry(text=text, sender=sender)
        self._entries.append(entry)
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def history(self, limit: int) -> list[HistoryItem]:
        """Most recent non-error entries, as sent to the chat endpoint."""
        if limit <= 0:
            return []
        sendable = [entry for entry in self._entries if entry.sender != "error"]
        return [HistoryItem(text=entry.text, sender=entry.sender) for entry in sendable[-limit:]]

    @property
    def entries(self) -> tuple[ConversationEntry, ...]:
        return tuple(self._entries)

    def __iter__(self) -> Iterator[ConversationEntry]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


class ArtifactShelf:
    """Client-local record of successfully uploaded files."""

    def __init__(self) -> None:
        self._artifacts: dict[str, UploadedArtifact] = {}

    def add(self, artifact: UploadedArtifact) -> None:
        self._artifacts[artifact.id] = artifact

    def remove(self, artifact_id: str) -> bool:
        """Remove an artifact.

        Returns:
            True if it was removed, False if no artifact had that id
        """
        return self._artifacts.pop(artifact_id, None) is not None

    def recent(self, count: int = 3) -> list[UploadedArtifact]:
        if count <= 0:
            return []
        return list(self._artifacts.values())[-count:]

    def __iter__(self) -> Iterator[UploadedArtifact]:
        return iter(list(self._artifacts.values()))

    def __len__(self) -> int:
        return len(self._artifacts)
