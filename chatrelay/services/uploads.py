"""Per-request temporary file storage for uploads and provider scratch files."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from chatrelay.errors import UnsupportedMediaTypeError
from chatrelay.utils.ids import new_id
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)

ALLOWED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "application/pdf",
        "text/plain",
        "audio/mpeg",
        "audio/wav",
        "audio/webm",
        "audio/ogg",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)

COPY_CHUNK_BYTES = 1024 * 1024


@dataclass
class StoredUpload:
    """An accepted upload written to the upload directory."""

    path: Path
    filename: str
    content_type: str
    size: int


def _copy_limited(source: BinaryIO, destination: Path, max_bytes: int) -> int:
    """Copy a file object to disk, refusing to write more than `max_bytes`."""
    written = 0
    with destination.open("wb") as out:
        while chunk := source.read(COPY_CHUNK_BYTES):
            written += len(chunk)
            if written > max_bytes:
                raise UnsupportedMediaTypeError("File too large")
            out.write(chunk)
    return written


def _remove(path: Path) -> None:
    path.unlink(missing_ok=True)
    logger.debug(f"Removed temporary file {path.name}")


class UploadStore:
    """Accepts uploads and owns the lifetime of every temporary file.

    Files handed out by `store` and `scratch_file` are deleted when the
    context exits, whatever the outcome of the request.
    """

    def __init__(self, directory: Path, max_bytes: int):
        """Initialize the store.

        Args:
            directory: Directory that holds temporary files
            max_bytes: Largest accepted upload
        """
        self.directory = directory
        self.max_bytes = max_bytes

    def validate(self, upload: UploadFile) -> None:
        """Reject uploads whose declared type or size is not acceptable.

        Raises:
            UnsupportedMediaTypeError: If the upload is rejected
        """
        if upload.content_type not in ALLOWED_MIME_TYPES:
            logger.warning(f"Rejected upload {upload.filename!r} with type {upload.content_type!r}")
            raise UnsupportedMediaTypeError("Invalid file type")

        if upload.size is not None and upload.size > self.max_bytes:
            logger.warning(f"Rejected upload {upload.filename!r} of {upload.size} bytes")
            raise UnsupportedMediaTypeError("File too large")

    @asynccontextmanager
    async def store(self, upload: UploadFile) -> AsyncIterator[StoredUpload]:
        """Validate an upload and write it to a uniquely named file."""
        self.validate(upload)

        filename = upload.filename or "upload"
        path = self._unique_path(suffix=Path(filename).suffix)
        try:
            size = await run_in_threadpool(_copy_limited, upload.file, path, self.max_bytes)
            logger.info(f"Stored upload {filename!r} ({size} bytes) as {path.name}")
            yield StoredUpload(path=path, filename=filename, content_type=upload.content_type or "", size=size)
        finally:
            await run_in_threadpool(_remove, path)

    @asynccontextmanager
    async def scratch_file(self, data: bytes, prefix: str = "", suffix: str = "") -> AsyncIterator[Path]:
        """Write bytes to a uniquely named file for the duration of the context."""
        path = self._unique_path(prefix=prefix, suffix=suffix)
        try:
            await run_in_threadpool(path.write_bytes, data)
            yield path
        finally:
            await run_in_threadpool(_remove, path)

    def _unique_path(self, prefix: str = "", suffix: str = "") -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory / f"{prefix}{new_id()}{suffix}"
