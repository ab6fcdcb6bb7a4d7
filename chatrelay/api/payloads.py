"""Reading modality payloads that arrive either inline or as an upload."""

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import Request
from starlette.datastructures import UploadFile

from chatrelay.errors import InvalidInputError
from chatrelay.services.uploads import StoredUpload, UploadStore

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


@dataclass
class ModalPayload:
    """Inline (base64) value and/or accepted upload for one request."""

    inline: str | None = None
    upload: StoredUpload | None = None

    @property
    def empty(self) -> bool:
        return self.inline is None and self.upload is None


def _text(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


@asynccontextmanager
async def read_payload(
    request: Request,
    store: UploadStore,
    file_field: str,
    inline_field: str | None = None,
    max_inline_bytes: int = 50 * 1024 * 1024,
) -> AsyncIterator[ModalPayload]:
    """Parse a JSON, urlencoded or multipart body into a `ModalPayload`.

    Any file in `file_field` goes through the upload store's acceptance checks
    before the caller sees it and is deleted when the context exits.

    Raises:
        InvalidInputError: If a JSON body cannot be parsed
        UnsupportedMediaTypeError: If an upload is rejected
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(FORM_CONTENT_TYPES):
        async with request.form(max_part_size=max_inline_bytes) as form:
            inline = _text(form.get(inline_field)) if inline_field else None
            candidate = form.get(file_field)
            if isinstance(candidate, UploadFile):
                async with store.store(candidate) as stored:
                    yield ModalPayload(inline=inline, upload=stored)
            else:
                yield ModalPayload(inline=inline)
        return

    body = await request.body()
    inline = None
    if body.strip() and inline_field:
        try:
            data = json.loads(body)
        except ValueError as e:
            raise InvalidInputError("Invalid JSON body") from e
        if isinstance(data, dict):
            inline = _text(data.get(inline_field))

    yield ModalPayload(inline=inline)
