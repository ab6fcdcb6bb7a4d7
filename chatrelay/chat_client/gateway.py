"""Async HTTP client for the gateway endpoints."""

import asyncio
import base64
import mimetypes
from pathlib import Path
from typing import Any

import httpx

from chatrelay.models.conversation import HistoryItem

DEFAULT_BASE_URL = "http://localhost:3001"
DEFAULT_TIMEOUT_SECONDS = 60.0


class GatewayRequestError(Exception):
    """A gateway call failed at the network level or returned an error body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def guess_mime_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or "application/octet-stream"


class GatewayClient:
    """Mirrors the gateway routes. Calls are never retried."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize gateway client.

        Args:
            base_url: Gateway root URL
            timeout: Per-request timeout in seconds
            transport: Optional transport override
        """
        self.base_url = base_url
        self.client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    async def health(self) -> dict[str, Any]:
        return await self._request("GET", "/api/health")

    async def test_provider(self) -> dict[str, Any]:
        """Run the live provider probe; a failed probe is data, not an error."""
        return await self._request("GET", "/api/test-openai", require_success=False)

    async def chat(self, message: str, history: list[HistoryItem]) -> dict[str, Any]:
        payload = {"message": message, "history": [item.model_dump() for item in history]}
        return await self._request("POST", "/api/chat", json=payload)

    async def process_image(self, data_uri: str) -> dict[str, Any]:
        """Send an inline image snapshot as a data URI."""
        return await self._request("POST", "/api/process-image", json={"base64Image": data_uri})

    async def upload_image(self, path: Path) -> dict[str, Any]:
        files = await self._file_part(path)
        return await self._request("POST", "/api/process-image", files={"image": files})

    async def process_voice(self, audio: bytes) -> dict[str, Any]:
        """Send a recording as inline base64."""
        encoded = base64.b64encode(audio).decode("ascii")
        return await self._request("POST", "/api/process-voice", json={"audioData": encoded})

    async def process_file(self, path: Path) -> dict[str, Any]:
        files = await self._file_part(path)
        return await self._request("POST", "/api/process-file", files={"file": files})

    async def _file_part(self, path: Path) -> tuple[str, bytes, str]:
        data = await asyncio.to_thread(path.read_bytes)
        return path.name, data, guess_mime_type(path)

    async def _request(self, method: str, url: str, require_success: bool = True, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise GatewayRequestError("Request timed out") from e
        except httpx.HTTPError as e:
            raise GatewayRequestError(f"Network error: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.is_error:
            raise GatewayRequestError(data.get("error") or f"HTTP {response.status_code}", response.status_code)
        if require_success and data.get("success") is False:
            raise GatewayRequestError(data.get("error") or "Request failed", response.status_code)

        return data
