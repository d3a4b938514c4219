"""Archive download over HTTP(S), with file:// URLs read from local disk."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from flowspec.domain.exceptions import ExternalServiceException, ValidationException
from flowspec.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class HttpArchiveSource:
    """IArchiveSource over httpx. Enforces max_bytes on every source."""

    def __init__(
        self,
        *,
        max_bytes: int,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._max_bytes = max_bytes
        self._timeout = timeout
        self._shared_http = http_client

    @asynccontextmanager
    async def _http_cm(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._shared_http is not None:
            yield self._shared_http
            return
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            yield client

    def _too_large(self, file_url: str) -> ValidationException:
        return ValidationException(
            f"Archive at {file_url} exceeds the {self._max_bytes} byte limit", field="file_url"
        )

    async def fetch(self, file_url: str) -> bytes:
        parsed = urlparse(file_url)
        if parsed.scheme == "file":
            return await asyncio.to_thread(self._read_local, file_url, Path(unquote(parsed.path)))
        if parsed.scheme not in ("http", "https"):
            raise ValidationException(
                f"Unsupported archive URL scheme: {parsed.scheme or '(none)'}", field="file_url"
            )
        chunks: list[bytes] = []
        size = 0
        try:
            async with self._http_cm() as client:
                async with client.stream("GET", file_url, timeout=self._timeout) as response:
                    response.raise_for_status()
                    async for chunk in response.aiter_bytes():
                        size += len(chunk)
                        if size > self._max_bytes:
                            raise self._too_large(file_url)
                        chunks.append(chunk)
        except httpx.HTTPStatusError as e:
            raise ExternalServiceException(
                "archive",
                f"download of {file_url} returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceException("archive", f"download of {file_url} failed: {e}") from e
        logger.debug("Fetched archive %s (%d bytes)", file_url, size)
        return b"".join(chunks)

    def _read_local(self, file_url: str, path: Path) -> bytes:
        try:
            if path.stat().st_size > self._max_bytes:
                raise self._too_large(file_url)
            return path.read_bytes()
        except FileNotFoundError as e:
            raise ExternalServiceException("archive", f"file not found: {path}") from e
