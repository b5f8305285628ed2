"""HTTP transport for upload requests.

The upload engine talks to the server only through ``TransportAdapter.send``:
one request in, one ``TransportResponse`` out (or a ``TransportError`` when no
response was obtained). Cancellation is asyncio task cancellation.
"""

from __future__ import annotations

import json as jsonlib
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from mpupload.core.exceptions import NetworkError, ServerUnreachableError, TimeoutError
from mpupload.core.timeouts import DEFAULT_CONNECT_TIMEOUT_SECONDS, DEFAULT_HTTP_TIMEOUT_SECONDS

# Request bodies are streamed in chunks of this size (drives progress granularity)
STREAM_CHUNK_SIZE = 64 * 1024

# Receives cumulative bytes sent for the request in flight
ProgressCallback = Callable[[int], None]


# =============================================================================
# Request / Response
# =============================================================================


@dataclass(frozen=True)
class TransportRequest:
    """A single request to send."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None


@dataclass
class TransportResponse:
    """Status and body of a completed request."""

    status_code: int
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True for 2xx responses."""
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON."""
        return jsonlib.loads(self.content or b"null")


class TransportAdapter(Protocol):
    """Anything able to send one upload request."""

    async def send(
        self,
        request: TransportRequest,
        on_progress: ProgressCallback | None = None,
    ) -> TransportResponse:
        ...


# =============================================================================
# httpx implementation
# =============================================================================


class HttpxTransport:
    """TransportAdapter backed by a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        verify_ssl: bool = True,
        chunk_size: int = STREAM_CHUNK_SIZE,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.chunk_size = chunk_size
        self._client = client
        self._owns_client = client is None

    # =========================================================================
    # Client Management
    # =========================================================================

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=DEFAULT_CONNECT_TIMEOUT_SECONDS),
                verify=self.verify_ssl,
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # =========================================================================
    # Sending
    # =========================================================================

    async def _stream(
        self,
        body: bytes,
        on_progress: ProgressCallback | None,
    ) -> AsyncIterator[bytes]:
        sent = 0
        view = memoryview(body)
        for start in range(0, len(body), self.chunk_size):
            chunk = bytes(view[start : start + self.chunk_size])
            yield chunk
            sent += len(chunk)
            if on_progress:
                on_progress(sent)

    async def send(
        self,
        request: TransportRequest,
        on_progress: ProgressCallback | None = None,
    ) -> TransportResponse:
        """Send one request.

        Args:
            request: Request to send.
            on_progress: Optional callback receiving cumulative bytes sent.

        Returns:
            TransportResponse for any HTTP status.

        Raises:
            ServerUnreachableError: If the connection could not be opened.
            TimeoutError: If the request timed out.
            NetworkError: For any other transport failure.
        """
        client = self._get_client()
        headers = dict(request.headers)
        content: Any = None

        if request.body is not None:
            headers.setdefault("Content-Length", str(len(request.body)))
            content = self._stream(request.body, on_progress)

        try:
            resp = await client.request(
                request.method,
                request.url,
                headers=headers,
                content=content,
            )
        except httpx.ConnectError as e:
            raise ServerUnreachableError(request.url) from e
        except httpx.TimeoutException as e:
            raise TimeoutError(request.url, self.timeout) from e
        except httpx.TransportError as e:
            raise NetworkError(request.url, str(e)) from e

        return TransportResponse(
            status_code=resp.status_code,
            content=resp.content,
            headers=dict(resp.headers),
        )
