"""Pytest configuration and fixtures for mpupload tests."""

from __future__ import annotations

import inspect
import json
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, Generator
from urllib.parse import parse_qs, urlsplit

import pytest

from mpupload.core.transport import TransportRequest, TransportResponse
from mpupload.models.upload import UploadFile

DEST_URL = "https://files.example.org/api/files/bucket/scan.tar"
SESSION_LINK = "https://files.example.org/api/files/bucket/scan.tar?uploadId=u-1"


def json_response(status: int, payload: Any) -> TransportResponse:
    """Build a TransportResponse with a JSON body."""
    return TransportResponse(
        status_code=status,
        content=json.dumps(payload).encode(),
        headers={"content-type": "application/json"},
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_file(tmp_path: Path) -> Callable[..., UploadFile]:
    """Factory writing a file of ``size`` distinct-ish bytes."""

    def _make(size: int, name: str = "scan.tar") -> UploadFile:
        path = tmp_path / name
        path.write_bytes(bytes(i % 251 for i in range(size)))
        return UploadFile.from_path(path)

    return _make


# =============================================================================
# Fake transports
# =============================================================================


class FakeTransport:
    """TransportAdapter that records requests and answers via ``handler``.

    The handler may return a TransportResponse, raise, return an exception
    instance to be raised, or return an awaitable producing any of those.
    """

    def __init__(self, handler: Callable[[TransportRequest], Any] | None = None) -> None:
        self.handler = handler or (lambda request: TransportResponse(200))
        self.requests: list[TransportRequest] = []

    async def send(self, request: TransportRequest, on_progress=None) -> TransportResponse:
        self.requests.append(request)
        if on_progress and request.body:
            half = len(request.body) // 2
            if half:
                on_progress(half)
            on_progress(len(request.body))
        result = self.handler(request)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, BaseException):
            raise result
        return result

    def methods(self) -> list[str]:
        return [r.method for r in self.requests]


class FakeFilesRest:
    """In-memory multipart session endpoint.

    Args:
        fail_parts: Part index -> number of times its PUT answers 500 first.
        completed: Report the session as already completed on status reads.
        reported_parts: Override the number of parts the status read reports.
        finalize_completed: Value of ``completed`` returned by finalize.
        init_status: Status of the session initiation response.
    """

    def __init__(
        self,
        *,
        link: str = SESSION_LINK,
        fail_parts: dict[int, int] | None = None,
        completed: bool = False,
        reported_parts: int | None = None,
        finalize_completed: bool = True,
        init_status: int = 200,
    ) -> None:
        self.link = link
        self.fail_parts = dict(fail_parts or {})
        self.completed = completed
        self.reported_parts = reported_parts
        self.finalize_completed = finalize_completed
        self.init_status = init_status
        self.received: dict[int, bytes] = {}
        self.finalize_calls = 0

    def __call__(self, request: TransportRequest) -> TransportResponse:
        parts = urlsplit(request.url)
        query = parse_qs(parts.query, keep_blank_values=True)

        if request.method == "POST" and "uploads" in query:
            if self.init_status >= 300:
                return json_response(self.init_status, {"message": "refused"})
            size = int(query["size"][0])
            part_size = int(query["partSize"][0])
            last = -(-size // part_size) - 1
            return json_response(
                self.init_status,
                {
                    "part_size": part_size,
                    "last_part_number": last,
                    "last_part_size": size - part_size * last,
                    "links": {"self": self.link},
                },
            )

        if request.method == "PUT" and "partNumber" in query:
            index = int(query["partNumber"][0])
            if self.fail_parts.get(index, 0) > 0:
                self.fail_parts[index] -= 1
                return TransportResponse(500, b"boom")
            self.received[index] = request.body or b""
            return TransportResponse(200)

        if request.method == "GET" and request.url == self.link:
            count = len(self.received) if self.reported_parts is None else self.reported_parts
            return json_response(
                200, {"parts": [{"part_number": i} for i in range(count)], "completed": self.completed}
            )

        if request.method == "POST" and request.url == self.link:
            self.finalize_calls += 1
            self.completed = self.finalize_completed
            return json_response(200, {"completed": self.finalize_completed})

        return TransportResponse(404, b"not found")

    def assembled(self) -> bytes:
        return b"".join(self.received[i] for i in sorted(self.received))


@pytest.fixture
def files_rest() -> FakeFilesRest:
    return FakeFilesRest()


@pytest.fixture
def transport(files_rest: FakeFilesRest) -> FakeTransport:
    return FakeTransport(files_rest)
