"""Tests for mpupload.uploaders.multipart."""

from __future__ import annotations

import asyncio

import pytest
from conftest import DEST_URL, SESSION_LINK, FakeFilesRest, FakeTransport, json_response

from mpupload.core.exceptions import (
    NetworkError,
    PartUploadError,
    SessionInitError,
    UploadAbortedError,
    VerificationError,
)
from mpupload.core.transport import TransportResponse
from mpupload.models.session import MultipartSession, join_query
from mpupload.uploaders.multipart import (
    PartUploader,
    initiate_session,
    initiate_url,
    verify_session,
)
from mpupload.uploaders.planner import plan_parts


def _session(size: int, part_size: int, link: str = SESSION_LINK) -> MultipartSession:
    last = -(-size // part_size) - 1
    return MultipartSession.model_validate(
        {
            "part_size": part_size,
            "last_part_number": last,
            "last_part_size": size - part_size * last,
            "links": {"self": link},
        }
    )


# =============================================================================
# URLs and session model
# =============================================================================


class TestUrls:
    """Tests for URL construction."""

    def test_initiate_url(self):
        assert initiate_url(DEST_URL, 25, 10) == f"{DEST_URL}?uploads&size=25&partSize=10"

    def test_initiate_url_with_existing_query(self):
        url = initiate_url("https://h.example.org/o?versionId=3", 25, 10)

        assert url == "https://h.example.org/o?versionId=3&uploads&size=25&partSize=10"

    def test_part_url_appends_to_query(self):
        assert _session(25, 10).part_url(2) == f"{SESSION_LINK}&partNumber=2"

    def test_part_url_without_query(self):
        session = _session(25, 10, link="https://h.example.org/upload/1")

        assert session.part_url(0) == "https://h.example.org/upload/1?partNumber=0"

    def test_join_query(self):
        assert join_query("https://h/a", "x=1") == "https://h/a?x=1"


class TestMultipartSession:
    """Tests for MultipartSession byte ranges."""

    def test_ranges(self):
        session = _session(25, 10)

        assert session.part_count == 3
        assert session.total_size == 25
        assert [session.part_range(i) for i in range(3)] == [(0, 10), (10, 10), (20, 5)]

    def test_range_out_of_session(self):
        with pytest.raises(IndexError):
            _session(25, 10).part_range(3)

    def test_rejects_malformed_payload(self):
        with pytest.raises(ValueError):
            MultipartSession.model_validate({"part_size": 0, "links": {}})


# =============================================================================
# Initiation
# =============================================================================


class TestInitiateSession:
    """Tests for initiate_session."""

    @pytest.mark.asyncio
    async def test_parses_session(self, make_file):
        file = make_file(25)
        transport = FakeTransport(FakeFilesRest())

        session, resp = await initiate_session(
            transport.send, DEST_URL, {"X-Token": "t"}, plan_parts(25, 10, 100), file
        )

        assert session.part_count == 3
        assert session.upload_link == SESSION_LINK
        assert resp.status_code == 200
        request = transport.requests[0]
        assert request.method == "POST"
        assert request.url == f"{DEST_URL}?uploads&size=25&partSize=10"
        assert request.headers == {"X-Token": "t"}
        assert request.body is None

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self, make_file):
        transport = FakeTransport(FakeFilesRest(init_status=403))

        with pytest.raises(SessionInitError) as exc_info:
            await initiate_session(transport.send, DEST_URL, {}, plan_parts(25, 10, 100), make_file(25))

        assert exc_info.value.status_code == 403
        assert exc_info.value.response is not None

    @pytest.mark.asyncio
    async def test_malformed_body_raises(self, make_file):
        transport = FakeTransport(lambda request: TransportResponse(200, b"<html>"))

        with pytest.raises(SessionInitError, match="Malformed"):
            await initiate_session(transport.send, DEST_URL, {}, plan_parts(25, 10, 100), make_file(25))

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, make_file):
        transport = FakeTransport(lambda request: NetworkError(request.url, "reset"))

        with pytest.raises(NetworkError):
            await initiate_session(transport.send, DEST_URL, {}, plan_parts(25, 10, 100), make_file(25))


# =============================================================================
# Part transfers
# =============================================================================


class TestPartUploader:
    """Tests for PartUploader."""

    @pytest.mark.asyncio
    async def test_sends_every_byte_range(self, make_file):
        file = make_file(25)
        server = FakeFilesRest()
        transport = FakeTransport(server)
        confirmed = []

        uploader = PartUploader(
            file,
            _session(25, 10),
            transport.send,
            on_confirmed=lambda i, done, total: confirmed.append((i, done, total)),
        )

        assert await uploader.run() is True
        assert server.assembled() == file.read_all()
        assert sorted(i for i, _, _ in confirmed) == [0, 1, 2]
        assert [done for _, done, _ in confirmed] == [1, 2, 3]
        assert all(r.method == "PUT" for r in transport.requests)

    @pytest.mark.asyncio
    async def test_failed_part_left_pending_without_retries(self, make_file):
        server = FakeFilesRest(fail_parts={1: 1})
        transport = FakeTransport(server)

        uploader = PartUploader(make_file(25), _session(25, 10), transport.send, retries=0)

        assert await uploader.run() is False
        assert uploader.queue.pending == [1]
        assert sorted(uploader.queue.confirmed) == [0, 2]
        assert len(transport.requests) == 3

        error = uploader.stalled_error()
        assert isinstance(error, PartUploadError)
        assert error.pending == [1]
        assert "2 of 3" in str(error)

    @pytest.mark.asyncio
    async def test_retries_with_backoff(self, make_file):
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        server = FakeFilesRest(fail_parts={1: 2})
        transport = FakeTransport(server)

        uploader = PartUploader(
            make_file(25),
            _session(25, 10),
            transport.send,
            retries=3,
            backoff_base=2,
            sleep=fake_sleep,
        )

        assert await uploader.run() is True
        assert delays == [2, 4]
        assert len(transport.requests) == 5

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self, make_file):
        server = FakeFilesRest(fail_parts={0: 10})
        transport = FakeTransport(server)

        uploader = PartUploader(
            make_file(25), _session(25, 10), transport.send, retries=2, backoff_base=0
        )

        assert await uploader.run() is False
        assert uploader.queue.pending == [0]
        assert len(transport.requests) == 2 + 3

    @pytest.mark.asyncio
    async def test_transport_error_is_a_part_failure(self, make_file):
        def handler(request):
            if request.url.endswith("partNumber=0"):
                return NetworkError(request.url, "reset")
            return TransportResponse(200)

        uploader = PartUploader(
            make_file(25), _session(25, 10), FakeTransport(handler).send, retries=0
        )

        assert await uploader.run() is False
        assert isinstance(uploader.last_error, NetworkError)
        assert "reset" in str(uploader.stalled_error())

    @pytest.mark.asyncio
    async def test_concurrency_cap(self, make_file):
        active = 0
        peak = 0

        async def slow(request):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.05)
            active -= 1
            return TransportResponse(200)

        uploader = PartUploader(
            make_file(100), _session(100, 10), FakeTransport(slow).send, max_concurrent=2
        )

        assert await uploader.run() is True
        assert peak == 2

    @pytest.mark.asyncio
    async def test_unbounded_dispatches_all_parts_at_once(self, make_file):
        active = 0
        peak = 0

        async def slow(request):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.05)
            active -= 1
            return TransportResponse(200)

        uploader = PartUploader(make_file(100), _session(100, 10), FakeTransport(slow).send)

        assert await uploader.run() is True
        assert peak == 10

    @pytest.mark.asyncio
    async def test_abort_propagates(self, make_file):
        async def send(request):
            raise UploadAbortedError("scan.tar")

        uploader = PartUploader(make_file(25), _session(25, 10), send)

        with pytest.raises(UploadAbortedError):
            await uploader.run()


# =============================================================================
# Verification
# =============================================================================


class TestVerifySession:
    """Tests for verify_session."""

    @pytest.mark.asyncio
    async def test_status_then_finalize(self, make_file):
        server = FakeFilesRest(reported_parts=3)
        transport = FakeTransport(server)

        resp = await verify_session(transport.send, _session(25, 10), {}, make_file(25))

        assert resp.json() == {"completed": True}
        assert [(r.method, r.url) for r in transport.requests] == [
            ("GET", SESSION_LINK),
            ("POST", SESSION_LINK),
        ]

    @pytest.mark.asyncio
    async def test_part_count_mismatch_skips_finalize(self, make_file):
        server = FakeFilesRest(reported_parts=2)
        transport = FakeTransport(server)

        with pytest.raises(VerificationError, match="2 of 3"):
            await verify_session(transport.send, _session(25, 10), {}, make_file(25))

        assert server.finalize_calls == 0

    @pytest.mark.asyncio
    async def test_already_completed_is_not_finalized_again(self, make_file):
        server = FakeFilesRest(reported_parts=3, completed=True)
        transport = FakeTransport(server)

        with pytest.raises(VerificationError, match="already completed"):
            await verify_session(transport.send, _session(25, 10), {}, make_file(25))

        assert server.finalize_calls == 0

    @pytest.mark.asyncio
    async def test_second_verification_does_not_refinalize(self, make_file):
        server = FakeFilesRest(reported_parts=3)
        transport = FakeTransport(server)
        session = _session(25, 10)

        await verify_session(transport.send, session, {}, make_file(25))
        with pytest.raises(VerificationError):
            await verify_session(transport.send, session, {}, make_file(25))

        assert server.finalize_calls == 1

    @pytest.mark.asyncio
    async def test_finalize_not_completed(self, make_file):
        server = FakeFilesRest(reported_parts=3, finalize_completed=False)

        with pytest.raises(VerificationError, match="did not complete"):
            await verify_session(FakeTransport(server).send, _session(25, 10), {}, make_file(25))

    @pytest.mark.asyncio
    async def test_status_read_error_status(self, make_file):
        transport = FakeTransport(lambda request: json_response(500, {}))

        with pytest.raises(VerificationError) as exc_info:
            await verify_session(transport.send, _session(25, 10), {}, make_file(25))

        assert exc_info.value.status_code == 500
