"""Multipart session protocol.

Implements the three round trips of a multipart upload against a
Files-REST style object endpoint:

1. Session initiation: ``POST <url>?uploads&size=<S>&partSize=<P>``
2. Part transfers: ``PUT <links.self>&partNumber=<i>`` for every part,
   dispatched concurrently
3. Completion verification: ``GET <links.self>`` then ``POST <links.self>``

Requests go through a ``send`` coroutine supplied by the scheduler, so the
scheduler keeps ownership of in-flight handles and abort handling.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Mapping
from urllib.parse import urlencode

from mpupload.core.exceptions import (
    ConnectionError,
    PartUploadError,
    SessionInitError,
    UploadAbortedError,
    VerificationError,
)
from mpupload.core.transport import TransportRequest, TransportResponse
from mpupload.models.base import BaseModel
from mpupload.models.session import (
    FinalizeResult,
    MultipartSession,
    SessionStatus,
    join_query,
)
from mpupload.models.upload import UploadFile
from mpupload.uploaders.constants import DEFAULT_PART_RETRIES, DEFAULT_RETRY_BACKOFF_BASE
from mpupload.uploaders.part_queue import PartQueue
from mpupload.uploaders.planner import PartPlan

logger = logging.getLogger(__name__)

SendFn = Callable[[TransportRequest], Awaitable[TransportResponse]]
ConfirmedFn = Callable[[int, int, int], None]
SleepFn = Callable[[float], Awaitable[None]]


# =============================================================================
# Session Initiation
# =============================================================================


def initiate_url(url: str, size: int, part_size: int) -> str:
    """Build the session initiation URL."""
    return join_query(url, "uploads&" + urlencode([("size", size), ("partSize", part_size)]))


async def initiate_session(
    send: SendFn,
    url: str,
    headers: Mapping[str, str],
    plan: PartPlan,
    file: UploadFile,
) -> tuple[MultipartSession, TransportResponse]:
    """Open a multipart session for ``file``.

    Returns:
        Tuple of (session, initiation response).

    Raises:
        SessionInitError: On a non-2xx status or an unparsable session body.
        ConnectionError: If the request produced no response.
    """
    request_url = initiate_url(url, plan.file_size, plan.part_size)
    logger.debug("POST %s", request_url)

    resp = await send(TransportRequest("POST", request_url, dict(headers)))
    if not resp.ok:
        raise SessionInitError(
            f"Session initiation failed: HTTP {resp.status_code}",
            str(file.path),
            response=resp,
        )

    try:
        session = MultipartSession.from_response(resp)
    except ValueError as e:
        raise SessionInitError(
            f"Malformed session response: {e}",
            str(file.path),
            response=resp,
        ) from e

    if session.part_count != plan.part_count:
        logger.warning(
            "%s: server planned %d parts, expected %d",
            file.name,
            session.part_count,
            plan.part_count,
        )
    return session, resp


# =============================================================================
# Part Transfers
# =============================================================================


class PartUploader:
    """Dispatches every part of one session and reconciles via a PartQueue.

    One worker is started per part. Each worker takes the top pending index,
    transfers it and either confirms or requeues it. A worker whose transfer
    failed retries (taking whatever is on top of the pending stack) at most
    ``retries`` times with exponential backoff; with ``retries=0`` a failed
    index simply stays pending. ``sleep`` waits out the backoff; the
    scheduler passes one that an abort interrupts.
    """

    def __init__(
        self,
        file: UploadFile,
        session: MultipartSession,
        send: SendFn,
        *,
        headers: Mapping[str, str] | None = None,
        on_confirmed: ConfirmedFn | None = None,
        max_concurrent: int | None = None,
        retries: int = DEFAULT_PART_RETRIES,
        backoff_base: float = DEFAULT_RETRY_BACKOFF_BASE,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.file = file
        self.session = session
        self.send = send
        self.headers = dict(headers or {})
        self.on_confirmed = on_confirmed
        self.retries = retries
        self.backoff_base = backoff_base
        self.sleep = sleep
        self.queue = PartQueue(session.part_count)
        self.last_error: Exception | None = None
        self._slots = asyncio.Semaphore(max_concurrent) if max_concurrent else None

    def _slot(self) -> contextlib.AbstractAsyncContextManager:
        return self._slots if self._slots is not None else contextlib.nullcontext()

    async def run(self) -> bool:
        """Run all part transfers.

        Returns:
            True if every part got confirmed.

        Raises:
            UploadAbortedError: If the upload was aborted meanwhile.
        """
        workers = [self._worker() for _ in range(self.queue.total)]
        results = await asyncio.gather(*workers, return_exceptions=True)

        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors:
            if isinstance(error, UploadAbortedError):
                raise error
        if errors:
            raise errors[0]

        return self.queue.is_complete()

    async def _worker(self) -> None:
        failures = 0
        while True:
            async with self._slot():
                index = self.queue.take()
                if index is None:
                    return
                ok = await self._transfer(index)

            if ok:
                self.queue.confirm(index)
                if self.on_confirmed:
                    self.on_confirmed(index, self.queue.confirmed_count, self.queue.total)
                return

            self.queue.requeue(index)
            failures += 1
            if failures > self.retries:
                return

            delay = self.backoff_base**failures
            logger.warning(
                "%s: part %d failed on attempt %d/%d, retrying in %ss",
                self.file.name,
                index,
                failures,
                self.retries + 1,
                delay,
            )
            await self.sleep(delay)

    async def _transfer(self, index: int) -> bool:
        offset, length = self.session.part_range(index)
        try:
            body = await asyncio.to_thread(self.file.read_range, offset, length)
            resp = await self.send(
                TransportRequest("PUT", self.session.part_url(index), self.headers, body)
            )
        except (ConnectionError, OSError) as e:
            logger.debug("%s: part %d transport error: %s", self.file.name, index, e)
            self.last_error = e
            return False

        if resp.status_code != 200:
            logger.debug("%s: part %d rejected: HTTP %d", self.file.name, index, resp.status_code)
            self.last_error = PartUploadError(
                f"Part {index} rejected: HTTP {resp.status_code}", str(self.file.path)
            )
            return False
        return True

    def stalled_error(self) -> PartUploadError:
        """Error describing parts left unconfirmed after all workers stopped."""
        unconfirmed = sorted(self.queue.pending + list(self.queue.in_flight))
        msg = f"{self.queue.confirmed_count} of {self.queue.total} parts confirmed"
        if self.last_error:
            msg = f"{msg}; last error: {self.last_error}"
        return PartUploadError(msg, str(self.file.path), pending=unconfirmed)


# =============================================================================
# Completion Verification
# =============================================================================


def _parse(model: type[BaseModel], resp: TransportResponse, file: UploadFile, step: str):
    try:
        return model.from_response(resp)
    except ValueError as e:
        raise VerificationError(
            f"Malformed {step} response: {e}", str(file.path), response=resp
        ) from e


async def verify_session(
    send: SendFn,
    session: MultipartSession,
    headers: Mapping[str, str],
    file: UploadFile,
) -> TransportResponse:
    """Check the server received every part, then finalize the session.

    A session already marked completed is never finalized again.

    Returns:
        The finalize response.

    Raises:
        VerificationError: On a part-count mismatch, an already completed or
            unfinalized session, or a non-2xx status at either step.
        ConnectionError: If either request produced no response.
    """
    status_resp = await send(TransportRequest("GET", session.upload_link, dict(headers)))
    if not status_resp.ok:
        raise VerificationError(
            f"Session status read failed: HTTP {status_resp.status_code}",
            str(file.path),
            response=status_resp,
        )

    status: SessionStatus = _parse(SessionStatus, status_resp, file, "status")
    if status.completed:
        raise VerificationError(
            "Session already completed", str(file.path), response=status_resp
        )
    if len(status.parts) != session.part_count:
        raise VerificationError(
            f"Server reports {len(status.parts)} of {session.part_count} parts",
            str(file.path),
            response=status_resp,
        )

    finalize_resp = await send(TransportRequest("POST", session.upload_link, dict(headers)))
    if not finalize_resp.ok:
        raise VerificationError(
            f"Session finalize failed: HTTP {finalize_resp.status_code}",
            str(file.path),
            response=finalize_resp,
        )

    result: FinalizeResult = _parse(FinalizeResult, finalize_resp, file, "finalize")
    if not result.completed:
        raise VerificationError(
            "Finalize did not complete the object", str(file.path), response=finalize_resp
        )
    return finalize_resp
