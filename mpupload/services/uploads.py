"""Upload scheduler.

Provides UploadScheduler, which takes files off a queue one step at a time
and drives each through:

    queued -> resolving-config -> initiating
           -> uploading (direct transfer)
           -> transferring -> verifying (multipart session)
           -> uploaded | failed

A failed file is put back on the queue (and marked failed) so a later step
can retry it. Abort cancels every request in flight and turns pending config
resolutions into failures.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Protocol, TypeVar

from mpupload.core.exceptions import (
    ConfigResolutionError,
    MissingDestinationError,
    MPUploadError,
    UploadAbortedError,
    UploadError,
)
from mpupload.core.logging import AuditLogger, LogContext, get_audit_logger
from mpupload.core.transport import (
    ProgressCallback as BytesCallback,
)
from mpupload.core.transport import (
    TransportAdapter,
    TransportRequest,
    TransportResponse,
)
from mpupload.models.events import EventCallback, EventKind, UploadEvent
from mpupload.models.progress import FileResult, UploadStatus, UploadSummary
from mpupload.models.session import MultipartSession
from mpupload.models.upload import UploadFile
from mpupload.uploaders.constants import (
    DEFAULT_MAX_CONCURRENT_PARTS,
    DEFAULT_PART_RETRIES,
    DEFAULT_RETRY_BACKOFF_BASE,
)
from mpupload.uploaders.multipart import PartUploader, initiate_session, verify_session
from mpupload.uploaders.part_queue import PartQueue
from mpupload.uploaders.planner import PartPlan, plan_parts
from mpupload.uploaders.progress import ProgressAggregator, ProgressCallback
from mpupload.uploaders.resolver import ConfigResolver, UploadConfig, as_resolver, coerce_config

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Queue State
# =============================================================================


class QueueState(Protocol):
    """Storage of queued files and their statuses."""

    def enqueue(self, file: UploadFile) -> None: ...

    def dequeue(self) -> UploadFile | None: ...

    def mark_status(self, file: UploadFile, status: UploadStatus) -> None: ...

    def list_queued(self) -> list[UploadFile]: ...


class InMemoryQueueState:
    """QueueState kept in process memory."""

    def __init__(self) -> None:
        self.queued: list[UploadFile] = []
        self.uploaded: list[UploadFile] = []
        self.statuses: dict[UploadFile, UploadStatus] = {}

    def enqueue(self, file: UploadFile) -> None:
        if file not in self.queued:
            self.queued.append(file)
        self.statuses[file] = UploadStatus.QUEUED

    def dequeue(self) -> UploadFile | None:
        if not self.queued:
            return None
        return self.queued.pop(0)

    def mark_status(self, file: UploadFile, status: UploadStatus) -> None:
        self.statuses[file] = status
        if status == UploadStatus.UPLOADED and file not in self.uploaded:
            self.uploaded.append(file)

    def list_queued(self) -> list[UploadFile]:
        return list(self.queued)

    def status_of(self, file: UploadFile) -> UploadStatus | None:
        return self.statuses.get(file)


# =============================================================================
# Per-file Task
# =============================================================================


class OperationCounter:
    """Counts outstanding asynchronous operations of one upload."""

    def __init__(self) -> None:
        self.count = 0
        self.started = 0

    @contextmanager
    def hold(self, name: str) -> Iterator[None]:
        self.count += 1
        self.started += 1
        logger.debug("operation %s started (%d outstanding)", name, self.count)
        try:
            yield
        finally:
            self.count -= 1

    @property
    def idle(self) -> bool:
        return self.count == 0


@dataclass(eq=False)
class UploadTask:
    """State of one file's upload attempt."""

    file: UploadFile
    status: UploadStatus = UploadStatus.QUEUED
    config: UploadConfig | None = None
    plan: PartPlan | None = None
    session: MultipartSession | None = None
    parts: PartQueue | None = None
    response: TransportResponse | None = None
    error: Exception | None = None
    aborted: bool = False
    handles: set[asyncio.Future] = field(default_factory=set)
    operations: OperationCounter = field(default_factory=OperationCounter)

    @property
    def is_terminal(self) -> bool:
        """True once the outcome is decided and nothing is outstanding."""
        return self.status.is_terminal and self.operations.idle

    def cancel_handles(self) -> int:
        """Cancel every request in flight; return how many were cancelled."""
        self.aborted = True
        handles = list(self.handles)
        for handle in handles:
            handle.cancel()
        return len(handles)


# =============================================================================
# Scheduler
# =============================================================================


class UploadScheduler:
    """Drives queued files through direct or multipart uploads.

    Example:
        async with HttpxTransport() as transport:
            scheduler = UploadScheduler(transport, defaults=UploadConfig(url=url))
            scheduler.add_files(["scan.tar"])
            summary = await scheduler.upload_all()
    """

    def __init__(
        self,
        transport: TransportAdapter,
        *,
        resolver: ConfigResolver | UploadConfig | dict[str, Any] | None = None,
        defaults: UploadConfig | None = None,
        queue_state: QueueState | None = None,
        event_callback: EventCallback | None = None,
        progress_callback: ProgressCallback | None = None,
        max_concurrent_parts: int | None = DEFAULT_MAX_CONCURRENT_PARTS,
        part_retries: int = DEFAULT_PART_RETRIES,
        retry_backoff_base: float = DEFAULT_RETRY_BACKOFF_BASE,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self.transport = transport
        self.resolver = as_resolver(resolver)
        self.defaults = defaults or UploadConfig()
        self.queue_state: QueueState = queue_state or InMemoryQueueState()
        self.event_callback = event_callback
        self.progress = ProgressAggregator(progress_callback)
        self.max_concurrent_parts = max_concurrent_parts
        self.part_retries = part_retries
        self.retry_backoff_base = retry_backoff_base
        self.audit = audit_logger or get_audit_logger()

        self._active: list[UploadTask] = []
        self._pending_resolutions: set[asyncio.Future] = set()
        self._abort_pending = False

    # -------------------------------------------------------------------------
    # Queue
    # -------------------------------------------------------------------------

    def enqueue(self, file: UploadFile) -> UploadFile:
        """Add a file to the queue."""
        self.queue_state.enqueue(file)
        return file

    def add_files(self, paths: Iterable[str | Path | UploadFile]) -> list[UploadFile]:
        """Queue local files by path."""
        files = []
        for item in paths:
            file = item if isinstance(item, UploadFile) else UploadFile.from_path(item)
            files.append(self.enqueue(file))
        return files

    @property
    def active_tasks(self) -> list[UploadTask]:
        """Tasks started by this scheduler that are not terminal yet."""
        return [t for t in self._active if not t.is_terminal]

    @property
    def is_uploading(self) -> bool:
        """True while any upload has outstanding operations."""
        return bool(self.active_tasks)

    @property
    def is_busy(self) -> bool:
        """True while any config resolution is outstanding."""
        return bool(self._pending_resolutions)

    @property
    def can_upload(self) -> bool:
        """True if a step would start a file."""
        return bool(self.queue_state.list_queued()) and not self._abort_pending

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def upload(self) -> UploadTask | None:
        """Take the next queued file and run it to a terminal state.

        Returns:
            The finished task, or None if nothing was started.
        """
        if self._abort_pending:
            logger.debug("Abort pending; not starting a new upload")
            return None

        file = self.queue_state.dequeue()
        if file is None:
            return None

        task = UploadTask(file)
        self._active.append(task)
        try:
            await self._run(task)
        finally:
            self._active.remove(task)
        return task

    async def upload_all(self) -> UploadSummary:
        """Run one step for every file currently queued.

        Files that fail are re-queued but not retried within this call.
        """
        start = time.time()
        results: list[FileResult] = []
        for _ in range(len(self.queue_state.list_queued())):
            task = await self.upload()
            if task is None:
                break
            results.append(
                FileResult(
                    name=task.file.name,
                    status=task.status,
                    size=task.file.size,
                    parts=task.session.part_count if task.session else None,
                    error=str(task.error) if task.error else "",
                )
            )

        succeeded = sum(1 for r in results if r.status == UploadStatus.UPLOADED)
        failed = len(results) - succeeded
        total_bytes = sum(r.size for r in results if r.status == UploadStatus.UPLOADED)
        return UploadSummary(
            success=failed == 0,
            total=len(results),
            succeeded=succeeded,
            failed=failed,
            duration=time.time() - start,
            errors=[f"{r.name}: {r.error}" for r in results if r.error],
            total_size_mb=total_bytes / (1024 * 1024),
            results=results,
        )

    def abort(self) -> None:
        """Cancel all in-flight requests and fail pending config resolutions."""
        cancelled = sum(task.cancel_handles() for task in self._active)
        if self._pending_resolutions:
            self._abort_pending = True
        logger.warning(
            "Abort requested: %d request(s) cancelled, %d resolution(s) pending",
            cancelled,
            len(self._pending_resolutions),
        )

    def abort_file(self, file: UploadFile) -> bool:
        """Cancel the in-flight requests of one file.

        Returns:
            True if the file had an active upload.
        """
        for task in self._active:
            if task.file is file:
                task.cancel_handles()
                return True
        return False

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _run(self, task: UploadTask) -> None:
        file = task.file
        with LogContext("upload", logger, file=file.name, size=file.size) as ctx:
            self._set_status(task, UploadStatus.RESOLVING_CONFIG)
            try:
                config = await self._resolve_config(task)
            except MPUploadError as e:
                self._fail(task, e, kind=EventKind.FACTORY_FAILED)
                return

            task.config = config
            try:
                if not config.url:
                    raise MissingDestinationError(file.name)

                self._set_status(task, UploadStatus.INITIATING)
                task.plan = plan_parts(file.size, config.part_size, config.max_parts)
                ctx.debug(
                    "planned %d part(s) of %d bytes", task.plan.part_count, task.plan.part_size
                )

                if task.plan.multipart:
                    task.response = await self._multipart_upload(task)
                else:
                    task.response = await self._direct_upload(task)
            except MPUploadError as e:
                self._fail(task, e)
                return
            except Exception as e:
                error = UploadError(f"Upload failed: {e}", str(file.path))
                error.__cause__ = e
                self._fail(task, error)
                return

            self._succeed(task)
            ctx.info("uploaded in %.2fs", ctx.elapsed)

    async def _resolve_config(self, task: UploadTask) -> UploadConfig:
        file = task.file
        try:
            result = self.resolver(file)
        except MPUploadError:
            raise
        except Exception as e:
            raise ConfigResolutionError(f"Config resolver failed: {e}", str(file.path)) from e

        if inspect.isawaitable(result):
            future = asyncio.ensure_future(result)
            self._pending_resolutions.add(future)
            try:
                with task.operations.hold("resolve-config"):
                    result = await future
            except MPUploadError:
                raise
            except Exception as e:
                raise ConfigResolutionError(
                    f"Config resolver failed: {e}", str(file.path)
                ) from e
            finally:
                self._pending_resolutions.discard(future)
                aborted = self._abort_pending
                if not self._pending_resolutions:
                    self._abort_pending = False

            if aborted:
                raise UploadAbortedError(str(file.path))

        try:
            return coerce_config(result, self.defaults, file)
        except MPUploadError:
            raise
        except Exception as e:
            raise ConfigResolutionError(f"Config override failed: {e}", str(file.path)) from e

    async def _direct_upload(self, task: UploadTask) -> TransportResponse:
        file, config = task.file, task.config
        assert config is not None

        self._set_status(task, UploadStatus.UPLOADING)
        self._emit(EventKind.UPLOADING, task)

        tracker = self.progress.track(file)
        try:
            body = await asyncio.to_thread(file.read_all)
            resp = await self._send(
                task,
                TransportRequest(config.method, config.url, dict(config.headers), body),
                on_progress=tracker.update,
            )
        except OSError as e:
            tracker.discard()
            raise UploadError(f"Cannot read file: {e}", str(file.path)) from e
        except Exception:
            tracker.discard()
            raise

        # Redirects count as delivered
        if not 200 <= resp.status_code < 400:
            tracker.discard()
            raise UploadError(
                f"Upload failed: HTTP {resp.status_code}", str(file.path), response=resp
            )

        tracker.finish()
        return resp

    async def _multipart_upload(self, task: UploadTask) -> TransportResponse:
        file, config, plan = task.file, task.config, task.plan
        assert config is not None and plan is not None

        send = partial(self._send, task)
        session, _ = await initiate_session(send, config.url, config.headers, plan, file)
        task.session = session
        self._emit(EventKind.MULTIPART_STARTED, task)

        self._set_status(task, UploadStatus.TRANSFERRING)
        self._emit(EventKind.UPLOADING, task)

        uploader = PartUploader(
            file,
            session,
            send,
            headers=config.headers,
            on_confirmed=partial(self.progress.part_confirmed, file),
            max_concurrent=self.max_concurrent_parts,
            retries=self.part_retries,
            backoff_base=self.retry_backoff_base,
            sleep=partial(self._backoff, task),
        )
        task.parts = uploader.queue
        if not await uploader.run():
            raise uploader.stalled_error()

        self._set_status(task, UploadStatus.VERIFYING)
        return await verify_session(send, session, config.headers, file)

    async def _send(
        self,
        task: UploadTask,
        request: TransportRequest,
        on_progress: BytesCallback | None = None,
    ) -> TransportResponse:
        """Send one request as a cancellable handle owned by ``task``."""
        if task.aborted:
            raise UploadAbortedError(str(task.file.path))

        with task.operations.hold(f"{request.method} {request.url}"):
            return await self._await_handle(task, self.transport.send(request, on_progress))

    async def _backoff(self, task: UploadTask, delay: float) -> None:
        """Retry delay that abort() cuts short."""
        if task.aborted:
            raise UploadAbortedError(str(task.file.path))
        await self._await_handle(task, asyncio.sleep(delay))

    async def _await_handle(self, task: UploadTask, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` as a handle that cancel_handles() can cancel.

        Cancellation through the handle becomes UploadAbortedError;
        cancellation of the caller itself propagates.
        """
        handle = asyncio.ensure_future(awaitable)
        task.handles.add(handle)
        try:
            return await handle
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            raise UploadAbortedError(str(task.file.path)) from None
        finally:
            task.handles.discard(handle)

    def _set_status(self, task: UploadTask, status: UploadStatus) -> None:
        task.status = status
        self.queue_state.mark_status(task.file, status)

    def _emit(
        self,
        kind: EventKind,
        task: UploadTask,
        *,
        response: TransportResponse | None = None,
        error: Exception | None = None,
    ) -> None:
        if self.event_callback:
            self.event_callback(
                UploadEvent(kind, task.file, response=response, error=error, session=task.session)
            )

    def _succeed(self, task: UploadTask) -> None:
        self._set_status(task, UploadStatus.UPLOADED)
        self._emit(EventKind.UPLOADED, task, response=task.response)
        self.audit.log_upload(
            task.file.name,
            url=task.config.url if task.config else None,
            size=task.file.size,
            parts=task.session.part_count if task.session else None,
        )

    def _fail(
        self,
        task: UploadTask,
        error: MPUploadError,
        kind: EventKind = EventKind.FAILED,
    ) -> None:
        logger.error("%s: %s", task.file.name, error)
        task.error = error
        task.response = getattr(error, "response", None)
        self.queue_state.enqueue(task.file)
        self._set_status(task, UploadStatus.FAILED)
        self._emit(kind, task, response=task.response, error=error)
        self.audit.log_upload(
            task.file.name,
            url=task.config.url if task.config else None,
            size=task.file.size,
            parts=task.session.part_count if task.session else None,
            success=False,
            error=str(error),
        )
