"""Progress accounting for uploads.

Two separate signals are produced:

- ``TransferProgress`` for direct transfers, at byte granularity. Bytes are
  clamped to each transfer's declared size and finished transfers are folded
  into a running offset, so the aggregate over sequential files never goes
  backwards while they succeed.
- ``PartProgress`` for multipart sessions, at whole-part granularity. A part
  counts only once the server confirmed it.
"""

from __future__ import annotations

from collections.abc import Callable

from mpupload.models.progress import PartProgress, Progress, TransferProgress, UploadStatus
from mpupload.models.upload import UploadFile

ProgressCallback = Callable[[Progress], None]


class ByteTracker:
    """Byte counter for one direct transfer."""

    def __init__(self, aggregator: ProgressAggregator, file: UploadFile) -> None:
        self._aggregator = aggregator
        self.file = file
        self.declared = file.size
        self.loaded = 0
        self.closed = False

    def update(self, loaded: int) -> None:
        """Record cumulative bytes sent as reported by the transport."""
        if self.closed:
            return
        loaded = max(0, min(self.declared, loaded))
        delta = loaded - self.loaded
        if delta <= 0:
            return
        self.loaded = loaded
        self._aggregator._in_flight += delta
        self._aggregator._emit_bytes(self, UploadStatus.UPLOADING)

    def finish(self) -> None:
        """Fold the whole declared size into the running offset."""
        if self.closed:
            return
        self.closed = True
        self._aggregator._in_flight -= self.loaded
        self._aggregator._offset += self.declared
        self.loaded = self.declared
        self._aggregator._emit_bytes(self, UploadStatus.UPLOADED)

    def discard(self) -> None:
        """Withdraw this transfer's bytes after a failure."""
        if self.closed:
            return
        self.closed = True
        self._aggregator._in_flight -= self.loaded
        self._aggregator._total -= self.declared
        self._aggregator._emit_bytes(self, UploadStatus.FAILED)


class ProgressAggregator:
    """Converts raw counters into progress signals."""

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self.callback = callback
        self._offset = 0
        self._in_flight = 0
        self._total = 0

    @property
    def uploaded_bytes(self) -> int:
        """Bytes of finished direct transfers plus bytes of ones in flight."""
        return self._offset + self._in_flight

    @property
    def total_bytes(self) -> int:
        """Declared bytes of every direct transfer not discarded."""
        return self._total

    def track(self, file: UploadFile) -> ByteTracker:
        """Start tracking a direct transfer of ``file``."""
        self._total += file.size
        return ByteTracker(self, file)

    def _emit_bytes(self, tracker: ByteTracker, phase: UploadStatus) -> None:
        self._report(
            TransferProgress(
                phase=phase,
                current=tracker.loaded,
                total=tracker.declared,
                file_name=tracker.file.name,
                file=tracker.file,
                aggregate_sent=self.uploaded_bytes,
                aggregate_total=self.total_bytes,
                success=phase != UploadStatus.FAILED,
            )
        )

    def part_confirmed(self, file: UploadFile, index: int, confirmed: int, total: int) -> None:
        """Report a confirmed part of a multipart session."""
        self._report(
            PartProgress(
                phase=UploadStatus.TRANSFERRING,
                current=confirmed,
                total=total,
                file_name=file.name,
                file=file,
                part_index=index,
                message=f"Part {index} confirmed ({confirmed}/{total})",
            )
        )

    def _report(self, progress: Progress) -> None:
        """Invoke the progress callback if provided."""
        if self.callback:
            self.callback(progress)
