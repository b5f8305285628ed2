"""Progress models for tracking upload status.

Provides the upload status enum, progress signals and operation summaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from mpupload.models.upload import UploadFile


class UploadStatus(Enum):
    """Lifecycle states of one file upload."""

    QUEUED = "queued"
    RESOLVING_CONFIG = "resolving-config"
    INITIATING = "initiating"
    TRANSFERRING = "transferring"
    UPLOADING = "uploading"
    VERIFYING = "verifying"
    UPLOADED = "uploaded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """True once the attempt has ended."""
        return self in (UploadStatus.UPLOADED, UploadStatus.FAILED)


@dataclass
class Progress:
    """A progress signal: ``current`` of ``total`` units in ``phase``."""

    phase: UploadStatus
    current: int = 0
    total: int = 0
    message: str = ""
    success: bool = True

    @property
    def percent(self) -> float:
        """Share of ``total`` done, 0-100."""
        if self.total == 0:
            return 0.0
        return (self.current / self.total) * 100


@dataclass
class TransferProgress(Progress):
    """Byte-level progress of a direct transfer.

    ``current``/``total`` describe the file being sent; ``aggregate_sent`` and
    ``aggregate_total`` span every direct transfer seen by the aggregator.
    """

    file_name: str = ""
    file: Optional[UploadFile] = None
    aggregate_sent: int = 0
    aggregate_total: int = 0

    @property
    def bytes_percent(self) -> float:
        """Share of all direct-transfer bytes sent, 0-100."""
        if self.aggregate_total == 0:
            return 0.0
        return (self.aggregate_sent / self.aggregate_total) * 100


@dataclass
class PartProgress(Progress):
    """Part-level progress of a multipart session (confirmed parts only)."""

    file_name: str = ""
    file: Optional[UploadFile] = None
    part_index: Optional[int] = None


@dataclass
class OperationResult:
    """Counts for a batch of files."""

    success: bool
    total: int
    succeeded: int
    failed: int
    duration: float
    errors: List[str] = field(default_factory=list)


@dataclass
class FileResult:
    """Outcome of one file upload attempt."""

    name: str
    status: UploadStatus
    size: int
    parts: Optional[int] = None
    error: str = ""

    def to_row(self) -> dict[str, object]:
        """Row for the results table."""
        return {
            "name": self.name,
            "status": self.status.value,
            "size": self.size,
            "parts": self.parts if self.parts is not None else "-",
            "error": self.error,
        }


@dataclass
class UploadSummary(OperationResult):
    """Result of one ``upload_all`` run."""

    total_size_mb: float = 0.0
    results: List[FileResult] = field(default_factory=list)

    @property
    def throughput_mbps(self) -> float:
        """MB uploaded per second of wall time."""
        if self.duration == 0:
            return 0.0
        return self.total_size_mb / self.duration
