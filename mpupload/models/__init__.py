"""Data models for mpupload.

Provides Pydantic models for server payloads and dataclasses for local files,
progress tracking and notifications.
"""

from __future__ import annotations

from .base import BaseModel
from .events import EventCallback, EventKind, UploadEvent
from .progress import (
    FileResult,
    OperationResult,
    PartProgress,
    Progress,
    TransferProgress,
    UploadStatus,
    UploadSummary,
)
from .session import FinalizeResult, MultipartSession, SessionLinks, SessionStatus
from .upload import UploadFile

__all__ = [
    # Base
    "BaseModel",
    # Server payloads
    "MultipartSession",
    "SessionLinks",
    "SessionStatus",
    "FinalizeResult",
    # Local files
    "UploadFile",
    # Progress
    "UploadStatus",
    "Progress",
    "TransferProgress",
    "PartProgress",
    "OperationResult",
    "FileResult",
    "UploadSummary",
    # Events
    "EventKind",
    "UploadEvent",
    "EventCallback",
]
