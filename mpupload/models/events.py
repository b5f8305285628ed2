"""Notifications emitted by the upload scheduler."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from mpupload.core.transport import TransportResponse

    from .session import MultipartSession
    from .upload import UploadFile


class EventKind(Enum):
    """Kinds of upload notifications."""

    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    FAILED = "failed"
    MULTIPART_STARTED = "multipart-started"
    FACTORY_FAILED = "factory-failed"


@dataclass
class UploadEvent:
    """A file-level notification.

    ``response`` is the transport response that decided the outcome, when there
    was one; ``error`` is set on failures.
    """

    kind: EventKind
    file: "UploadFile"
    response: Optional["TransportResponse"] = None
    error: Optional[Exception] = None
    session: Optional["MultipartSession"] = None


EventCallback = Callable[[UploadEvent], None]
