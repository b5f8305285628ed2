"""Service layer for mpupload.

Provides the upload scheduler that drives queued files to the server.
"""

from __future__ import annotations

from .uploads import (
    InMemoryQueueState,
    OperationCounter,
    QueueState,
    UploadScheduler,
    UploadTask,
)

__all__ = [
    "UploadScheduler",
    "UploadTask",
    "OperationCounter",
    "QueueState",
    "InMemoryQueueState",
]
