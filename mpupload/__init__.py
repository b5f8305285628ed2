"""mpupload - A client for multipart uploads to object-storage APIs.

This package provides an upload engine and command-line interface for
sending large files to a Files-REST style server:
- Plan part sizes that fit the server's part limit
- Transfer parts concurrently and verify the assembled object
- Track progress, abort in-flight uploads and re-queue failures
"""

__version__ = "0.1.0"

from mpupload.core.config import Config, Profile
from mpupload.core.exceptions import (
    ConfigurationError,
    ConnectionError,
    MPUploadError,
    NetworkError,
    UploadAbortedError,
    UploadError,
    ValidationError,
)
from mpupload.core.transport import HttpxTransport
from mpupload.services.uploads import UploadScheduler
from mpupload.uploaders.resolver import UploadConfig

__all__ = [
    "__version__",
    "UploadScheduler",
    "UploadConfig",
    "HttpxTransport",
    "Config",
    "Profile",
    "MPUploadError",
    "ConfigurationError",
    "ConnectionError",
    "NetworkError",
    "ValidationError",
    "UploadError",
    "UploadAbortedError",
]
