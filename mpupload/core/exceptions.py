"""Errors raised by mpupload.

Every error carries a message plus optional details; ``str()`` renders
them as ``message (key=value, ...)``. Details whose value is None are
left out.
"""

from __future__ import annotations

from typing import Any


def _details(**values: Any) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class MPUploadError(Exception):
    """Root of the mpupload error tree."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        rendered = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{self.message} ({rendered})"


class _FieldError(MPUploadError):
    """Error about one named setting or argument."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        shown = repr(value) if value is not None else None
        super().__init__(message, _details(field=field or None, value=shown))
        self.field = field
        self.value = value


# Configuration


class ConfigurationError(_FieldError):
    """Config file, profile or environment setting is missing or malformed."""


class ProfileNotFoundError(ConfigurationError):
    def __init__(self, profile: str):
        super().__init__(f"Profile not found: {profile}", field="profile", value=profile)
        self.profile = profile


class MissingDestinationError(ConfigurationError):
    """Resolved upload config has no destination URL."""

    def __init__(self, file_name: str | None = None):
        where = f" for {file_name}" if file_name else ""
        super().__init__(f"No destination URL configured{where}", field="url")
        self.file_name = file_name


# Input validation


class ValidationError(_FieldError):
    """A command-line value or path was rejected."""


class InvalidURLError(ValidationError):
    def __init__(self, url: str, reason: str = ""):
        suffix = f" - {reason}" if reason else ""
        super().__init__(f"Invalid URL: {url}{suffix}", field="url", value=url)
        self.url = url
        self.reason = reason


class PathValidationError(ValidationError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid path: {path} - {reason}", field="path", value=path)
        self.path = path
        self.reason = reason


# Transport: the request produced no HTTP response


class ConnectionError(MPUploadError):
    """Request never got an HTTP response."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message, _details(url=url))
        self.url = url


TransportError = ConnectionError


class NetworkError(ConnectionError):
    """DNS, TCP or TLS failure, or a stream broken mid-request."""

    def __init__(self, url: str, cause: str | None = None):
        reason = f": {cause}" if cause else ""
        super().__init__(f"Network error connecting to {url}{reason}", url)
        self.cause = cause


class ServerUnreachableError(ConnectionError):
    def __init__(self, url: str):
        super().__init__(f"Server unreachable: {url}", url)


class TimeoutError(ConnectionError):
    def __init__(self, url: str, timeout: float):
        super().__init__(f"Request timed out after {timeout}s: {url}", url)
        self.timeout = timeout


# Upload lifecycle


class OperationError(MPUploadError):
    """A named operation failed; the name is kept in the details."""

    def __init__(self, operation: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, {"operation": operation, **(details or {})})
        self.operation = operation


class UploadError(OperationError):
    """Uploading one file failed.

    ``response`` is the HTTP response that caused the failure, when there
    was one; its status code is copied to ``status_code`` and the details.
    """

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        details: dict[str, Any] | None = None,
        response: Any = None,
    ):
        status_code = getattr(response, "status_code", None)
        extra = _details(file=file_path or None, status=status_code)
        super().__init__("upload", message, {**(details or {}), **extra})
        self.file_path = file_path
        self.response = response
        self.status_code = status_code


class ConfigResolutionError(UploadError):
    """Resolver raised or returned no config for a file."""


class SessionInitError(UploadError):
    """Server refused to open a multipart session."""


class PartUploadError(UploadError):
    """Parts of a multipart session were never confirmed."""

    def __init__(
        self, message: str, file_path: str | None = None, pending: list[int] | None = None
    ):
        super().__init__(message, file_path, details=_details(pending_parts=pending or None))
        self.pending = pending or []


class VerificationError(UploadError):
    """Session status read or finalize did not report completion."""


class UploadAbortedError(UploadError):
    def __init__(self, file_path: str | None = None):
        super().__init__("Upload aborted", file_path)
