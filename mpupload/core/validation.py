"""Input validation helpers for mpupload.

All validators return the normalized value or raise a ValidationError subclass.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from mpupload.core.exceptions import InvalidURLError, PathValidationError, ValidationError

# =============================================================================
# Constants
# =============================================================================

ALLOWED_SCHEMES = ("http", "https")
HEADER_NAME_PATTERN = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")
MAX_TIMEOUT = 7 * 24 * 3600


# =============================================================================
# URLs
# =============================================================================


def validate_server_url(url: str) -> str:
    """Validate and normalize an upload destination URL.

    Args:
        url: URL to validate.

    Returns:
        URL without surrounding whitespace or trailing slashes.

    Raises:
        InvalidURLError: If the URL is empty, has no host, or an unsupported scheme.
    """
    if url is None or not str(url).strip():
        raise InvalidURLError(str(url), "URL is required")

    url = str(url).strip().rstrip("/")
    parsed = urlparse(url)

    if not parsed.scheme:
        raise InvalidURLError(url, "missing scheme (http:// or https://)")
    if parsed.scheme not in ALLOWED_SCHEMES:
        raise InvalidURLError(url, f"unsupported scheme '{parsed.scheme}'")
    if not parsed.hostname:
        raise InvalidURLError(url, "missing hostname")

    return url


# =============================================================================
# Part Parameters
# =============================================================================


def _positive_int(value: Any, field: str, minimum: int) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field, value=value)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", field=field, value=value)
    if number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", field=field, value=value)
    return number


def validate_part_size(value: Any) -> int:
    """Validate a part size in bytes (must be positive)."""
    return _positive_int(value, "part_size", 1)


def validate_max_parts(value: Any) -> int:
    """Validate the maximum number of parts per session (must be >= 1)."""
    return _positive_int(value, "max_parts", 1)


def validate_workers(value: Any, *, allow_none: bool = True) -> int | None:
    """Validate a concurrency cap.

    Args:
        value: Cap value; None means unbounded.
        allow_none: Whether None is acceptable.

    Returns:
        Validated cap or None.
    """
    if value is None:
        if allow_none:
            return None
        raise ValidationError("workers is required", field="workers")
    return _positive_int(value, "workers", 1)


def validate_retries(value: Any) -> int:
    """Validate a retry count (zero disables retries)."""
    return _positive_int(value, "retries", 0)


def validate_timeout(value: Any) -> float:
    """Validate a request timeout in seconds."""
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ValidationError("timeout must be a number", field="timeout", value=value)
    if timeout <= 0 or timeout > MAX_TIMEOUT:
        raise ValidationError(
            f"timeout must be between 0 and {MAX_TIMEOUT}s", field="timeout", value=value
        )
    return timeout


# =============================================================================
# Headers
# =============================================================================


def validate_header(header: str) -> tuple[str, str]:
    """Parse a ``Name: value`` header string.

    Returns:
        Tuple of (name, value).
    """
    name, sep, value = header.partition(":")
    name = name.strip()
    if not sep or not name:
        raise ValidationError(
            "Header must look like 'Name: value'", field="header", value=header
        )
    if not HEADER_NAME_PATTERN.match(name):
        raise ValidationError(f"Invalid header name: {name}", field="header", value=header)
    return name, value.strip()


# =============================================================================
# Paths
# =============================================================================


def validate_upload_path(path: str | Path) -> Path:
    """Validate that a path points to a readable, non-empty regular file."""
    p = Path(path).expanduser()
    if not p.exists():
        raise PathValidationError(str(path), "does not exist")
    if not p.is_file():
        raise PathValidationError(str(path), "not a regular file")
    if p.stat().st_size == 0:
        raise PathValidationError(str(path), "file is empty")
    return p
