"""Logging for mpupload.

Log records go to stderr so table and JSON output on stdout stay clean.
``LogContext`` times one upload step and tags its messages with the file;
``AuditLogger`` writes one record per finished upload attempt.
"""

from __future__ import annotations

import logging
import sys
import time
from datetime import datetime
from functools import lru_cache
from typing import Any, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
AUDIT_LOGGER_NAME = "mpupload.audit"

# Third-party loggers that are chatty below WARNING
QUIET_LIBRARIES = ("httpx", "httpcore")


def setup_logging(
    level: int = logging.WARNING,
    *,
    quiet: bool = False,
    verbose: bool = False,
) -> None:
    """Configure logging for the command-line tool.

    Args:
        level: Level used when neither flag is set.
        quiet: Only errors.
        verbose: Everything down to DEBUG.
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT, stream=sys.stderr)
    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` (normally ``__name__``)."""
    return logging.getLogger(name)


class LogContext:
    """Times one operation and appends its fields to every message.

    Example:
        with LogContext("upload", logger, file="scan.tar", size=25) as ctx:
            ctx.info("uploaded in %.2fs", ctx.elapsed)

    Entering logs at DEBUG; an exception escaping the block is logged at
    ERROR with the elapsed time and then propagates.
    """

    def __init__(self, operation: str, logger: Optional[logging.Logger] = None, **fields: Any):
        self.operation = operation
        self.logger = logger or get_logger(__name__)
        self.fields = fields
        self._started: Optional[float] = None

    def __enter__(self) -> LogContext:
        self._started = time.monotonic()
        self.logger.debug("Starting %s (%s)", self.operation, self._suffix())
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is None:
            self.logger.debug("%s completed in %.2fs", self.operation, self.elapsed)
        else:
            self.logger.error("%s failed after %.2fs: %s", self.operation, self.elapsed, exc_val)

    @property
    def elapsed(self) -> float:
        """Seconds since the block was entered (0 before that)."""
        if self._started is None:
            return 0.0
        return time.monotonic() - self._started

    def _suffix(self) -> str:
        return ", ".join(f"{key}={value}" for key, value in self.fields.items())

    def log(self, level: int, message: str, *args: Any) -> None:
        self.logger.log(level, f"[{self.operation}] {message} ({self._suffix()})", *args)

    def debug(self, message: str, *args: Any) -> None:
        self.log(logging.DEBUG, message, *args)

    def info(self, message: str, *args: Any) -> None:
        self.log(logging.INFO, message, *args)


class AuditLogger:
    """Audit trail of upload attempts, one record per terminal state."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def log_upload(
        self,
        file_name: str,
        *,
        url: Optional[str] = None,
        size: Optional[int] = None,
        parts: Optional[int] = None,
        success: bool = True,
        error: Optional[str] = None,
    ) -> None:
        """Record the outcome of one upload attempt.

        Successes are logged at INFO, failures at WARNING. Fields left as
        None (``parts`` for direct transfers, ``error`` on success) are
        omitted from the record.
        """
        fields = {"url": url, "size": size, "parts": parts, "error": error or None}
        record: dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "operation": "upload",
            "file": file_name,
            "success": success,
            **{key: value for key, value in fields.items() if value is not None},
        }
        self.logger.log(logging.INFO if success else logging.WARNING, "AUDIT: %s", record)


@lru_cache(maxsize=None)
def get_audit_logger() -> AuditLogger:
    """Shared AuditLogger writing to ``mpupload.audit``."""
    return AuditLogger()
