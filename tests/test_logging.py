"""Tests for mpupload.core.logging module."""

from __future__ import annotations

import logging

import pytest

from mpupload.core.logging import AUDIT_LOGGER_NAME, AuditLogger, LogContext, get_audit_logger


class TestLogContext:
    """Tests for LogContext."""

    def test_messages_carry_context(self, caplog: pytest.LogCaptureFixture):
        logger = logging.getLogger("mpupload.test")

        with caplog.at_level(logging.INFO, logger="mpupload.test"):
            with LogContext("upload", logger, file="scan.tar", size=25) as ctx:
                ctx.info("sent %d parts", 3)

        assert "[upload] sent 3 parts (file=scan.tar, size=25)" in caplog.text

    def test_failure_is_logged_and_propagates(self, caplog: pytest.LogCaptureFixture):
        logger = logging.getLogger("mpupload.test")

        with caplog.at_level(logging.ERROR, logger="mpupload.test"):
            with pytest.raises(ValueError):
                with LogContext("upload", logger):
                    raise ValueError("boom")

        assert "upload failed after" in caplog.text
        assert "boom" in caplog.text

    def test_elapsed_before_enter(self):
        assert LogContext("upload").elapsed == 0.0


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_success_record(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger=AUDIT_LOGGER_NAME):
            get_audit_logger().log_upload("scan.tar", url="https://files.example.org", size=25, parts=3)

        (record,) = caplog.records
        assert record.levelno == logging.INFO
        assert "'file': 'scan.tar'" in record.getMessage()
        assert "'parts': 3" in record.getMessage()

    def test_failure_record(self, caplog: pytest.LogCaptureFixture):
        audit = AuditLogger(logging.getLogger("mpupload.audit.test"))

        with caplog.at_level(logging.INFO, logger="mpupload.audit.test"):
            audit.log_upload("scan.tar", success=False, error="Upload aborted")

        (record,) = caplog.records
        assert record.levelno == logging.WARNING
        assert "'success': False" in record.getMessage()
        assert "'error': 'Upload aborted'" in record.getMessage()
        assert "parts" not in record.getMessage()
