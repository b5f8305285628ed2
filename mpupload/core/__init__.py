"""Core modules for mpupload."""

from mpupload.core.config import CONFIG_DIR, CONFIG_FILE, Config, Profile
from mpupload.core.exceptions import (
    ConfigurationError,
    ConnectionError,
    MissingDestinationError,
    MPUploadError,
    NetworkError,
    OperationError,
    ProfileNotFoundError,
    UploadError,
    ValidationError,
)
from mpupload.core.logging import LogContext, get_audit_logger, get_logger, setup_logging
from mpupload.core.output import (
    OutputFormat,
    console,
    print_error,
    print_json,
    print_output,
    print_success,
    print_table,
    print_warning,
)
from mpupload.core.transport import (
    HttpxTransport,
    TransportAdapter,
    TransportRequest,
    TransportResponse,
)
from mpupload.core.validation import (
    validate_header,
    validate_max_parts,
    validate_part_size,
    validate_server_url,
    validate_timeout,
    validate_upload_path,
    validate_workers,
)

__all__ = [
    # Exceptions
    "MPUploadError",
    "ConfigurationError",
    "ProfileNotFoundError",
    "MissingDestinationError",
    "ConnectionError",
    "NetworkError",
    "ValidationError",
    "OperationError",
    "UploadError",
    # Validation
    "validate_server_url",
    "validate_part_size",
    "validate_max_parts",
    "validate_header",
    "validate_timeout",
    "validate_workers",
    "validate_upload_path",
    # Config
    "Config",
    "Profile",
    "CONFIG_DIR",
    "CONFIG_FILE",
    # Transport
    "HttpxTransport",
    "TransportAdapter",
    "TransportRequest",
    "TransportResponse",
    # Output
    "OutputFormat",
    "print_output",
    "print_table",
    "print_json",
    "print_error",
    "print_warning",
    "print_success",
    "console",
    # Logging
    "get_logger",
    "get_audit_logger",
    "setup_logging",
    "LogContext",
]
