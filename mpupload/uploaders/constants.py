"""Shared constants for uploader modules.

Defaults follow the Invenio-Files-REST multipart limits. For resource-constrained
hosts, consider capping concurrent part transfers via --max-concurrent-parts.
"""

from mpupload.core.timeouts import DEFAULT_HTTP_TIMEOUT_SECONDS

# =============================================================================
# Multipart Defaults
# =============================================================================

# Part size in bytes (10 MiB)
DEFAULT_PART_SIZE = 10 * 1024 * 1024

# Maximum parts per multipart session (server-side limit)
DEFAULT_MAX_PARTS = 10000

# Concurrent part transfers per session (None = dispatch every part at once)
DEFAULT_MAX_CONCURRENT_PARTS = None

# Automatic redispatch attempts per failed part transfer
DEFAULT_PART_RETRIES = 3

# Base for exponential backoff in seconds: 2, 4, 8, ...
DEFAULT_RETRY_BACKOFF_BASE = 2

# =============================================================================
# Direct Transfer Defaults
# =============================================================================

# HTTP method for single-request uploads
DEFAULT_METHOD = "POST"

# HTTP timeout for upload requests
DEFAULT_TIMEOUT = DEFAULT_HTTP_TIMEOUT_SECONDS

