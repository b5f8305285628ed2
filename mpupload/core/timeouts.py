"""Shared timeout defaults for HTTP operations."""

# Per-request timeout for upload requests (a single part can be large)
DEFAULT_HTTP_TIMEOUT_SECONDS = 3600

# Connect timeout, kept short so unreachable servers fail fast
DEFAULT_CONNECT_TIMEOUT_SECONDS = 30
