"""Upload building blocks for mpupload.

This module provides the pieces the scheduler is assembled from:
- Part planning (size/count fitting under a server part limit)
- Part bookkeeping (pending stack, in-flight set, confirmed list)
- The multipart session protocol (initiate, transfer parts, verify)
- Progress aggregation and per-file config resolution

These are internal implementation details. Use `UploadScheduler` from
`mpupload.services.uploads` as the public API.
"""

from mpupload.uploaders.constants import (
    DEFAULT_MAX_CONCURRENT_PARTS,
    DEFAULT_MAX_PARTS,
    DEFAULT_METHOD,
    DEFAULT_PART_RETRIES,
    DEFAULT_PART_SIZE,
    DEFAULT_RETRY_BACKOFF_BASE,
    DEFAULT_TIMEOUT,
)
from mpupload.uploaders.multipart import (
    PartUploader,
    initiate_session,
    initiate_url,
    verify_session,
)
from mpupload.uploaders.part_queue import PartDescriptor, PartQueue, PartState
from mpupload.uploaders.planner import PartPlan, plan_parts
from mpupload.uploaders.progress import ByteTracker, ProgressAggregator
from mpupload.uploaders.resolver import (
    ConfigResolver,
    UploadConfig,
    as_resolver,
    coerce_config,
    normalize_headers,
)

__all__ = [
    # Constants
    "DEFAULT_MAX_CONCURRENT_PARTS",
    "DEFAULT_MAX_PARTS",
    "DEFAULT_METHOD",
    "DEFAULT_PART_RETRIES",
    "DEFAULT_PART_SIZE",
    "DEFAULT_RETRY_BACKOFF_BASE",
    "DEFAULT_TIMEOUT",
    # Planning
    "PartPlan",
    "plan_parts",
    # Part bookkeeping
    "PartDescriptor",
    "PartQueue",
    "PartState",
    # Session protocol
    "PartUploader",
    "initiate_session",
    "initiate_url",
    "verify_session",
    # Progress
    "ByteTracker",
    "ProgressAggregator",
    # Config
    "ConfigResolver",
    "UploadConfig",
    "as_resolver",
    "coerce_config",
    "normalize_headers",
]
