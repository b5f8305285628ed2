"""Part planning for multipart uploads."""

from __future__ import annotations

from dataclasses import dataclass

from mpupload.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class PartPlan:
    """Effective part layout for one file."""

    file_size: int
    part_size: int
    part_count: int
    multipart: bool

    @property
    def last_part_size(self) -> int:
        """Size of the final part."""
        return self.file_size - self.part_size * (self.part_count - 1)


def _require_int(value: object, field: str, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{field} must be an integer", field=field, value=value)
    if value < minimum:
        raise ConfigurationError(f"{field} must be >= {minimum}", field=field, value=value)
    return value


def plan_parts(size: int, part_size: int, max_parts: int) -> PartPlan:
    """Compute the effective part size and part count for a file.

    Files smaller than one part go out as a single direct transfer. When the
    configured part size would need more than ``max_parts`` parts, the part
    size grows to ``ceil(size / max_parts)`` so the count stays within the cap.

    Args:
        size: File size in bytes.
        part_size: Configured part size in bytes.
        max_parts: Maximum number of parts the server accepts.

    Returns:
        PartPlan describing the layout.

    Raises:
        ConfigurationError: If any input is not a positive integer.
    """
    size = _require_int(size, "size", 1)
    part_size = _require_int(part_size, "part_size", 1)
    max_parts = _require_int(max_parts, "max_parts", 1)

    if size < part_size:
        return PartPlan(file_size=size, part_size=size, part_count=1, multipart=False)

    if -(-size // part_size) > max_parts:
        part_size = -(-size // max_parts)

    part_count = -(-size // part_size)
    return PartPlan(file_size=size, part_size=part_size, part_count=part_count, multipart=True)
