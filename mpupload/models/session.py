"""Multipart session payloads returned by the object-storage API."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from .base import BaseModel


def join_query(url: str, query: str) -> str:
    """Append a raw query fragment to a URL that may already carry one."""
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{query}"


class SessionLinks(BaseModel):
    """Hypermedia links of a multipart session."""

    self_: str = Field(..., alias="self", description="Session resource URL")


class MultipartSession(BaseModel):
    """Server-side multipart session created by session initiation."""

    part_size: int = Field(..., gt=0, description="Size of every part but the last")
    last_part_number: int = Field(..., ge=0, description="Zero-based index of the last part")
    last_part_size: int = Field(..., gt=0, description="Size of the last part")
    links: SessionLinks

    @property
    def upload_link(self) -> str:
        """URL used for part uploads, status reads and finalize."""
        return self.links.self_

    @property
    def part_count(self) -> int:
        """Number of parts in the session."""
        return self.last_part_number + 1

    @property
    def total_size(self) -> int:
        """Total bytes covered by all parts."""
        return self.part_size * self.last_part_number + self.last_part_size

    def part_range(self, index: int) -> tuple[int, int]:
        """Return (offset, length) of a part's byte range.

        Raises:
            IndexError: If the index is outside the session.
        """
        if index < 0 or index > self.last_part_number:
            raise IndexError(f"Part {index} outside session (0..{self.last_part_number})")
        length = self.last_part_size if index == self.last_part_number else self.part_size
        return index * self.part_size, length

    def part_url(self, index: int) -> str:
        """URL for uploading one part."""
        return join_query(self.upload_link, f"partNumber={index}")


class SessionStatus(BaseModel):
    """Result of reading the session resource."""

    parts: list[Any] = Field(default_factory=list, description="Parts received so far")
    completed: bool = Field(False, description="Whether the object was assembled")


class FinalizeResult(BaseModel):
    """Result of the finalize request."""

    completed: bool = Field(False, description="Whether the object was assembled")
