"""Local file model for uploads."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(eq=False)
class UploadFile:
    """A local file queued for upload.

    Compared by identity: re-queuing the same object keeps its status history.
    Holds no part state; everything about an attempt lives in the scheduler.
    """

    path: Path
    name: str = ""
    size: int = field(default=-1)

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        if not self.name:
            self.name = self.path.name
        if self.size < 0:
            self.size = self.path.stat().st_size

    @classmethod
    def from_path(cls, path: str | Path) -> UploadFile:
        """Create from a filesystem path."""
        return cls(path=Path(path).expanduser())

    def read_range(self, offset: int, length: int) -> bytes:
        """Read ``length`` bytes starting at ``offset``."""
        with self.path.open("rb") as fh:
            fh.seek(offset)
            return fh.read(length)

    def read_all(self) -> bytes:
        """Read the whole file."""
        return self.path.read_bytes()

    def __repr__(self) -> str:
        return f"UploadFile(name={self.name!r}, size={self.size})"
