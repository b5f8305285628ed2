"""Bookkeeping of part indices for one multipart session."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class PartState(Enum):
    """Where a part index currently sits."""

    PENDING = "pending"
    IN_FLIGHT = "in-flight"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class PartDescriptor:
    """Snapshot of one part."""

    index: int
    offset: int
    length: int
    state: PartState


class PartQueue:
    """Pending stack, in-flight set and confirmed list of a session's parts.

    Every index 0..total-1 is in exactly one of the three collections. Pending
    indices pop highest first; a requeued index goes back on top.
    """

    def __init__(self, total: int) -> None:
        if total < 1:
            raise ValueError(f"A session needs at least one part, got {total}")
        self.total = total
        self._pending: list[int] = list(range(total))
        self._in_flight: set[int] = set()
        self._confirmed: list[int] = []

    def take(self) -> int | None:
        """Pop the next pending index and mark it in flight.

        Returns:
            The index, or None when nothing is pending.
        """
        if not self._pending:
            return None
        index = self._pending.pop()
        self._in_flight.add(index)
        return index

    def requeue(self, index: int) -> None:
        """Return a failed in-flight index to the top of the pending stack."""
        self._leave_in_flight(index)
        self._pending.append(index)

    def confirm(self, index: int) -> None:
        """Record an in-flight index as uploaded."""
        self._leave_in_flight(index)
        self._confirmed.append(index)

    def _leave_in_flight(self, index: int) -> None:
        if index not in self._in_flight:
            raise ValueError(f"Part {index} is not in flight")
        self._in_flight.remove(index)

    def is_complete(self) -> bool:
        """True once every part is confirmed."""
        return len(self._confirmed) == self.total

    def state_of(self, index: int) -> PartState:
        """Return which collection holds ``index``."""
        if index in self._in_flight:
            return PartState.IN_FLIGHT
        if index in self._pending:
            return PartState.PENDING
        if index in self._confirmed:
            return PartState.CONFIRMED
        raise ValueError(f"Part {index} outside session (0..{self.total - 1})")

    def snapshot(self, part_range: Callable[[int], tuple[int, int]]) -> list[PartDescriptor]:
        """Describe every part, ordered by index.

        Args:
            part_range: Maps an index to its (offset, length).
        """
        parts = []
        for index in range(self.total):
            offset, length = part_range(index)
            parts.append(PartDescriptor(index, offset, length, self.state_of(index)))
        return parts

    @property
    def pending(self) -> list[int]:
        """Pending indices, next to be taken first."""
        return list(reversed(self._pending))

    @property
    def in_flight(self) -> set[int]:
        return set(self._in_flight)

    @property
    def confirmed(self) -> list[int]:
        """Confirmed indices in confirmation order."""
        return list(self._confirmed)

    @property
    def confirmed_count(self) -> int:
        return len(self._confirmed)

    def __repr__(self) -> str:
        return (
            f"PartQueue(total={self.total}, pending={len(self._pending)}, "
            f"in_flight={len(self._in_flight)}, confirmed={len(self._confirmed)})"
        )
