"""
Active reading-slot policy.

A user may have at most ``MAX_ACTIVE_BOOKS`` books marked as "currently
reading". Marking another book as read activates it and, when the cap is
exceeded, deactivates the least-recently-read active book.

Everything in this module is pure: callers pass in a snapshot of one owner's
books together with the current instant and persist the returned changes
themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Hashable, Iterable, Optional, Tuple

from readzy.core.exceptions import NotFoundError

MAX_ACTIVE_BOOKS = 3


class BookNotFoundError(NotFoundError):
    """Raised when the book being read is not among the owner's books."""

    def __init__(self, book_id: Hashable):
        self.book_id = book_id
        super().__init__("Book not found")


@dataclass(frozen=True)
class SlotState:
    """The slot-relevant part of a book record."""

    book_id: Hashable
    active: bool = False
    last_read_at: Optional[int] = None


@dataclass(frozen=True)
class ReadOutcome:
    """Result of one read: the updated records and the activated and evicted books."""

    records: Tuple[SlotState, ...]
    activated: SlotState
    evicted: Optional[SlotState] = None

    @property
    def changes(self) -> Tuple[SlotState, ...]:
        """Records whose state differs from the input: the activated book and the evicted one, if any."""
        if self.evicted is None:
            return (self.activated,)
        return (self.activated, self.evicted)

    @property
    def active_records(self) -> Tuple[SlotState, ...]:
        return tuple(record for record in self.records if record.active)


def _recency(record: SlotState) -> int:
    # Active rows without a stamp predate stamping; treat them as oldest.
    return record.last_read_at if record.last_read_at is not None else -1


def find_least_recent(records: Iterable[SlotState]) -> Optional[SlotState]:
    """Return the record with the oldest ``last_read_at``; the first one wins ties."""
    return min(records, key=_recency, default=None)


def apply_read(
    records: Iterable[SlotState],
    target_id: Hashable,
    *,
    now: int,
    capacity: int = MAX_ACTIVE_BOOKS,
) -> ReadOutcome:
    """
    Mark ``target_id`` as read and enforce the active-slot cap.

    Args:
        records: Every book of a single owner, in a stable order. The order
            breaks ties between equal ``last_read_at`` values.
        target_id: Identifier of the book being read.
        now: Current instant in milliseconds since the epoch.
        capacity: Maximum number of simultaneously active books.

    Returns:
        A ``ReadOutcome`` with the full updated record set and the changed
        records.

    Raises:
        BookNotFoundError: ``target_id`` is not in ``records``.
        ValueError: ``records`` holds the same identifier twice.
    """
    if capacity < 1:
        raise ValueError("capacity must be at least 1")

    snapshot = list(records)
    seen = set()
    target_index = None
    for index, record in enumerate(snapshot):
        if record.book_id in seen:
            raise ValueError(f"duplicate book id in record set: {record.book_id!r}")
        seen.add(record.book_id)
        if record.book_id == target_id:
            target_index = index

    if target_index is None:
        raise BookNotFoundError(target_id)

    target = snapshot[target_index]
    stamp = now
    if target.last_read_at is not None and target.last_read_at > stamp:
        stamp = target.last_read_at
    activated = replace(target, active=True, last_read_at=stamp)
    snapshot[target_index] = activated

    evicted = None
    active = [record for record in snapshot if record.active]
    if len(active) > capacity:
        # The target is never the victim, even when a tie or a lagging clock
        # leaves it with the oldest stamp.
        candidate = find_least_recent(r for r in active if r.book_id != target_id)
        if candidate is not None:
            evicted = replace(candidate, active=False)
            snapshot[snapshot.index(candidate)] = evicted

    return ReadOutcome(records=tuple(snapshot), activated=activated, evicted=evicted)
