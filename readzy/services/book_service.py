from __future__ import annotations

import asyncio
import logging
import time
import uuid
import weakref
from typing import Callable, List

from readzy.core.exceptions import BadInputError
from readzy.domain.reading import MAX_ACTIVE_BOOKS, SlotState, apply_read
from readzy.models.db import Book
from readzy.services.book_store import BookStore

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 512


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class OwnerLocks:
    """Process-local ``asyncio.Lock`` per owner; unused locks are dropped automatically."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    def for_owner(self, owner_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[owner_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


class BookService:
    """
    Book operations for an authenticated owner.

    Marking a book as read is a read-modify-write over all of the owner's
    books, so it runs under the owner's in-process lock and inside the store's
    row-locked transaction. Both are required for the active-slot cap to hold
    with concurrent requests and several worker processes.
    """

    def __init__(
        self,
        store: BookStore,
        *,
        max_active_books: int = MAX_ACTIVE_BOOKS,
        clock: Callable[[], int] = wall_clock_ms,
    ):
        if max_active_books < 1:
            raise ValueError("max_active_books must be at least 1")
        self._store = store
        self._max_active_books = max_active_books
        self._clock = clock
        self._locks = OwnerLocks()

    async def list_books(self, owner_id: uuid.UUID) -> List[Book]:
        return await self._store.list_for_owner(owner_id)

    async def list_active_books(self, owner_id: uuid.UUID) -> List[Book]:
        return await self._store.list_for_owner(owner_id, active_only=True)

    async def add_book(self, owner_id: uuid.UUID, title: str, link: str) -> Book:
        title = (title or "").strip()
        link = (link or "").strip()
        if not title or not link:
            raise BadInputError("Title and link are required")
        if len(title) > TITLE_MAX_LENGTH:
            raise BadInputError(f"Title must be at most {TITLE_MAX_LENGTH} characters")

        book = await self._store.create(owner_id, title, link)
        logger.info("Book added", extra={"owner_id": str(owner_id), "book_id": str(book.id)})
        return book

    async def delete_book(self, owner_id: uuid.UUID, book_id: uuid.UUID) -> bool:
        # Freed slots are not handed to another book.
        async with self._locks.for_owner(owner_id):
            deleted = await self._store.delete(owner_id, book_id)
        if deleted:
            logger.info("Book deleted", extra={"owner_id": str(owner_id), "book_id": str(book_id)})
        return deleted

    async def mark_as_read(self, owner_id: uuid.UUID, book_id: uuid.UUID) -> Book:
        async with self._locks.for_owner(owner_id):
            async with self._store.owner_books_for_update(owner_id) as books:
                by_id = {book.id: book for book in books}
                snapshot = [
                    SlotState(book.id, active=book.is_active, last_read_at=book.last_read_at)
                    for book in books
                ]
                # Raises BookNotFoundError (404) before anything is modified.
                outcome = apply_read(
                    snapshot,
                    book_id,
                    now=self._clock(),
                    capacity=self._max_active_books,
                )
                for change in outcome.changes:
                    book = by_id[change.book_id]
                    book.is_active = change.active
                    book.last_read_at = change.last_read_at

        if outcome.evicted is not None:
            logger.info(
                "Reading slot reassigned",
                extra={
                    "owner_id": str(owner_id),
                    "book_id": str(book_id),
                    "evicted_book_id": str(outcome.evicted.book_id),
                },
            )
        return by_id[book_id]
