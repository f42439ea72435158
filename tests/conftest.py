"""
Pytest configuration and shared fixtures for Readzy tests.
"""
import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from readzy.core import rate_limiting
from readzy.models.db import Book

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic millisecond clock; advances by ``step`` on every call."""

    def __init__(self, start: int = 1_000, step: int = 100):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


def _copy_book(book: Book) -> Book:
    return Book(
        id=book.id,
        owner_id=book.owner_id,
        title=book.title,
        link=book.link,
        is_active=book.is_active,
        last_read_at=book.last_read_at,
        created_at=book.created_at,
        updated_at=book.updated_at,
    )


class FakeBookStore:
    """
    In-memory stand-in for ``BookStore``.

    ``owner_books_for_update`` hands out copies and writes them back on exit,
    yielding to the event loop in between like a real database round trip. It
    does not lock anything, so serialization has to come from the service.
    """

    def __init__(self):
        self.books: Dict[uuid.UUID, Book] = {}
        self._created = 0

    async def create(self, owner_id: uuid.UUID, title: str, link: str) -> Book:
        self._created += 1
        created_at = BASE_TIME + timedelta(seconds=self._created)
        book = Book(
            id=uuid.uuid4(),
            owner_id=owner_id,
            title=title,
            link=link,
            is_active=False,
            last_read_at=None,
            created_at=created_at,
            updated_at=created_at,
        )
        self.books[book.id] = book
        return _copy_book(book)

    async def get(self, owner_id: uuid.UUID, book_id: uuid.UUID) -> Optional[Book]:
        book = self.books.get(book_id)
        if book is None or book.owner_id != owner_id:
            return None
        return _copy_book(book)

    def _owned(self, owner_id: uuid.UUID) -> List[Book]:
        return [book for book in self.books.values() if book.owner_id == owner_id]

    async def list_for_owner(self, owner_id: uuid.UUID, *, active_only: bool = False) -> List[Book]:
        books = self._owned(owner_id)
        if active_only:
            books = [book for book in books if book.is_active]
            books.sort(key=lambda b: b.last_read_at or 0, reverse=True)
        else:
            books.sort(key=lambda b: b.created_at, reverse=True)
        return [_copy_book(book) for book in books]

    async def delete(self, owner_id: uuid.UUID, book_id: uuid.UUID) -> bool:
        book = self.books.get(book_id)
        if book is None or book.owner_id != owner_id:
            return False
        del self.books[book_id]
        return True

    @asynccontextmanager
    async def owner_books_for_update(self, owner_id: uuid.UUID):
        snapshot = [_copy_book(book) for book in sorted(self._owned(owner_id), key=lambda b: b.created_at)]
        await asyncio.sleep(0)
        yield snapshot
        await asyncio.sleep(0)
        for copy in snapshot:
            stored = self.books.get(copy.id)
            if stored is not None:
                stored.is_active = copy.is_active
                stored.last_read_at = copy.last_read_at

    def active_ids(self, owner_id: uuid.UUID) -> set:
        return {book.id for book in self._owned(owner_id) if book.is_active}


class DummyUser:
    def __init__(self, user_id: uuid.UUID, name: str, email: str, is_active: bool = True):
        self.id = user_id
        self.name = name
        self.email = email
        self.is_active = is_active
        self.last_login_at = None


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def book_store():
    return FakeBookStore()


@pytest.fixture
def owner_id():
    return uuid.uuid4()


@pytest.fixture
def reader():
    return DummyUser(uuid.uuid4(), "Ann Reader", "ann@example.com")


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    rate_limiting.reset_rate_limiter()
    yield
    rate_limiting.reset_rate_limiter()


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep developer environment variables out of ``Settings()``."""
    monkeypatch.delenv("READZY_CONFIG_FILE", raising=False)
    for name in ("MAX_ACTIVE_BOOKS", "DATABASE_URL", "JWT_SECRET", "LOG_LEVEL", "LOG_JSON"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_user():
    def _make(name: str = "Reader", email: Optional[str] = None, is_active: bool = True) -> DummyUser:
        user_id = uuid.uuid4()
        return DummyUser(user_id, name, email or f"{user_id.hex[:8]}@example.com", is_active)

    return _make
