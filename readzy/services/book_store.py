"""
PostgreSQL-backed storage for book records.

Every query is scoped to an owner; a book owned by somebody else behaves
exactly like a book that does not exist.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from readzy.core.database import session_scope
from readzy.models.db import Book, User


class BookStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, owner_id: uuid.UUID, title: str, link: str) -> Book:
        async with session_scope(self._session_factory) as session:
            book = Book(owner_id=owner_id, title=title, link=link)
            session.add(book)
            await session.flush()
            await session.refresh(book)
            return book

    async def get(self, owner_id: uuid.UUID, book_id: uuid.UUID) -> Optional[Book]:
        async with self._session_factory() as session:
            result = await session.scalars(
                select(Book).where(Book.id == book_id, Book.owner_id == owner_id)
            )
            return result.first()

    async def list_for_owner(
        self, owner_id: uuid.UUID, *, active_only: bool = False
    ) -> List[Book]:
        stmt = select(Book).where(Book.owner_id == owner_id)
        if active_only:
            stmt = stmt.where(Book.is_active.is_(True)).order_by(
                Book.last_read_at.desc().nulls_last(), Book.created_at.desc()
            )
        else:
            stmt = stmt.order_by(Book.created_at.desc(), Book.id)
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            return list(result)

    async def delete(self, owner_id: uuid.UUID, book_id: uuid.UUID) -> bool:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                delete(Book).where(Book.id == book_id, Book.owner_id == owner_id)
            )
            return result.rowcount > 0

    @asynccontextmanager
    async def owner_books_for_update(self, owner_id: uuid.UUID) -> AsyncIterator[List[Book]]:
        """
        Yield all of an owner's books inside a transaction holding the owner's row lock.

        The ``users`` row is locked with ``SELECT ... FOR UPDATE`` so that two
        workers updating reading slots for the same owner run one after the
        other. Changes made to the yielded books are committed on exit; an
        exception rolls them back. Books come in creation order.
        """
        async with session_scope(self._session_factory) as session:
            await session.execute(
                select(User.id).where(User.id == owner_id).with_for_update()
            )
            result = await session.scalars(
                select(Book)
                .where(Book.owner_id == owner_id)
                .order_by(Book.created_at, Book.id)
            )
            yield list(result)
