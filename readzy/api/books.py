from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from readzy.core.dependencies import get_book_service, get_current_user
from readzy.core.exceptions import NotFoundError
from readzy.models.db import Book, User
from readzy.services.book_service import BookService

router = APIRouter()


def _parse_book_id(value: str) -> uuid.UUID:
    # An id that cannot exist is reported the same way as a missing one.
    try:
        return uuid.UUID(value)
    except ValueError:
        raise NotFoundError("Book not found")


class BookCreateRequest(BaseModel):
    title: str = ""
    link: str = ""


class BookResponse(BaseModel):
    id: str
    owner_id: str
    title: str
    link: str
    active: bool
    last_read_at: Optional[int]
    created_at: str

    @classmethod
    def from_model(cls, book: Book) -> "BookResponse":
        return cls(
            id=str(book.id),
            owner_id=str(book.owner_id),
            title=book.title,
            link=book.link,
            active=book.is_active,
            last_read_at=book.last_read_at,
            created_at=book.created_at.isoformat(),
        )


class MessageResponse(BaseModel):
    message: str


@router.get("/books", response_model=List[BookResponse])
async def list_books(
    current_user: User = Depends(get_current_user),
    book_service: BookService = Depends(get_book_service),
):
    books = await book_service.list_books(current_user.id)
    return [BookResponse.from_model(book) for book in books]


@router.get("/books/active", response_model=List[BookResponse])
async def list_active_books(
    current_user: User = Depends(get_current_user),
    book_service: BookService = Depends(get_book_service),
):
    books = await book_service.list_active_books(current_user.id)
    return [BookResponse.from_model(book) for book in books]


@router.post("/books", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def add_book(
    request: BookCreateRequest,
    current_user: User = Depends(get_current_user),
    book_service: BookService = Depends(get_book_service),
):
    book = await book_service.add_book(current_user.id, request.title, request.link)
    return BookResponse.from_model(book)


@router.post("/books/{book_id}/read", response_model=BookResponse)
async def mark_book_as_read(
    book_id: str,
    current_user: User = Depends(get_current_user),
    book_service: BookService = Depends(get_book_service),
):
    book = await book_service.mark_as_read(current_user.id, _parse_book_id(book_id))
    return BookResponse.from_model(book)


@router.delete("/books/{book_id}", response_model=MessageResponse)
async def delete_book(
    book_id: str,
    current_user: User = Depends(get_current_user),
    book_service: BookService = Depends(get_book_service),
):
    try:
        parsed = uuid.UUID(book_id)
    except ValueError:
        # Nothing to delete; deletion is idempotent.
        return MessageResponse(message="Book deleted")
    await book_service.delete_book(current_user.id, parsed)
    return MessageResponse(message="Book deleted")
