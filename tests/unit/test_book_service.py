import asyncio
import uuid

import pytest

from readzy.core.exceptions import BadInputError, NotFoundError
from readzy.services.book_service import BookService, OwnerLocks, TITLE_MAX_LENGTH


@pytest.fixture
def service(book_store, fake_clock):
    return BookService(book_store, clock=fake_clock)


async def _add_books(service, owner_id, count):
    return [
        await service.add_book(owner_id, f"Book {i}", f"https://drive.example.com/{i}")
        for i in range(count)
    ]


@pytest.mark.asyncio
async def test_add_book_strips_and_starts_inactive(service, owner_id):
    book = await service.add_book(owner_id, "  Dune  ", " https://drive.example.com/dune ")

    assert book.title == "Dune"
    assert book.link == "https://drive.example.com/dune"
    assert book.owner_id == owner_id
    assert book.is_active is False
    assert book.last_read_at is None


@pytest.mark.asyncio
@pytest.mark.parametrize("title,link", [("", "https://x"), ("Dune", "   "), ("   ", "")])
async def test_add_book_requires_title_and_link(service, owner_id, title, link):
    with pytest.raises(BadInputError) as exc_info:
        await service.add_book(owner_id, title, link)
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_add_book_rejects_overlong_title(service, owner_id):
    with pytest.raises(BadInputError):
        await service.add_book(owner_id, "x" * (TITLE_MAX_LENGTH + 1), "https://x")


@pytest.mark.asyncio
async def test_mark_as_read_evicts_least_recently_read(service, book_store, owner_id, fake_clock):
    first, second, third, fourth = await _add_books(service, owner_id, 4)
    for book in (first, second, third):
        await service.mark_as_read(owner_id, book.id)

    read = await service.mark_as_read(owner_id, fourth.id)

    assert read.id == fourth.id
    assert read.is_active is True
    assert read.last_read_at == fake_clock.now - fake_clock.step
    assert book_store.active_ids(owner_id) == {second.id, third.id, fourth.id}
    evicted = book_store.books[first.id]
    assert evicted.is_active is False
    assert evicted.last_read_at is not None


@pytest.mark.asyncio
async def test_mark_as_read_of_foreign_book_is_not_found(service, book_store, owner_id):
    (book,) = await _add_books(service, owner_id, 1)

    with pytest.raises(NotFoundError):
        await service.mark_as_read(uuid.uuid4(), book.id)

    assert book_store.books[book.id].is_active is False


@pytest.mark.asyncio
async def test_mark_as_read_of_missing_book_is_not_found(service, owner_id):
    await _add_books(service, owner_id, 2)

    with pytest.raises(NotFoundError) as exc_info:
        await service.mark_as_read(owner_id, uuid.uuid4())
    assert exc_info.value.message == "Book not found"


@pytest.mark.asyncio
async def test_deleting_active_book_frees_slot_without_promotion(service, book_store, owner_id):
    books = await _add_books(service, owner_id, 4)
    for book in books:
        await service.mark_as_read(owner_id, book.id)
    assert len(book_store.active_ids(owner_id)) == 3

    assert await service.delete_book(owner_id, books[3].id) is True

    assert book_store.active_ids(owner_id) == {books[1].id, books[2].id}
    assert book_store.books[books[0].id].is_active is False


@pytest.mark.asyncio
async def test_deleting_inactive_book_leaves_active_set_alone(service, book_store, owner_id):
    books = await _add_books(service, owner_id, 3)
    await service.mark_as_read(owner_id, books[0].id)
    before = {
        book_id: book_store.books[book_id].last_read_at
        for book_id in book_store.active_ids(owner_id)
    }

    await service.delete_book(owner_id, books[2].id)

    after = {
        book_id: book_store.books[book_id].last_read_at
        for book_id in book_store.active_ids(owner_id)
    }
    assert after == before


@pytest.mark.asyncio
async def test_delete_is_idempotent(service, owner_id):
    (book,) = await _add_books(service, owner_id, 1)

    assert await service.delete_book(owner_id, book.id) is True
    assert await service.delete_book(owner_id, book.id) is False
    assert await service.delete_book(uuid.uuid4(), uuid.uuid4()) is False


@pytest.mark.asyncio
async def test_list_books_newest_first_and_active_most_recent_first(service, owner_id):
    books = await _add_books(service, owner_id, 3)
    await service.mark_as_read(owner_id, books[2].id)
    await service.mark_as_read(owner_id, books[0].id)

    listed = await service.list_books(owner_id)
    active = await service.list_active_books(owner_id)

    assert [b.id for b in listed] == [books[2].id, books[1].id, books[0].id]
    assert [b.id for b in active] == [books[0].id, books[2].id]


@pytest.mark.asyncio
async def test_books_are_scoped_per_owner(service, owner_id):
    await _add_books(service, owner_id, 2)
    other_owner = uuid.uuid4()
    await _add_books(service, other_owner, 1)

    assert len(await service.list_books(owner_id)) == 2
    assert len(await service.list_books(other_owner)) == 1


@pytest.mark.asyncio
async def test_concurrent_reads_respect_the_cap(service, book_store, owner_id):
    books = await _add_books(service, owner_id, 6)
    for book in books[:3]:
        await service.mark_as_read(owner_id, book.id)

    await asyncio.gather(*(service.mark_as_read(owner_id, book.id) for book in books[3:]))

    assert book_store.active_ids(owner_id) == {book.id for book in books[3:]}


@pytest.mark.asyncio
async def test_custom_cap(book_store, fake_clock, owner_id):
    service = BookService(book_store, max_active_books=1, clock=fake_clock)
    first, second = await _add_books(service, owner_id, 2)

    await service.mark_as_read(owner_id, first.id)
    await service.mark_as_read(owner_id, second.id)

    assert book_store.active_ids(owner_id) == {second.id}


def test_zero_cap_is_rejected(book_store):
    with pytest.raises(ValueError):
        BookService(book_store, max_active_books=0)


def test_owner_locks_are_shared_per_owner_and_released():
    locks = OwnerLocks()
    owner = uuid.uuid4()

    lock = locks.for_owner(owner)
    other = locks.for_owner(uuid.uuid4())
    assert locks.for_owner(owner) is lock
    assert other is not lock
    assert len(locks) == 2

    del lock, other
    assert len(locks) == 0
