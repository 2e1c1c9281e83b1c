# services/library.py
import uuid

from sqlalchemy import delete, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from pagesy.database import dialect_insert
from pagesy.errors import BookNotFound, NotInLibrary
from pagesy.models import Book, LibraryEntry


async def list_library_subscribers(db: AsyncSession, book_id: uuid.UUID) -> list[uuid.UUID]:
    """Users who keep ``book_id`` in their library, oldest subscription first."""
    rows = await db.execute(
        select(LibraryEntry.user_id)
        .where(LibraryEntry.book_id == book_id)
        .order_by(LibraryEntry.id)
    )
    return list(rows.scalars().all())


async def list_user_library(db: AsyncSession, user_id: uuid.UUID) -> list[uuid.UUID]:
    rows = await db.execute(
        select(LibraryEntry.book_id)
        .where(LibraryEntry.user_id == user_id)
        .order_by(LibraryEntry.id)
    )
    return list(rows.scalars().all())


async def add_to_library(db: AsyncSession, user_id: uuid.UUID, book_id: uuid.UUID) -> None:
    # readers only ever see approved books
    visible = select(exists().where(Book.id == book_id, Book.approved.is_(True)))
    if not (await db.execute(visible)).scalar():
        raise BookNotFound()

    insert = dialect_insert(db)
    await db.execute(
        insert(LibraryEntry.__table__)
        .values(user_id=user_id, book_id=book_id)
        .on_conflict_do_nothing(index_elements=["user_id", "book_id"])
    )


async def remove_from_library(db: AsyncSession, user_id: uuid.UUID, book_id: uuid.UUID) -> None:
    res = await db.execute(
        delete(LibraryEntry).where(LibraryEntry.user_id == user_id, LibraryEntry.book_id == book_id)
    )
    if res.rowcount == 0:
        raise NotInLibrary()
