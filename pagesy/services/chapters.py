# services/chapters.py
from __future__ import annotations

import uuid

from fastapi_users_db_sqlalchemy.generics import GUID
from sqlalchemy import Integer, String, Text, cast, delete, exists, func, literal, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pagesy.database import dialect_insert
from pagesy.errors import BadRequest, BookNotFound, ChapterAlreadyExists, ChapterNotFound
from pagesy.models import Book, Chapter, RecentRead
from pagesy.schemas import ChapterEdit, ChapterUpload


async def book_belongs_to_user(db: AsyncSession, book_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    q = select(exists().where(Book.id == book_id, Book.author_id == user_id))
    return bool((await db.execute(q)).scalar())


def _is_duplicate_chapter_no(exc: IntegrityError) -> bool:
    # postgres names the constraint; sqlite lists its columns
    detail = str(exc.orig)
    return "uq_chapters_book_chapter_no" in detail or "chapters.book_id, chapters.chapter_no" in detail


async def insert_chapter(
    db: AsyncSession,
    book_id: uuid.UUID,
    author_id: uuid.UUID,
    chapter: ChapterUpload,
) -> uuid.UUID:
    """Insert a chapter only if ``author_id`` owns ``book_id``, in one statement.

    INSERT ... SELECT FROM books WHERE id/author match: a missing book and a
    foreign author both produce zero rows and surface as BookNotFound.
    Does not commit.
    """
    chapter_id = uuid.uuid4()
    guarded = select(
        cast(literal(chapter_id, GUID()), GUID()),
        Book.id,
        cast(literal(chapter.chapter_no), Integer),
        cast(literal(chapter.title), String),
        cast(literal(chapter.content), Text),
    ).where(Book.id == book_id, Book.author_id == author_id)

    stmt = (
        Chapter.__table__.insert()
        .from_select(["id", "book_id", "chapter_no", "title", "content"], guarded)
        .returning(Chapter.__table__.c.id)
    )
    try:
        inserted = (await db.execute(stmt)).scalar_one_or_none()
    except IntegrityError as exc:
        if _is_duplicate_chapter_no(exc):
            raise ChapterAlreadyExists() from exc
        # the book vanished between the guard and the foreign key check
        raise BookNotFound() from exc
    if inserted is None:
        raise BookNotFound()
    return inserted


async def read_book_name(db: AsyncSession, book_id: uuid.UUID) -> str:
    name = (await db.execute(select(Book.name).where(Book.id == book_id))).scalar_one_or_none()
    if name is None:
        raise BookNotFound()
    return name


async def get_chapter(db: AsyncSession, reader_id: uuid.UUID, chapter_id: uuid.UUID) -> Chapter:
    """Chapter of an approved book; also moves the reader's bookmark for that book."""
    chapter = (
        await db.execute(
            select(Chapter)
            .join(Book, Book.id == Chapter.book_id)
            .where(Chapter.id == chapter_id, Book.approved.is_(True))
        )
    ).scalars().first()
    if not chapter:
        raise ChapterNotFound()

    insert = dialect_insert(db)
    upsert = insert(RecentRead.__table__).values(
        user_id=reader_id, book_id=chapter.book_id, chapter_no=chapter.chapter_no
    )
    upsert = upsert.on_conflict_do_update(
        index_elements=["user_id", "book_id"],
        set_={"chapter_no": upsert.excluded.chapter_no, "updated_at": func.now()},
    )
    await db.execute(upsert)
    return chapter


async def edit_chapter(
    db: AsyncSession,
    author_id: uuid.UUID,
    book_id: uuid.UUID,
    chapter_id: uuid.UUID,
    edit: ChapterEdit,
) -> None:
    values = edit.model_dump(exclude_none=True)
    if not values:
        raise BadRequest("nothing to update")
    if not await book_belongs_to_user(db, book_id, author_id):
        raise BookNotFound()

    res = await db.execute(
        update(Chapter)
        .where(Chapter.id == chapter_id, Chapter.book_id == book_id)
        .values(**values)
    )
    if res.rowcount == 0:
        raise ChapterNotFound()


async def delete_chapter(
    db: AsyncSession,
    author_id: uuid.UUID,
    book_id: uuid.UUID,
    chapter_id: uuid.UUID,
) -> None:
    if not await book_belongs_to_user(db, book_id, author_id):
        raise BookNotFound()

    res = await db.execute(
        delete(Chapter).where(Chapter.id == chapter_id, Chapter.book_id == book_id)
    )
    if res.rowcount == 0:
        raise ChapterNotFound()


__all__ = [
    "book_belongs_to_user",
    "insert_chapter",
    "read_book_name",
    "get_chapter",
    "edit_chapter",
    "delete_chapter",
]
