"""Chapter upload: commit, enqueue the notification fan-out, push to live clients."""
from __future__ import annotations

import logging
import uuid
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pagesy.errors import PagesyError, TransientError
from pagesy.hub import EventHub, chapter_uploaded_event
from pagesy.schemas import ChapterUpload, ChapterUploadedEnvelope
from pagesy.services.chapters import insert_chapter, read_book_name

logger = logging.getLogger(__name__)


class EnvelopePublisher(Protocol):
    async def publish(self, envelope: ChapterUploadedEnvelope) -> None: ...


def release_message(book_name: str, chapter_no: int) -> str:
    return f"{book_name} chapter {chapter_no}"


async def upload_chapter(
    db: AsyncSession,
    publisher: EnvelopePublisher,
    hub: EventHub,
    *,
    book_id: uuid.UUID,
    actor_id: uuid.UUID,
    chapter: ChapterUpload,
) -> uuid.UUID:
    """Create a chapter of ``book_id`` on behalf of its author ``actor_id``.

    1. Guarded insert and book-name read in one transaction; nothing is
       published if this fails.
    2. Publish ``{BookID, Message}`` to ``book.chapter_uploaded``. A failure
       here raises TransientError with the chapter already committed.
    3. Hand a CHAPTER_UPLOADED event to the hub; best-effort, never raises.
    """
    try:
        chapter_id = await insert_chapter(db, book_id, actor_id, chapter)
        book_name = await read_book_name(db, book_id)
        await db.commit()
    except PagesyError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("upload_chapter: transaction failed for book %s", book_id)
        raise TransientError("error uploading chapter") from exc

    message = release_message(book_name, chapter.chapter_no)
    logger.info("chapter %s uploaded to book %s (%s)", chapter_id, book_id, message)

    try:
        await publisher.publish(ChapterUploadedEnvelope(BookID=book_id, Message=message))
    except TransientError:
        logger.error("upload_chapter: chapter %s committed but its event was not published", chapter_id)
        raise

    if not hub.publish(chapter_uploaded_event(str(book_id), message, author_id=str(actor_id))):
        logger.warning("upload_chapter: live push skipped for chapter %s", chapter_id)

    return chapter_id


__all__ = ["EnvelopePublisher", "release_message", "upload_chapter"]
