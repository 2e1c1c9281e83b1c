"""Notification rows for chapter releases."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pagesy.database import dialect_insert
from pagesy.models import Notification

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class NotificationRow:
    user_id: uuid.UUID
    book_id: uuid.UUID
    message: str


def rows_for_subscribers(user_ids: Sequence[uuid.UUID], book_id: uuid.UUID, message: str) -> list[NotificationRow]:
    return [NotificationRow(user_id=u, book_id=book_id, message=message) for u in user_ids]


async def insert_notifications(db: AsyncSession, rows: Sequence[NotificationRow]) -> int:
    """Insert every row in one statement, skipping rows that already exist.

    Redelivering the same batch is a no-op. Returns how many rows the
    statement was handed; the caller owns the commit.
    """
    if not rows:
        return 0
    insert = dialect_insert(db)
    stmt = insert(Notification.__table__).values([
        {"user_id": r.user_id, "book_id": r.book_id, "message": r.message}
        for r in rows
    ]).on_conflict_do_nothing(index_elements=["user_id", "book_id", "message"])
    await db.execute(stmt)
    logger.debug("insert_notifications: %d row(s) for book %s", len(rows), rows[0].book_id)
    return len(rows)


async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    limit: int = 50,
    offset: int = 0,
) -> list[Notification]:
    """Newest first."""
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


__all__ = ["NotificationRow", "rows_for_subscribers", "insert_notifications", "list_notifications"]
