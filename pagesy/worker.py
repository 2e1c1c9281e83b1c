"""Notification worker: turns ``book.chapter_uploaded`` messages into notification rows.

Run with ``pagesy-worker`` (or ``python -m pagesy.worker``). Every delivery
ends in exactly one ack or nack:

* undecodable envelope        -> nack, no requeue (poison)
* no library subscribers      -> ack
* rows inserted and committed -> ack
* anything else (DB error, timeout, bug) -> nack with requeue

Inserts skip rows that already exist, so redelivery never duplicates a
notification and several worker processes can share the queue.
"""
from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import signal
import sys
from typing import Optional

import aio_pika
from aio_pika.abc import AbstractIncomingMessage
from aio_pika.exceptions import AMQPError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from pagesy.broker import QUEUE_CHAPTER_UPLOADED, declare_chapter_queue, decode_envelope
from pagesy.database import async_session_maker, engine
from pagesy.errors import PoisonMessage
from pagesy.schemas import ChapterUploadedEnvelope
from pagesy.services.library import list_library_subscribers
from pagesy.services.notifications import insert_notifications, rows_for_subscribers
from pagesy.settings.config import settings

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BOOTSTRAP = 1


class Outcome(str, enum.Enum):
    ACKED = "acked"
    REQUEUED = "requeued"
    DROPPED = "dropped"


class NotificationWorker:
    def __init__(self, session_maker=async_session_maker, *, db_timeout: Optional[float] = None):
        self._session_maker = session_maker
        self.db_timeout = db_timeout if db_timeout is not None else settings.NOTIFY_DB_TIMEOUT

    async def handle(self, message: AbstractIncomingMessage) -> Outcome:
        try:
            envelope = decode_envelope(message.body)
        except PoisonMessage as exc:
            logger.warning("dropping poison message %s: %s", message.message_id, exc)
            await message.nack(requeue=False)
            return Outcome.DROPPED

        try:
            inserted = await asyncio.wait_for(self._materialize(envelope), timeout=self.db_timeout)
        except Exception:  # noqa: BLE001
            # transient or not, a later attempt re-resolves subscribers from scratch
            logger.exception("notifications for book %s failed, requeueing", envelope.BookID)
            await message.nack(requeue=True)
            return Outcome.REQUEUED

        if inserted == 0:
            logger.info("book %s has no library subscribers", envelope.BookID)
        try:
            await message.ack()
        except AMQPError:
            # the broker redelivers unacked messages once the channel is gone
            logger.exception("error acknowledging message for book %s", envelope.BookID)
            return Outcome.REQUEUED
        return Outcome.ACKED

    async def _materialize(self, envelope: ChapterUploadedEnvelope) -> int:
        async with self._session_maker() as db:
            user_ids = await list_library_subscribers(db, envelope.BookID)
            if not user_ids:
                return 0
            rows = rows_for_subscribers(user_ids, envelope.BookID, envelope.Message)
            await insert_notifications(db, rows)
            await db.commit()
        logger.info("notified %d subscriber(s) of book %s: %s", len(rows), envelope.BookID, envelope.Message)
        return len(rows)


async def run(url: Optional[str] = None, stop: Optional[asyncio.Event] = None) -> int:
    """Bootstrap and consume until SIGINT/SIGTERM. Returns the process exit code.

    A caller that passes ``stop`` owns shutdown; no signal handlers are installed then.
    """
    if stop is None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, stop.set)

    logger.info("connecting to db...")
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.error("error connecting db, %s", exc)
        return EXIT_BOOTSTRAP
    logger.info("db connected")

    logger.info("connecting to queue...")
    try:
        connection = await aio_pika.connect_robust(url or settings.RABBIT_MQ_CONN)
    except (AMQPError, OSError) as exc:
        logger.error("error connecting to rabbitmq, %s", exc)
        await engine.dispose()
        return EXIT_BOOTSTRAP
    logger.info("queue connected")

    try:
        try:
            channel = await connection.channel()
            # one unacked delivery at a time: a slow database throttles the queue
            await channel.set_qos(prefetch_count=1)
        except (AMQPError, OSError) as exc:
            logger.error("error opening channel, %s", exc)
            return EXIT_BOOTSTRAP

        try:
            queue = await declare_chapter_queue(channel)
        except (AMQPError, OSError) as exc:
            logger.error("error declaring queue, %s", exc)
            return EXIT_BOOTSTRAP

        worker = NotificationWorker()
        try:
            consumer_tag = await queue.consume(worker.handle)
        except (AMQPError, OSError) as exc:
            logger.error("error consuming messages from queue, %s", exc)
            return EXIT_BOOTSTRAP
        logger.info("consuming %s", QUEUE_CHAPTER_UPLOADED)

        await stop.wait()
        logger.info("kill signal received...")
        await queue.cancel(consumer_tag)
    finally:
        await connection.close()
        await engine.dispose()

    logger.info("shutdown complete")
    return EXIT_OK


def cli() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    cli()
