"""RabbitMQ plumbing for the ``book.chapter_uploaded`` queue."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractQueue, AbstractRobustChannel, AbstractRobustConnection
from aio_pika.exceptions import AMQPError
from pydantic import ValidationError

from .errors import PoisonMessage, TransientError
from .schemas import ChapterUploadedEnvelope

logger = logging.getLogger(__name__)

QUEUE_CHAPTER_UPLOADED = "book.chapter_uploaded"
CONTENT_TYPE_JSON = "application/json"


def encode_envelope(envelope: ChapterUploadedEnvelope) -> bytes:
    return envelope.model_dump_json().encode("utf-8")


def decode_envelope(body: bytes) -> ChapterUploadedEnvelope:
    try:
        return ChapterUploadedEnvelope.model_validate_json(body)
    except ValidationError as exc:
        raise PoisonMessage(f"undecodable envelope: {exc.error_count()} error(s)") from exc


async def declare_chapter_queue(channel: AbstractChannel) -> AbstractQueue:
    return await channel.declare_queue(QUEUE_CHAPTER_UPLOADED, durable=True)


class ChapterPublisher:
    """Publishes chapter-upload envelopes; connects lazily on first use.

    The API process starts even when the broker is down; uploads then fail
    with a TransientError until it comes back.
    """

    def __init__(self, url: str):
        self._url = url
        self._connection: Optional[AbstractRobustConnection] = None
        self._channel: Optional[AbstractRobustChannel] = None
        self._lock = asyncio.Lock()

    async def _ensure_channel(self) -> AbstractRobustChannel:
        async with self._lock:
            if self._channel is not None and not self._channel.is_closed:
                return self._channel
            if self._connection is None or self._connection.is_closed:
                logger.info("connecting to queue...")
                self._connection = await aio_pika.connect_robust(self._url)
            self._channel = await self._connection.channel()
            await declare_chapter_queue(self._channel)
            logger.info("queue channel opened")
            return self._channel

    async def publish(self, envelope: ChapterUploadedEnvelope) -> None:
        message = aio_pika.Message(
            body=encode_envelope(envelope),
            content_type=CONTENT_TYPE_JSON,
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
        )
        try:
            channel = await self._ensure_channel()
            await channel.default_exchange.publish(message, routing_key=QUEUE_CHAPTER_UPLOADED)
        except (AMQPError, OSError, asyncio.TimeoutError) as exc:
            raise TransientError(f"error publishing message to queue, {exc!r}") from exc

    async def close(self) -> None:
        if self._connection is not None and not self._connection.is_closed:
            await self._connection.close()
        self._connection = None
        self._channel = None


__all__ = [
    "QUEUE_CHAPTER_UPLOADED",
    "ChapterPublisher",
    "declare_chapter_queue",
    "decode_envelope",
    "encode_envelope",
]
