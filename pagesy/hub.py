"""In-process live-push hub.

One asyncio task owns every registry. Connections and request handlers talk
to it only through three bounded inboxes (connect, disconnect, broadcast), so
nothing here needs a lock. Delivery is best-effort: a client whose outbox is
full loses the frame and is disconnected; it catches up from the
notifications table when it comes back.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from .schemas import ChapterUploadedPayload, LiveFrame
from .settings.config import settings

logger = logging.getLogger(__name__)


class EventType(enum.IntEnum):
    CHAPTER_UPLOADED = 0


@dataclass(frozen=True)
class HubEvent:
    type: EventType
    payload: Dict[str, Any]
    # the one regular (non-admin) user that should also get the frame
    target_user_id: Optional[str] = None

    def to_json(self) -> str:
        return LiveFrame(Type=int(self.type), Payload=self.payload).model_dump_json()


def chapter_uploaded_event(book_id: str, message: str, author_id: Optional[str] = None) -> HubEvent:
    payload = ChapterUploadedPayload(BookId=book_id, Message=message).model_dump()
    return HubEvent(EventType.CHAPTER_UPLOADED, payload, target_user_id=author_id)


@dataclass(eq=False)
class ClientHandle:
    """What the hub knows about a socket: an outbox and a way to close it.

    Compared by identity, so a stale handle for a user never matches the one
    that replaced it.
    """

    user_id: str
    is_admin: bool
    outbox: "asyncio.Queue[str]"
    close: Callable[[], None] = field(repr=False)


class EventHub:
    def __init__(self, inbox_size: int | None = None):
        size = inbox_size or settings.HUB_INBOX_SIZE
        self.admins: Set[ClientHandle] = set()
        self.regular: Dict[str, ClientHandle] = {}
        self._connect: "asyncio.Queue[ClientHandle]" = asyncio.Queue(size)
        self._disconnect: "asyncio.Queue[ClientHandle]" = asyncio.Queue(size)
        self._broadcast: "asyncio.Queue[HubEvent]" = asyncio.Queue(size)

    # ---- producer side -------------------------------------------------

    async def connect(self, handle: ClientHandle) -> None:
        await self._connect.put(handle)

    async def disconnect(self, handle: ClientHandle) -> None:
        await self._disconnect.put(handle)

    def publish(self, event: HubEvent) -> bool:
        """Queue an event without waiting. Returns False when the inbox is full."""
        try:
            self._broadcast.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("hub broadcast inbox full, dropping %s event", event.type.name)
            return False
        return True

    async def join(self) -> None:
        """Wait until everything submitted so far has been handled."""
        for inbox in (self._connect, self._disconnect, self._broadcast):
            await inbox.join()

    # ---- hub task ------------------------------------------------------

    async def run(self) -> None:
        inboxes = {
            "connect": self._connect,
            "disconnect": self._disconnect,
            "broadcast": self._broadcast,
        }
        getters: Dict[str, asyncio.Task[Any]] = {
            name: asyncio.ensure_future(q.get()) for name, q in inboxes.items()
        }
        logger.info("event hub started")
        try:
            while True:
                await asyncio.wait(list(getters.values()), return_when=asyncio.FIRST_COMPLETED)
                # dict order gives connect -> disconnect -> broadcast within one wake
                for name, getter in list(getters.items()):
                    if not getter.done():
                        continue
                    item = getter.result()
                    getters[name] = asyncio.ensure_future(inboxes[name].get())
                    try:
                        if name == "connect":
                            self._register(item)
                        elif name == "disconnect":
                            self._drop(item)
                        else:
                            self._fan_out(item)
                    finally:
                        inboxes[name].task_done()
        finally:
            for getter in getters.values():
                getter.cancel()
            self._close_all()
            logger.info("event hub stopped")

    def _register(self, handle: ClientHandle) -> None:
        if handle.is_admin:
            self.admins.add(handle)
            logger.debug("admin %s connected (%d admins)", handle.user_id, len(self.admins))
            return
        previous = self.regular.get(handle.user_id)
        self.regular[handle.user_id] = handle
        if previous is not None and previous is not handle:
            previous.close()
        logger.debug("user %s connected", handle.user_id)

    def _drop(self, handle: ClientHandle) -> None:
        if handle.is_admin:
            self.admins.discard(handle)
        elif self.regular.get(handle.user_id) is handle:
            del self.regular[handle.user_id]
        handle.close()

    def _fan_out(self, event: HubEvent) -> None:
        body = event.to_json()
        targets: List[ClientHandle] = list(self.admins)
        if event.target_user_id is not None:
            target = self.regular.get(event.target_user_id)
            if target is not None:
                targets.append(target)

        stale: List[ClientHandle] = []
        for handle in targets:
            try:
                handle.outbox.put_nowait(body)
            except asyncio.QueueFull:
                stale.append(handle)
        for handle in stale:
            logger.info("dropping slow live client %s", handle.user_id)
            self._drop(handle)

    def _close_all(self) -> None:
        for handle in list(self.admins) + list(self.regular.values()):
            handle.close()
        self.admins.clear()
        self.regular.clear()


__all__ = ["EventHub", "EventType", "HubEvent", "ClientHandle", "chapter_uploaded_event"]
