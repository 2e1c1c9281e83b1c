"""Fire-and-forget asyncio tasks that are neither lost nor silent.

The event hub and every WebSocket write pump run through ``spawn``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

logger = logging.getLogger(__name__)

# the event loop only keeps weak references to tasks
_running: Set[asyncio.Task[Any]] = set()


def _reap(task: asyncio.Task[Any]) -> None:
    _running.discard(task)
    if task.cancelled():
        logger.debug("task %s cancelled", task.get_name())
    elif task.exception() is not None:
        logger.error("task %s crashed", task.get_name(), exc_info=task.exception())


def spawn(coro: Coroutine[Any, Any, Any], *, name: Optional[str] = None) -> asyncio.Task[Any]:
    task = asyncio.create_task(coro, name=name)
    _running.add(task)
    task.add_done_callback(_reap)
    return task


__all__ = ["spawn"]
