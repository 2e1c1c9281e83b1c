import asyncio
import logging

from pagesy import background
from pagesy.background import spawn


async def test_crashing_task_is_logged_and_released(caplog):
    async def boom():
        raise ValueError("pump exploded")

    with caplog.at_level(logging.ERROR, logger="pagesy.background"):
        task = spawn(boom(), name="ws-pump-test")
        assert task in background._running
        await asyncio.gather(task, return_exceptions=True)
        await asyncio.sleep(0)

    assert task not in background._running
    assert "task ws-pump-test crashed" in caplog.text


async def test_cancelled_task_is_released_quietly(caplog):
    with caplog.at_level(logging.ERROR, logger="pagesy.background"):
        task = spawn(asyncio.sleep(10), name="event-hub")
        await asyncio.sleep(0)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        await asyncio.sleep(0)

    assert task not in background._running
    assert not [r for r in caplog.records if r.name == "pagesy.background"]
