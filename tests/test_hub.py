import asyncio
import json

from conftest import make_handle
from pagesy.hub import EventHub, EventType, chapter_uploaded_event


async def test_chapter_event_frame_shape():
    event = chapter_uploaded_event("b-1", "Sunrise chapter 1", author_id="a-1")
    assert event.type is EventType.CHAPTER_UPLOADED
    assert event.target_user_id == "a-1"
    assert event.to_json() == '{"Type":0,"Payload":{"BookId":"b-1","Message":"Sunrise chapter 1"}}'


async def test_admins_receive_every_event(hub):
    admin_a = make_handle("admin-a", admin=True)
    admin_b = make_handle("admin-b", admin=True)
    await hub.connect(admin_a)
    await hub.connect(admin_b)
    await hub.join()

    assert hub.publish(chapter_uploaded_event("b-1", "Sunrise chapter 1"))
    await hub.join()

    for handle in (admin_a, admin_b):
        frame = json.loads(handle.outbox.get_nowait())
        assert frame == {"Type": 0, "Payload": {"BookId": "b-1", "Message": "Sunrise chapter 1"}}


async def test_only_the_target_regular_user_receives(hub):
    author = make_handle("author")
    reader = make_handle("reader")
    await hub.connect(author)
    await hub.connect(reader)
    await hub.join()

    hub.publish(chapter_uploaded_event("b-1", "Sunrise chapter 1", author_id="author"))
    await hub.join()

    assert author.outbox.qsize() == 1
    assert reader.outbox.empty()


async def test_untargeted_event_skips_regular_users(hub):
    reader = make_handle("reader")
    await hub.connect(reader)
    hub.publish(chapter_uploaded_event("b-1", "Sunrise chapter 1"))
    await hub.join()
    assert reader.outbox.empty()


async def test_second_connection_replaces_and_closes_the_first(hub):
    first = make_handle("u1")
    second = make_handle("u1")
    await hub.connect(first)
    await hub.connect(second)
    await hub.join()

    assert hub.regular["u1"] is second
    assert first.close.calls == 1
    assert second.close.calls == 0


async def test_stale_disconnect_keeps_newer_connection(hub):
    first = make_handle("u1")
    second = make_handle("u1")
    await hub.connect(first)
    await hub.connect(second)
    await hub.disconnect(first)
    await hub.join()

    assert hub.regular["u1"] is second
    hub.publish(chapter_uploaded_event("b-1", "m", author_id="u1"))
    await hub.join()
    assert second.outbox.qsize() == 1


async def test_disconnect_is_idempotent(hub):
    admin = make_handle("admin", admin=True)
    await hub.connect(admin)
    await hub.disconnect(admin)
    await hub.disconnect(admin)
    await hub.join()

    assert admin not in hub.admins
    assert admin.close.calls == 2


async def test_slow_client_is_dropped_without_blocking_others(hub):
    slow = make_handle("slow-admin", admin=True, outbox_size=1)
    fast = make_handle("fast-admin", admin=True, outbox_size=8)
    await hub.connect(slow)
    await hub.connect(fast)
    await hub.join()

    hub.publish(chapter_uploaded_event("b-1", "Sunrise chapter 1"))
    hub.publish(chapter_uploaded_event("b-1", "Sunrise chapter 2"))
    await hub.join()

    assert slow not in hub.admins
    assert slow.close.calls == 1
    assert fast.outbox.qsize() == 2


async def test_publish_reports_full_inbox():
    hub = EventHub(inbox_size=1)  # not running, nothing drains it
    assert hub.publish(chapter_uploaded_event("b-1", "one")) is True
    assert hub.publish(chapter_uploaded_event("b-1", "two")) is False


async def test_stopping_the_hub_closes_every_client():
    hub = EventHub(inbox_size=4)
    task = asyncio.create_task(hub.run())
    admin = make_handle("admin", admin=True)
    reader = make_handle("reader")
    await hub.connect(admin)
    await hub.connect(reader)
    await hub.join()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    assert admin.close.calls == 1
    assert reader.close.calls == 1
    assert not hub.admins and not hub.regular
