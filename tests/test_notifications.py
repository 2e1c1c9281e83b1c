from conftest import FakeDelivery, auth_headers
from pagesy.broker import encode_envelope
from pagesy.schemas import ChapterUploadedEnvelope


async def test_notifications_are_listed_newest_first(client, seed, worker):
    reader = await seed.user()
    book = await seed.book(await seed.user(), "Sunrise")
    await seed.subscribe(reader, book)

    for no in (1, 2, 3):
        envelope = ChapterUploadedEnvelope(BookID=book.id, Message=f"Sunrise chapter {no}")
        await worker.handle(FakeDelivery(encode_envelope(envelope)))

    headers = await auth_headers(reader)
    res = await client.get("/api/v1/users/me/notifications", headers=headers)
    assert res.status_code == 200
    body = res.json()
    assert [n["message"] for n in body] == ["Sunrise chapter 3", "Sunrise chapter 2", "Sunrise chapter 1"]
    assert {n["bookId"] for n in body} == {str(book.id)}
    assert all("createdAt" in n for n in body)

    res = await client.get("/api/v1/users/me/notifications?limit=1&offset=1", headers=headers)
    assert [n["message"] for n in res.json()] == ["Sunrise chapter 2"]


async def test_other_users_notifications_are_not_visible(client, seed, worker):
    reader = await seed.user()
    outsider = await seed.user()
    book = await seed.book(await seed.user(), "Sunrise")
    await seed.subscribe(reader, book)
    envelope = ChapterUploadedEnvelope(BookID=book.id, Message="Sunrise chapter 1")
    await worker.handle(FakeDelivery(encode_envelope(envelope)))

    res = await client.get("/api/v1/users/me/notifications", headers=await auth_headers(outsider))
    assert res.json() == []


async def test_limit_is_bounded(client, seed):
    reader = await seed.user()
    res = await client.get("/api/v1/users/me/notifications?limit=0", headers=await auth_headers(reader))
    assert res.status_code == 400
