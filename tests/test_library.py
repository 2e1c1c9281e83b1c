import uuid

from conftest import auth_headers


async def test_add_list_and_remove(client, seed):
    reader = await seed.user()
    author = await seed.user()
    first = await seed.book(author, "Sunrise")
    second = await seed.book(author, "Sunset")
    headers = await auth_headers(reader)

    for book in (first, second, first):
        res = await client.put(f"/api/v1/library/books/{book.id}", headers=headers)
        assert res.status_code == 204

    res = await client.get("/api/v1/library", headers=headers)
    assert res.status_code == 200
    assert res.json() == {"books": [str(first.id), str(second.id)]}

    assert (await client.delete(f"/api/v1/library/books/{first.id}", headers=headers)).status_code == 204
    res = await client.get("/api/v1/library", headers=headers)
    assert res.json() == {"books": [str(second.id)]}


async def test_only_approved_books_can_be_added(client, seed):
    reader = await seed.user()
    draft = await seed.book(await seed.user(), "Draft", approved=False)
    headers = await auth_headers(reader)

    res = await client.put(f"/api/v1/library/books/{draft.id}", headers=headers)
    assert (res.status_code, res.json()) == (404, {"error": "book not found"})

    res = await client.put(f"/api/v1/library/books/{uuid.uuid4()}", headers=headers)
    assert res.status_code == 404


async def test_removing_a_book_not_in_the_library(client, seed):
    reader = await seed.user()
    book = await seed.book(await seed.user(), "Sunrise")

    res = await client.delete(f"/api/v1/library/books/{book.id}", headers=await auth_headers(reader))
    assert (res.status_code, res.json()) == (404, {"error": "book not in library"})


async def test_library_requires_login(client, schema):
    assert (await client.get("/api/v1/library")).status_code == 401
