import pytest

from database.record_store import RecordStore


class FakeDb:
    def __init__(self, rows=(), row=None, tag="UPDATE 1", error: Exception = None):
        self.rows = list(rows)
        self.row = row
        self.tag = tag
        self.error = error
        self.queries: list[tuple] = []

    async def _answer(self, value, query, args):
        self.queries.append((query, args))
        if self.error:
            raise self.error
        return value

    async def fetch(self, query, *args):
        return await self._answer(self.rows, query, args)

    async def fetchrow(self, query, *args):
        return await self._answer(self.row, query, args)

    async def execute(self, query, *args):
        return await self._answer(self.tag, query, args)


async def test_list_builds_filtered_ordered_query():
    db = FakeDb(rows=[{"id": 1, "status": "pending"}])
    rows, error = await RecordStore(db).list("orders", {"user_id": "u1"}, order_by=("created_at", False))

    assert error is None
    assert rows == [{"id": 1, "status": "pending"}]
    query, args = db.queries[0]
    assert query == 'SELECT * FROM "orders" WHERE "user_id" = $1 ORDER BY "created_at" DESC'
    assert args == ("u1",)


async def test_list_without_filters():
    db = FakeDb()
    await RecordStore(db).list("products", order_by=("name", True))
    assert db.queries[0][0] == 'SELECT * FROM "products" ORDER BY "name" ASC'


async def test_insert_returns_created_row():
    db = FakeDb(row={"id": "x", "status": "pending"})
    row, error = await RecordStore(db).insert("orders", {"status": "pending", "user_id": "u1"})

    assert error is None
    assert row == {"id": "x", "status": "pending"}
    query, args = db.queries[0]
    assert query == 'INSERT INTO "orders" ("status", "user_id") VALUES ($1, $2) RETURNING *'
    assert args == ("pending", "u1")


async def test_update_builds_query():
    db = FakeDb(tag="UPDATE 1")
    ok, error = await RecordStore(db).update("orders", "x", {"status": "accepted"})

    assert ok and error is None
    query, args = db.queries[0]
    assert query == 'UPDATE "orders" SET "status" = $1 WHERE "id" = $2'
    assert args == ("accepted", "x")


async def test_update_of_missing_record():
    ok, error = await RecordStore(FakeDb(tag="UPDATE 0")).update("orders", "x", {"status": "accepted"})
    assert not ok
    assert error == "Record not found"


async def test_get_missing_record():
    row, error = await RecordStore(FakeDb(row=None)).get("orders", "x")
    assert row is None and error is None


async def test_store_failures_become_error_messages():
    store = RecordStore(FakeDb(error=OSError("connection reset")))

    rows, error = await store.list("orders")
    assert rows == [] and error == "connection reset"

    row, error = await store.insert("orders", {"status": "pending"})
    assert row is None and error == "connection reset"

    ok, error = await store.update("orders", "x", {"status": "accepted"})
    assert not ok and error == "connection reset"


async def test_unknown_collection_and_column_are_rejected():
    store = RecordStore(FakeDb())
    with pytest.raises(ValueError):
        await store.list("users")
    with pytest.raises(ValueError):
        await store.list("orders", {"password": "x"})
    with pytest.raises(ValueError):
        await store.insert("orders", {"status; DROP TABLE orders": "x"})


async def test_read_only_columns_cannot_be_patched():
    with pytest.raises(ValueError):
        await RecordStore(FakeDb()).update("orders", "x", {"created_at": "2020-01-01"})


async def test_empty_writes_are_rejected():
    store = RecordStore(FakeDb())
    with pytest.raises(ValueError):
        await store.insert("orders", {})
    with pytest.raises(ValueError):
        await store.update("orders", "x", {})
