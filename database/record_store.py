# database/record_store.py
from typing import Any, Optional

import asyncpg

from database.async_db import AsyncDatabase
from utils.logger import get_logger

log = get_logger("[RecordStore]")

# Only these tables and columns can be reached through the generic store.
# Identifiers are interpolated into SQL, values always go through $n parameters.
COLLECTIONS: dict[str, set[str]] = {
    "orders": {
        "id", "created_at", "status", "prescription_url", "notes", "user_id", "delivery_address",
    },
    "products": {
        "id", "name", "description", "price", "image_url", "requires_prescription",
    },
}

# Columns the store assigns itself
READ_ONLY_COLUMNS = {"id", "created_at"}

# Errors that mean "the store said no", as opposed to programming errors
STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class RecordStore:
    """
    Collection-level CRUD over the Supabase Postgres database, mirroring the
    `from(...).select/insert/update` surface of the Supabase client.

    Every method returns `(result, error_message)`; store failures are logged
    and reported through `error_message` instead of being raised.
    """

    def __init__(self, db: AsyncDatabase):
        self.db = db

    @staticmethod
    def _columns(collection: str) -> set[str]:
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    @classmethod
    def _check_columns(cls, collection: str, names) -> None:
        unknown = set(names) - cls._columns(collection)
        if unknown:
            raise ValueError(f"Unknown columns for {collection}: {', '.join(sorted(unknown))}")

    async def list(
            self,
            collection: str,
            filters: Optional[dict[str, Any]] = None,
            order_by: Optional[tuple[str, bool]] = None,
    ) -> tuple[list[dict], Optional[str]]:
        """
        filters: equality conditions, `{"user_id": ...}`
        order_by: `(column, ascending)`
        """
        filters = filters or {}
        self._check_columns(collection, filters)

        args: list[Any] = []
        where = []
        for column, value in filters.items():
            args.append(value)
            where.append(f'"{column}" = ${len(args)}')

        sql = f'SELECT * FROM "{collection}"'
        if where:
            sql += " WHERE " + " AND ".join(where)
        if order_by:
            column, ascending = order_by
            self._check_columns(collection, [column])
            sql += f' ORDER BY "{column}" {"ASC" if ascending else "DESC"}'

        try:
            rows = await self.db.fetch(sql, *args)
        except STORE_ERRORS as e:
            log.exception(f"list({collection}) failed: {e}")
            return [], str(e)
        return [dict(r) for r in rows], None

    async def get(self, collection: str, record_id: Any) -> tuple[Optional[dict], Optional[str]]:
        self._columns(collection)
        try:
            row = await self.db.fetchrow(f'SELECT * FROM "{collection}" WHERE "id" = $1', record_id)
        except STORE_ERRORS as e:
            log.exception(f"get({collection}, {record_id}) failed: {e}")
            return None, str(e)
        return (dict(row) if row else None), None

    async def insert(self, collection: str, record: dict[str, Any]) -> tuple[Optional[dict], Optional[str]]:
        if not record:
            raise ValueError("Nothing to insert")
        self._check_columns(collection, record)

        columns = list(record)
        quoted = ", ".join(f'"{c}"' for c in columns)
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        sql = f'INSERT INTO "{collection}" ({quoted}) VALUES ({placeholders}) RETURNING *'
        try:
            row = await self.db.fetchrow(sql, *(record[c] for c in columns))
        except STORE_ERRORS as e:
            log.exception(f"insert({collection}) failed: {e}")
            return None, str(e)
        return dict(row), None

    async def update(self, collection: str, record_id: Any, patch: dict[str, Any]) -> tuple[bool, Optional[str]]:
        if not patch:
            raise ValueError("Nothing to update")
        self._check_columns(collection, patch)
        frozen = READ_ONLY_COLUMNS & set(patch)
        if frozen:
            raise ValueError(f"Read-only columns: {', '.join(sorted(frozen))}")

        args: list[Any] = []
        sets = []
        for column, value in patch.items():
            args.append(value)
            sets.append(f'"{column}" = ${len(args)}')
        args.append(record_id)
        sql = f'UPDATE "{collection}" SET {", ".join(sets)} WHERE "id" = ${len(args)}'

        try:
            tag = await self.db.execute(sql, *args)
        except STORE_ERRORS as e:
            log.exception(f"update({collection}, {record_id}) failed: {e}")
            return False, str(e)

        # Command tag looks like "UPDATE 1"
        if tag.split()[-1] == "0":
            log.warning(f"update({collection}, {record_id}) matched no rows")
            return False, "Record not found"
        return True, None
