"""Remote storage adapter over PostgreSQL.

Collections map to tables through ``domain.table_for`` and record fields map
to snake_case columns through each collection's static ``FieldMap``. Nested
values live in ``jsonb`` columns, encoded with the typed codec so dates
inside them survive the trip.
"""

import re
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import psycopg  # type: ignore
from psycopg.rows import dict_row  # type: ignore
from psycopg.errors import UndefinedTable  # type: ignore
from psycopg.types.json import Jsonb  # type: ignore

from domain import Collection, coerce_bulk, coerce_partial, field_map_for, schema_for, table_for
from shared.exceptions import (
    BackupCorruptionError,
    ConfigError,
    NotFoundError,
    ReadFailure,
    SchemaDriftError,
    SchemaValidationError,
    WriteFailure,
)

from . import codec
from .backup import BackupDocument
from .base import UPDATED_AT, PartialFields, Record, StorageAdapter, utc_now

ConnectFn = Callable[..., Awaitable[Any]]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_ident(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise SchemaValidationError(f"Unsafe identifier {name!r}")
    return f'"{name}"'


def _describe(exc: Exception) -> str:
    text = str(exc).strip()
    return text.splitlines()[0] if text else type(exc).__name__


def to_row(collection: str, record: Mapping[str, Any], full: bool = False) -> Dict[str, Any]:
    """Translate a record into column values.

    With ``full=True`` every column the schema declares is present, so an
    upsert replaces the whole row instead of merging into it.
    """
    columns = field_map_for(collection).to_columns(record)
    if full:
        schema = schema_for(collection)
        if schema is not None:
            for spec in schema.fields:
                if not spec.transient:
                    columns.setdefault(spec.column, None)
    return {column: _adapt(value) for column, value in columns.items()}


def _adapt(value: Any) -> Any:
    if isinstance(value, (Mapping, list, tuple)):
        return Jsonb(codec.encode(value))
    return value


def from_row(collection: str, row: Mapping[str, Any]) -> Record:
    """Translate a result row back into a record, dropping NULL columns."""
    values: Dict[str, Any] = {}
    for column, value in row.items():
        if value is None:
            continue
        if isinstance(value, (dict, list)):
            value = codec.decode(value)
        values[column] = value
    return field_map_for(collection).to_fields(values)


def upsert_sql(table: str, columns: Sequence[str]) -> str:
    names = ", ".join(quote_ident(column) for column in columns)
    placeholders = ", ".join(["%s"] * len(columns))
    assignments = ", ".join(
        f"{quote_ident(column)} = EXCLUDED.{quote_ident(column)}"
        for column in columns
        if column != "id"
    )
    action = f"DO UPDATE SET {assignments}" if assignments else "DO NOTHING"
    return (
        f"INSERT INTO {quote_ident(table)} ({names}) VALUES ({placeholders}) "
        f'ON CONFLICT ("id") {action}'
    )


def _group_rows(rows: Sequence[Dict[str, Any]]) -> "OrderedDict[Tuple[str, ...], List[Tuple[Any, ...]]]":
    groups: "OrderedDict[Tuple[str, ...], List[Tuple[Any, ...]]]" = OrderedDict()
    for row in rows:
        columns = tuple(row)
        groups.setdefault(columns, []).append(tuple(row[column] for column in columns))
    return groups


class RemoteStorageAdapter(StorageAdapter):
    """Collection store backed by PostgreSQL tables (one per collection).

    Each operation opens one autocommit connection. ``connect`` defaults to
    ``psycopg.AsyncConnection.connect`` and may be replaced for tests.
    """

    backend = "remote"

    def __init__(self, pg_conn: str, password: Optional[str] = None, connect: Optional[ConnectFn] = None):
        if not pg_conn:
            raise ConfigError("PG_CONN is required for the remote backend")
        self.pg_conn = pg_conn
        self.password = password
        self._connect_fn = connect or psycopg.AsyncConnection.connect

    @property
    def _pg_conn(self) -> str:
        return (self.pg_conn or "").replace("postgresql+psycopg", "postgresql")

    async def _connect(self):
        kwargs: Dict[str, Any] = {"autocommit": True, "row_factory": dict_row}
        if self.password:
            kwargs["password"] = self.password
        return await self._connect_fn(self._pg_conn, **kwargs)

    def _table(self, collection: str) -> str:
        return quote_ident(table_for(collection))

    async def read_all(self, collection: str) -> List[Record]:
        sql = f"SELECT * FROM {self._table(collection)}"
        try:
            async with await self._connect() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(sql)
                    rows = await cur.fetchall()
        except UndefinedTable:
            return []
        except psycopg.Error as exc:
            raise ReadFailure(collection, _describe(exc)) from exc

        records = []
        for row in rows:
            try:
                records.append(from_row(collection, row))
            except SchemaDriftError as exc:
                print(f"[warn] skipping {collection}:{row.get('id')}: {exc}")
        return records

    async def read_one(self, collection: str, record_id: str) -> Optional[Record]:
        sql = f'SELECT * FROM {self._table(collection)} WHERE "id" = %s'
        try:
            async with await self._connect() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(sql, (record_id,))
                    row = await cur.fetchone()
        except UndefinedTable:
            return None
        except psycopg.Error as exc:
            raise ReadFailure(collection, _describe(exc)) from exc
        if row is None:
            return None
        try:
            return from_row(collection, row)
        except SchemaDriftError as exc:
            raise SchemaDriftError(f"{collection}:{record_id}: {exc}") from exc

    async def write_all(self, collection: str, records: Sequence[Mapping[str, Any]]) -> None:
        rows = []
        for record in records:
            record_id = record.get("id")
            if not record_id:
                print(f"[warn] skipping {collection} record without id")
                continue
            rows.append(to_row(collection, {**record, "id": str(record_id)}, full=True))
        await self._replace_rows(collection, rows)

    async def _replace_rows(self, collection: str, rows: Sequence[Dict[str, Any]]) -> None:
        table = table_for(collection)
        try:
            async with await self._connect() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        await cur.execute(f"DELETE FROM {quote_ident(table)}")
                        for columns, params in _group_rows(rows).items():
                            await cur.executemany(upsert_sql(table, columns), params)
        except psycopg.Error as exc:
            raise WriteFailure(collection, None, _describe(exc)) from exc

    async def write_one(self, collection: str, record_id: str, record: Mapping[str, Any]) -> None:
        table = table_for(collection)
        row = to_row(collection, {**record, "id": record_id}, full=True)
        try:
            async with await self._connect() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(upsert_sql(table, list(row)), tuple(row.values()))
        except psycopg.Error as exc:
            raise WriteFailure(collection, record_id, _describe(exc)) from exc

    async def update_partial(
        self, collection: str, record_id: str, fields: PartialFields
    ) -> Optional[Record]:
        changes = coerce_partial(collection, fields)
        row = to_row(collection, {**changes, UPDATED_AT: utc_now()})
        assignments = ", ".join(f"{quote_ident(column)} = %s" for column in row)
        sql = f'UPDATE {self._table(collection)} SET {assignments} WHERE "id" = %s RETURNING *'
        try:
            async with await self._connect() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(sql, (*row.values(), record_id))
                    updated = await cur.fetchone()
        except UndefinedTable as exc:
            raise NotFoundError(collection, record_id) from exc
        except psycopg.Error as exc:
            raise WriteFailure(collection, record_id, _describe(exc)) from exc
        if updated is None:
            raise NotFoundError(collection, record_id)
        return from_row(collection, updated)

    async def update_bulk(self, collection: str, updates: Sequence[Any]) -> int:
        """Apply partial updates as batched upserts keyed by id.

        Entries sharing a field set go out in one ``executemany``; all groups
        use the same connection and the same update timestamp.
        """
        entries = coerce_bulk(collection, updates)
        if not entries:
            return 0
        stamp = utc_now()
        rows = [
            {"id": record_id, **to_row(collection, {**changes, UPDATED_AT: stamp})}
            for record_id, changes in entries
        ]
        table = table_for(collection)
        try:
            async with await self._connect() as conn:
                async with conn.cursor() as cur:
                    for columns, params in _group_rows(rows).items():
                        await cur.executemany(upsert_sql(table, columns), params)
        except psycopg.Error as exc:
            raise WriteFailure(collection, None, f"bulk update failed: {_describe(exc)}") from exc
        return len(entries)

    async def delete_one(self, collection: str, record_id: str) -> bool:
        sql = f'DELETE FROM {self._table(collection)} WHERE "id" = %s RETURNING "id"'
        try:
            async with await self._connect() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(sql, (record_id,))
                    row = await cur.fetchone()
        except UndefinedTable:
            return False
        except psycopg.Error as exc:
            raise WriteFailure(collection, record_id, _describe(exc)) from exc
        return row is not None

    async def exists(self, collection: str) -> bool:
        sql = f'SELECT "id" FROM {self._table(collection)} LIMIT 1'
        try:
            async with await self._connect() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(sql)
                    row = await cur.fetchone()
        except UndefinedTable:
            return False
        except psycopg.Error as exc:
            raise ReadFailure(collection, _describe(exc)) from exc
        return row is not None

    async def clear(self, collection: str) -> None:
        sql = f"DELETE FROM {self._table(collection)}"
        try:
            async with await self._connect() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(sql)
        except UndefinedTable:
            return
        except psycopg.Error as exc:
            raise WriteFailure(collection, None, _describe(exc)) from exc

    async def backup(self) -> str:
        collections = {}
        for collection in Collection.ALL:
            collections[collection] = await self.read_all(collection)
        return BackupDocument.for_remote(collections).to_json()

    async def restore(self, document: Union[str, Mapping[str, Any]]) -> List[str]:
        doc = BackupDocument.parse(document)
        prepared: Dict[str, List[Dict[str, Any]]] = {}
        for name, records in doc.records_by_collection().items():
            if name not in Collection.ALL:
                print(f"[warn] backup collection {name!r} has no table; skipped")
                continue
            try:
                prepared[name] = [
                    to_row(name, {**record, "id": str(record["id"])}, full=True)
                    for record in records
                ]
            except (SchemaValidationError, KeyError) as exc:
                raise BackupCorruptionError(f"Backup collection {name!r} does not fit its table: {exc}") from exc

        for name, rows in prepared.items():
            await self._replace_rows(name, rows)
            print(f"[restore] {name}: {len(rows)} records")
        return list(prepared)


__all__ = ["RemoteStorageAdapter", "to_row", "from_row", "upsert_sql", "quote_ident"]
