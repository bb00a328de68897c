"""Shared pytest fixtures: local media and an in-memory stand-in for Postgres.

``FakeDatabase.connect`` has the signature of
``psycopg.AsyncConnection.connect`` and understands exactly the statements
the remote adapter generates. Tables are pre-created from the record
schemas; rows come back padded with NULL for columns never written, like a
real table would return them.
"""

import copy
import json
import re
from typing import Any, Dict, List, Optional

import psycopg  # type: ignore
import pytest
from psycopg.errors import UndefinedColumn, UndefinedTable  # type: ignore
from psycopg.types.json import Jsonb  # type: ignore

from domain import SCHEMAS
from storage import LocalStorageAdapter, MemoryMedium, RemoteStorageAdapter

NAMESPACE = "clay-cafe"
PG_CONN = "postgresql+psycopg://studio@localhost:5432/studio"

TABLE_COLUMNS: Dict[str, List[str]] = {
    schema.table: [spec.column for spec in schema.fields if not spec.transient]
    for schema in SCHEMAS.values()
}

_SELECT_ALL = re.compile(r'^SELECT \* FROM "(\w+)"$')
_SELECT_ONE = re.compile(r'^SELECT \* FROM "(\w+)" WHERE "id" = %s$')
_SELECT_ANY = re.compile(r'^SELECT "id" FROM "(\w+)" LIMIT 1$')
_UPSERT = re.compile(
    r'^INSERT INTO "(\w+)" \((.+?)\) VALUES \((.+?)\) ON CONFLICT \("id"\) (DO UPDATE SET .+|DO NOTHING)$'
)
_UPDATE = re.compile(r'^UPDATE "(\w+)" SET (.+) WHERE "id" = %s RETURNING \*$')
_DELETE_ONE = re.compile(r'^DELETE FROM "(\w+)" WHERE "id" = %s RETURNING "id"$')
_DELETE_ALL = re.compile(r'^DELETE FROM "(\w+)"$')
_QUOTED = re.compile(r'"(\w+)"')


def _store_value(value: Any) -> Any:
    # jsonb comes back from the driver as freshly parsed JSON
    if isinstance(value, Jsonb):
        return json.loads(json.dumps(value.obj))
    return value


class FakeDatabase:
    def __init__(self, tables: Optional[List[str]] = None):
        names = list(TABLE_COLUMNS) if tables is None else tables
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in names}
        self.statements: List[str] = []
        self.connect_calls: List[Dict[str, Any]] = []
        self.fail_inserts = False

    async def connect(self, conninfo: str, **kwargs: Any) -> "FakeConnection":
        self.connect_calls.append({"conninfo": conninfo, **kwargs})
        return FakeConnection(self)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return [self.padded(table, row) for row in self.tables[table].values()]

    def padded(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        full = {column: None for column in TABLE_COLUMNS.get(table, [])}
        full.update(row)
        return copy.deepcopy(full)

    def table(self, name: str) -> Dict[str, Dict[str, Any]]:
        if name not in self.tables:
            raise UndefinedTable(f'relation "{name}" does not exist')
        return self.tables[name]

    def check_columns(self, table: str, columns: List[str]) -> None:
        known = TABLE_COLUMNS.get(table)
        if known is None:
            return
        for column in columns:
            if column not in known:
                raise UndefinedColumn(f'column "{column}" of relation "{table}" does not exist')


class FakeTransaction:
    def __init__(self, db: FakeDatabase):
        self.db = db
        self.snapshot = None

    async def __aenter__(self):
        self.snapshot = copy.deepcopy(self.db.tables)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.db.tables = self.snapshot
        return False


class FakeConnection:
    def __init__(self, db: FakeDatabase):
        self.db = db
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True
        return False

    def cursor(self) -> "FakeCursor":
        return FakeCursor(self.db)

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self.db)


class FakeCursor:
    def __init__(self, db: FakeDatabase):
        self.db = db
        self._result: List[Dict[str, Any]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def executemany(self, sql: str, params_seq) -> None:
        for params in params_seq:
            await self.execute(sql, params)

    async def execute(self, sql: str, params=None) -> None:
        self.db.statements.append(sql)
        params = tuple(params or ())
        self._result = []

        match = _SELECT_ALL.match(sql)
        if match:
            self.db.table(match.group(1))
            self._result = self.db.rows(match.group(1))
            return

        match = _SELECT_ONE.match(sql)
        if match:
            table = match.group(1)
            row = self.db.table(table).get(params[0])
            self._result = [self.db.padded(table, row)] if row is not None else []
            return

        match = _SELECT_ANY.match(sql)
        if match:
            ids = list(self.db.table(match.group(1)))
            self._result = [{"id": ids[0]}] if ids else []
            return

        match = _UPSERT.match(sql)
        if match:
            table, column_list, _, action = match.groups()
            rows = self.db.table(table)
            columns = _QUOTED.findall(column_list)
            self.db.check_columns(table, columns)
            if self.db.fail_inserts:
                raise psycopg.OperationalError("server closed the connection unexpectedly")
            values = {column: _store_value(value) for column, value in zip(columns, params)}
            record_id = values["id"]
            if record_id in rows:
                if action.startswith("DO UPDATE"):
                    rows[record_id].update(values)
            else:
                rows[record_id] = values
            return

        match = _UPDATE.match(sql)
        if match:
            table, assignments = match.groups()
            rows = self.db.table(table)
            columns = _QUOTED.findall(assignments)
            self.db.check_columns(table, columns)
            record_id = params[-1]
            if record_id in rows:
                rows[record_id].update(
                    {column: _store_value(value) for column, value in zip(columns, params[:-1])}
                )
                self._result = [self.db.padded(table, rows[record_id])]
            return

        match = _DELETE_ONE.match(sql)
        if match:
            rows = self.db.table(match.group(1))
            if rows.pop(params[0], None) is not None:
                self._result = [{"id": params[0]}]
            return

        match = _DELETE_ALL.match(sql)
        if match:
            self.db.table(match.group(1)).clear()
            return

        raise psycopg.ProgrammingError(f"unexpected statement: {sql}")

    async def fetchone(self) -> Optional[Dict[str, Any]]:
        return self._result[0] if self._result else None

    async def fetchall(self) -> List[Dict[str, Any]]:
        return list(self._result)


@pytest.fixture
def medium():
    return MemoryMedium()


@pytest.fixture
def local_store(medium):
    return LocalStorageAdapter(medium, namespace=NAMESPACE)


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def remote_store(fake_db):
    return RemoteStorageAdapter(PG_CONN, password="secret", connect=fake_db.connect)


@pytest.fixture(params=["local", "remote"])
def store(request, medium, fake_db):
    """Either backend behind the same contract."""
    if request.param == "local":
        return LocalStorageAdapter(medium, namespace=NAMESPACE)
    return RemoteStorageAdapter(PG_CONN, password="secret", connect=fake_db.connect)
