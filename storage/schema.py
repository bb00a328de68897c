"""Database schema management for the remote backend.

Tables are derived from the record schemas in ``domain`` so the column set
always matches the field maps the remote adapter writes through.
"""

from typing import Dict, List, Optional

import psycopg  # type: ignore

from domain import SCHEMAS, RecordSchema
from shared.config import StoreConfig
from shared.exceptions import ConfigError, WriteFailure

from .remote_adapter import quote_ident

COLUMN_TYPES: Dict[str, str] = {
    "text": "TEXT",
    "int": "BIGINT",
    "float": "DOUBLE PRECISION",
    "bool": "BOOLEAN",
    "datetime": "TIMESTAMPTZ",
    "date": "DATE",
    "object": "JSONB",
    "json": "JSONB",
}

# Foreign ids callers look records up by.
LOOKUP_COLUMNS: Dict[str, List[str]] = {
    "pieces": ["customer_id", "event_id"],
    "eventBookings": ["event_id", "customer_id"],
}


def table_statements(schema: RecordSchema) -> List[str]:
    """CREATE TABLE / CREATE INDEX statements for one collection."""
    columns = []
    for spec in schema.fields:
        if spec.transient:
            continue
        if spec.name == "id":
            columns.append('  "id" TEXT PRIMARY KEY')
            continue
        column_type = COLUMN_TYPES[spec.kind]
        default = " DEFAULT now()" if spec.name == "createdAt" else ""
        columns.append(f"  {quote_ident(spec.column)} {column_type}{default}")
    table = quote_ident(schema.table)
    statements = [f"CREATE TABLE IF NOT EXISTS {table} (\n" + ",\n".join(columns) + "\n);"]
    for column in LOOKUP_COLUMNS.get(schema.collection, []):
        index_name = quote_ident(f"idx_{schema.table}_{column}")
        statements.append(
            f"CREATE INDEX IF NOT EXISTS {index_name} ON {table} ({quote_ident(column)});"
        )
    return statements


class DbSchemaManager:
    """Responsible for ensuring the Postgres tables of every collection exist."""

    def __init__(self, config: StoreConfig):
        self.config = config

    @property
    def _pg_conn(self) -> str:
        return (self.config.pg_conn or "").replace("postgresql+psycopg", "postgresql")

    def statements(self, collections: Optional[List[str]] = None) -> List[str]:
        result: List[str] = []
        for name in collections or list(SCHEMAS):
            result.extend(table_statements(SCHEMAS[name]))
        return result

    def ensure_tables(self, collections: Optional[List[str]] = None) -> int:
        """Create missing tables and lookup indexes; returns statements run."""
        if not self.config.pg_conn:
            raise ConfigError("PG_CONN is required to create remote tables")
        statements = self.statements(collections)
        kwargs = {"autocommit": True}
        if self.config.pg_password:
            kwargs["password"] = self.config.pg_password
        try:
            with psycopg.connect(self._pg_conn, **kwargs) as conn:
                with conn.cursor() as cur:
                    for sql in statements:
                        cur.execute(sql)
        except psycopg.Error as exc:
            raise WriteFailure("schema", None, str(exc).strip() or type(exc).__name__) from exc
        print(f"[schema] ensured {len(collections or SCHEMAS)} tables")
        return len(statements)


__all__ = ["DbSchemaManager", "table_statements", "COLUMN_TYPES"]
