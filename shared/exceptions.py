"""Exception types shared by every layer.

Adapters translate low-level medium errors (psycopg, sqlite3, quota) into
these types so callers never handle driver-specific errors.
"""

from typing import Optional


class SharedError(Exception):
    """Base class for all errors raised by this codebase."""


class ConfigError(SharedError):
    """Configuration is missing or names an unsupported backend."""


class StorageError(SharedError):
    """Base class for collection store failures."""


class NotFoundError(StorageError):
    """A record required by the operation does not exist."""

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"Record {collection}:{record_id} not found")


class WriteFailure(StorageError):
    """The underlying medium rejected a write."""

    def __init__(self, collection: str, record_id: Optional[str], reason: str):
        self.collection = collection
        self.record_id = record_id
        self.reason = reason
        target = f"{collection}:{record_id}" if record_id is not None else collection
        super().__init__(f"Failed to write {target}: {reason}")


class ReadFailure(StorageError):
    """The underlying medium rejected a read for a reason other than absence."""

    def __init__(self, collection: str, reason: str):
        self.collection = collection
        self.reason = reason
        super().__init__(f"Failed to read {collection}: {reason}")


class SchemaDriftError(StorageError):
    """A stored value could not be decoded into a record."""


class SchemaValidationError(StorageError):
    """A partial update names fields the collection does not declare."""


class BackupCorruptionError(StorageError):
    """A backup document is not valid or not of the expected shape."""


__all__ = [
    "SharedError",
    "ConfigError",
    "StorageError",
    "NotFoundError",
    "WriteFailure",
    "ReadFailure",
    "SchemaDriftError",
    "SchemaValidationError",
    "BackupCorruptionError",
]
