"""Storage layer for the studio store.

Handles collection persistence, typed serialization, and backup/restore.

Rules:
- Owns index consistency and round-trip fidelity; callers own referential
  cleanup between collections.
- Never lets driver errors (psycopg, sqlite3) escape; they are translated
  into shared.exceptions types.
- May import domain, shared.
"""

from .backup import BackupDocument
from .base import StorageAdapter
from .factory import StorageAdapterFactory, StoreContext, bootstrap
from .index import CollectionIndex
from .local_adapter import LocalStorageAdapter, StorageInfo
from .media import KeyValueMedium, MediumError, MediumQuotaExceeded, MemoryMedium, SqliteMedium
from .migration import LegacyMigrator
from .remote_adapter import RemoteStorageAdapter
from .schema import DbSchemaManager

__all__ = [
    # Contract
    "StorageAdapter",
    # Adapters
    "LocalStorageAdapter",
    "RemoteStorageAdapter",
    "StorageInfo",
    # Local internals
    "CollectionIndex",
    "KeyValueMedium",
    "MemoryMedium",
    "SqliteMedium",
    "MediumError",
    "MediumQuotaExceeded",
    # Backup / migration
    "BackupDocument",
    "LegacyMigrator",
    # Composition root
    "StorageAdapterFactory",
    "StoreContext",
    "bootstrap",
    # Schema
    "DbSchemaManager",
]
