"""Composition root: build the one storage adapter a process uses."""

from dataclasses import dataclass
from typing import Optional

from shared.config import BACKENDS, StoreConfig, load_config
from shared.exceptions import ConfigError

from .base import StorageAdapter
from .local_adapter import LocalStorageAdapter
from .media import KeyValueMedium, MediumError, MemoryMedium, SqliteMedium
from .migration import LegacyMigrator
from .remote_adapter import RemoteStorageAdapter


class StorageAdapterFactory:
    """Factory for producing storage adapters based on configuration."""

    @staticmethod
    def create_medium(config: StoreConfig) -> KeyValueMedium:
        """Local medium: SQLite file when LOCAL_DB_PATH is set, memory otherwise."""
        if config.local_db_path:
            try:
                return SqliteMedium(config.local_db_path, quota=config.local_quota_bytes)
            except (ValueError, MediumError) as exc:
                raise ConfigError(f"Unusable LOCAL_DB_PATH: {exc}") from exc
        return MemoryMedium(quota=config.local_quota_bytes)

    @staticmethod
    def create(config: StoreConfig, medium: Optional[KeyValueMedium] = None) -> StorageAdapter:
        """
        Create the storage adapter named by ``config.backend``.

        Args:
            config: StoreConfig with backend settings
            medium: Local medium to reuse (local backend only)

        Returns:
            LocalStorageAdapter or RemoteStorageAdapter
        """
        if config.backend not in BACKENDS:
            raise ConfigError(
                f"Unsupported STORAGE_BACKEND {config.backend!r}; expected one of {', '.join(BACKENDS)}"
            )
        if config.backend == "remote":
            return RemoteStorageAdapter(config.pg_conn, password=config.pg_password)
        return LocalStorageAdapter(
            medium or StorageAdapterFactory.create_medium(config),
            namespace=config.namespace,
        )


@dataclass
class StoreContext:
    config: StoreConfig
    store: StorageAdapter
    medium: KeyValueMedium
    migrator: LegacyMigrator
    migrated: bool = False


async def bootstrap(config: Optional[StoreConfig] = None) -> StoreContext:
    """Build the process-wide store and run the legacy migration if enabled.

    The local medium always exists: it is the local backend's storage, and
    the place legacy data is found for either backend.
    """
    config = config or load_config()
    medium = StorageAdapterFactory.create_medium(config)
    store = StorageAdapterFactory.create(config, medium=medium)
    migrator = LegacyMigrator(medium, store, legacy_key=config.legacy_key)
    context = StoreContext(config=config, store=store, medium=medium, migrator=migrator)
    if config.auto_migrate:
        context.migrated = await migrator.migrate()
    return context


__all__ = ["StorageAdapterFactory", "StoreContext", "bootstrap"]
