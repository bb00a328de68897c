"""Shared utilities and configuration for the studio store."""

from .config import StoreConfig, load_config
from .exceptions import (
    BackupCorruptionError,
    ConfigError,
    NotFoundError,
    ReadFailure,
    SchemaDriftError,
    SchemaValidationError,
    SharedError,
    StorageError,
    WriteFailure,
)

__all__ = [
    "StoreConfig",
    "load_config",
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
