import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


DEFAULT_NAMESPACE = "clay-cafe"
DEFAULT_LEGACY_KEY = "clay-cafe-database"
DEFAULT_LOCAL_QUOTA_BYTES = 5 * 1024 * 1024
BACKENDS = ("local", "remote")


@dataclass
class StoreConfig:
    """Configuration for the collection store and its composition root."""

    backend: str
    namespace: str
    local_db_path: str
    local_quota_bytes: int
    pg_conn: str
    legacy_key: str
    auto_migrate: bool
    pg_password: Optional[str] = None


def _parse_int(value: Optional[str], default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_optional_str(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    return value


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "y", "on")


def load_config() -> StoreConfig:
    """Load configuration from environment variables."""
    load_dotenv()

    backend = os.getenv("STORAGE_BACKEND", "local").strip().lower() or "local"

    config = StoreConfig(
        backend=backend,
        namespace=os.getenv("STORE_NAMESPACE", DEFAULT_NAMESPACE) or DEFAULT_NAMESPACE,
        local_db_path=os.getenv("LOCAL_DB_PATH", ""),
        local_quota_bytes=max(0, _parse_int(os.getenv("LOCAL_QUOTA_BYTES"), DEFAULT_LOCAL_QUOTA_BYTES)),
        pg_conn=os.getenv("PG_CONN", ""),
        legacy_key=os.getenv("LEGACY_KEY", DEFAULT_LEGACY_KEY) or DEFAULT_LEGACY_KEY,
        auto_migrate=_parse_bool(os.getenv("AUTO_MIGRATE", "true"), True),
        pg_password=_parse_optional_str(os.getenv("PG_PASSWORD")),
    )
    return config


__all__ = ["StoreConfig", "load_config", "BACKENDS", "DEFAULT_NAMESPACE", "DEFAULT_LEGACY_KEY"]
