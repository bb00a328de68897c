"""Flat key-value media for the local storage adapter.

A medium stores string values under string keys and nothing else: it knows
no collections, ids or dates. ``MemoryMedium`` lives in process memory and
can enforce a size quota the way a browser's local storage does;
``SqliteMedium`` keeps the pairs in a single SQLite table on disk.
"""

import os
import sqlite3
from typing import Dict, List, Optional, Protocol


class MediumError(Exception):
    """The medium rejected an operation."""


class MediumQuotaExceeded(MediumError):
    """A write would push the medium past its size quota."""


class KeyValueMedium(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> List[str]: ...


def _entry_size(key: str, value: str) -> int:
    return len(key) + len(value)


class MemoryMedium:
    """Dict-backed medium with an optional quota counted in characters."""

    def __init__(self, quota: int = 0, initial: Optional[Dict[str, str]] = None):
        self.quota = quota
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise MediumError(f"Values must be strings, got {type(value).__name__}")
        if self.quota > 0:
            current = self._items.get(key)
            used = self.used() - (_entry_size(key, current) if current is not None else 0)
            if used + _entry_size(key, value) > self.quota:
                raise MediumQuotaExceeded(
                    f"Quota of {self.quota} exceeded while writing {key!r}"
                )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)

    def used(self) -> int:
        return sum(_entry_size(key, value) for key, value in self._items.items())


class SqliteMedium:
    """File-backed medium: one ``kv`` table in a SQLite database.

    Each operation opens its own connection and commits before returning,
    so the file is always consistent between calls.
    """

    def __init__(self, path: str, quota: int = 0):
        if os.path.isdir(path):
            raise ValueError(f"Path points to a directory, expected file: {path}")
        self.path = path
        self.quota = quota
        conn = self._connect()
        try:
            with conn:
                conn.execute("CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
        except sqlite3.Error as exc:
            raise MediumError(f"Unable to create kv table in {path}: {exc}") from exc
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.path)
        except sqlite3.Error as exc:
            raise MediumError(f"Unable to open {self.path}: {exc}") from exc
        try:
            conn.execute("PRAGMA busy_timeout=30000")
        except sqlite3.Error as exc:
            conn.close()
            raise MediumError(f"Unable to open {self.path}: {exc}") from exc
        return conn

    def get_item(self, key: str) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise MediumError(f"Unable to read {key!r}: {exc}") from exc
        finally:
            conn.close()
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise MediumError(f"Values must be strings, got {type(value).__name__}")
        conn = self._connect()
        try:
            with conn:
                if self.quota > 0:
                    row = conn.execute(
                        "SELECT COALESCE(SUM(LENGTH(key) + LENGTH(value)), 0) FROM kv WHERE key != ?",
                        (key,),
                    ).fetchone()
                    if row[0] + _entry_size(key, value) > self.quota:
                        raise MediumQuotaExceeded(
                            f"Quota of {self.quota} exceeded while writing {key!r}"
                        )
                conn.execute(
                    "INSERT INTO kv (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
        except sqlite3.Error as exc:
            raise MediumError(f"Unable to write {key!r}: {exc}") from exc
        finally:
            conn.close()

    def remove_item(self, key: str) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise MediumError(f"Unable to remove {key!r}: {exc}") from exc
        finally:
            conn.close()

    def keys(self) -> List[str]:
        conn = self._connect()
        try:
            rows = conn.execute("SELECT key FROM kv ORDER BY rowid").fetchall()
        except sqlite3.Error as exc:
            raise MediumError(f"Unable to list keys: {exc}") from exc
        finally:
            conn.close()
        return [row[0] for row in rows]

    def used(self) -> int:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT COALESCE(SUM(LENGTH(key) + LENGTH(value)), 0) FROM kv"
            ).fetchone()
        except sqlite3.Error as exc:
            raise MediumError(f"Unable to measure usage: {exc}") from exc
        finally:
            conn.close()
        return int(row[0])


__all__ = [
    "KeyValueMedium",
    "MediumError",
    "MediumQuotaExceeded",
    "MemoryMedium",
    "SqliteMedium",
]
