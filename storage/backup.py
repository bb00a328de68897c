"""Portable backup documents.

Two layouts share one JSON envelope (``timestamp``, ``version``,
``backend``):

- local: ``data`` holds every raw key/value pair under the namespace prefix;
- remote: ``collections`` maps collection names to arrays of encoded records.

Older remote backups carried the collection arrays as top-level keys; those
are still recognized by collection name. Parsing validates the whole
document up front so a restore can fail before anything is cleared.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from domain import SINGLETON_ID, Collection
from shared.exceptions import BackupCorruptionError, SchemaDriftError

from . import codec
from .index import INDEX_SUFFIX

LOCAL_VERSION = "1.0"
REMOTE_VERSION = "1.0.0"
ENVELOPE_KEYS = ("timestamp", "version", "backend", "data", "collections")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class BackupDocument:
    timestamp: str
    version: str
    backend: str
    data: Optional[Dict[str, str]] = None
    collections: Optional[Dict[str, List[Dict[str, Any]]]] = None

    @classmethod
    def for_local(cls, data: Mapping[str, str]) -> "BackupDocument":
        return cls(
            timestamp=utc_timestamp(),
            version=LOCAL_VERSION,
            backend="local",
            data=dict(data),
        )

    @classmethod
    def for_remote(cls, collections: Mapping[str, List[Dict[str, Any]]]) -> "BackupDocument":
        return cls(
            timestamp=utc_timestamp(),
            version=REMOTE_VERSION,
            backend="remote",
            collections={name: list(records) for name, records in collections.items()},
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "version": self.version,
            "backend": self.backend,
        }
        if self.data is not None:
            payload["data"] = dict(self.data)
        if self.collections is not None:
            payload["collections"] = {
                name: [codec.encode(record) for record in records]
                for name, records in self.collections.items()
            }
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), ensure_ascii=False)

    @classmethod
    def parse(cls, raw: Union[str, bytes, Mapping[str, Any]]) -> "BackupDocument":
        """Parse and validate a backup document.

        Raises:
            BackupCorruptionError: if the document is not JSON, has neither a
                ``data`` nor a ``collections`` section, or any entry is
                malformed.
        """
        payload = _load_payload(raw)
        timestamp = payload.get("timestamp")
        version = payload.get("version")
        if not isinstance(timestamp, str) or not isinstance(version, str):
            raise BackupCorruptionError("Backup is missing its timestamp or version")

        if "data" in payload:
            data = _validate_raw_pairs(payload["data"])
            return cls(timestamp=timestamp, version=version, backend="local", data=data)

        if "collections" in payload:
            section = payload["collections"]
            if not isinstance(section, Mapping):
                raise BackupCorruptionError("Backup 'collections' must be an object")
        else:
            section = {
                key: value
                for key, value in payload.items()
                if key not in ENVELOPE_KEYS and key in Collection.ALL
            }
            if not section:
                raise BackupCorruptionError("Backup contains neither 'data' nor any collection")

        collections = {
            name: _validate_records(name, value) for name, value in section.items()
        }
        return cls(timestamp=timestamp, version=version, backend="remote", collections=collections)

    def collection_names(self, namespace: Optional[str] = None) -> List[str]:
        """Names of the collections this document carries."""
        if self.collections is not None:
            return list(self.collections)
        names: List[str] = []
        for key in self.data or {}:
            prefix, collection, _ = split_key(key)
            if namespace is not None and prefix != namespace:
                continue
            if collection not in names:
                names.append(collection)
        return names

    def records_by_collection(self) -> Dict[str, List[Dict[str, Any]]]:
        """Decoded records per collection, whichever layout the document uses."""
        if self.collections is not None:
            return {name: list(records) for name, records in self.collections.items()}
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for key, value in (self.data or {}).items():
            _, collection, record_id = split_key(key)
            grouped.setdefault(collection, [])
            if record_id == INDEX_SUFFIX:
                continue
            try:
                record = codec.loads(value)
            except SchemaDriftError as exc:
                raise BackupCorruptionError(f"Backup entry {key!r} does not decode: {exc}") from exc
            if not isinstance(record, dict):
                raise BackupCorruptionError(f"Backup entry {key!r} is not a record")
            record.setdefault("id", record_id)
            grouped[collection].append(record)
        return grouped


def split_key(key: str) -> Tuple[str, str, str]:
    """Split ``<namespace>:<collection>:<id>`` into its parts."""
    prefix, sep, rest = key.partition(":")
    collection, sep2, record_id = rest.partition(":")
    if not sep or not sep2 or not prefix or not collection or not record_id:
        raise BackupCorruptionError(f"Backup key {key!r} is not <namespace>:<collection>:<id>")
    return prefix, collection, record_id


def _load_payload(raw: Union[str, bytes, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise BackupCorruptionError(f"Backup is not valid JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise BackupCorruptionError("Backup must be a JSON object")
    return payload


def _validate_raw_pairs(data: Any) -> Dict[str, str]:
    if not isinstance(data, Mapping):
        raise BackupCorruptionError("Backup 'data' must be an object")
    pairs: Dict[str, str] = {}
    for key, value in data.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise BackupCorruptionError(f"Backup entry {key!r} must map a string key to a string")
        _, _, record_id = split_key(key)
        if record_id == INDEX_SUFFIX:
            _validate_index_value(key, value)
        pairs[key] = value
    return pairs


def _validate_index_value(key: str, value: str) -> None:
    try:
        ids = json.loads(value)
    except ValueError as exc:
        raise BackupCorruptionError(f"Index {key!r} is not valid JSON") from exc
    if not isinstance(ids, list) or not all(isinstance(item, str) for item in ids):
        raise BackupCorruptionError(f"Index {key!r} must be a list of ids")


def _validate_records(name: str, value: Any) -> List[Dict[str, Any]]:
    if isinstance(value, Mapping):
        # singleton settings were once stored as a bare object
        value = [dict(value, id=value.get("id", SINGLETON_ID))]
    if not isinstance(value, list):
        raise BackupCorruptionError(f"Backup collection {name!r} must be an array")
    records = []
    for position, item in enumerate(value):
        if not isinstance(item, Mapping):
            raise BackupCorruptionError(f"Backup {name}[{position}] is not a record")
        if not isinstance(item.get("id"), str) or not item.get("id"):
            raise BackupCorruptionError(f"Backup {name}[{position}] has no string id")
        try:
            records.append(codec.decode(dict(item)))
        except SchemaDriftError as exc:
            raise BackupCorruptionError(f"Backup {name}[{position}] does not decode: {exc}") from exc
    return records


__all__ = [
    "BackupDocument",
    "LOCAL_VERSION",
    "REMOTE_VERSION",
    "split_key",
    "utc_timestamp",
]
