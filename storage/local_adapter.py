"""Local storage adapter over a flat key-value medium.

Key layout:
    <namespace>:<collection>:<id>       one encoded record
    <namespace>:<collection>:_index     JSON list of the collection's ids
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from domain import coerce_bulk, coerce_partial
from shared.config import DEFAULT_NAMESPACE
from shared.exceptions import (
    BackupCorruptionError,
    NotFoundError,
    ReadFailure,
    SchemaDriftError,
    WriteFailure,
)

from . import codec
from .backup import BackupDocument, split_key
from .base import UPDATED_AT, PartialFields, Record, StorageAdapter, utc_now
from .index import INDEX_SUFFIX, CollectionIndex
from .media import KeyValueMedium, MediumError


@dataclass
class StorageInfo:
    used: int
    available: Optional[int]
    collections: List[str]


class LocalStorageAdapter(StorageAdapter):
    """Collection store backed by a ``KeyValueMedium``.

    The medium is synchronous; every coroutine here completes without
    yielding, so operations never interleave.
    """

    backend = "local"

    def __init__(self, medium: KeyValueMedium, namespace: str = DEFAULT_NAMESPACE):
        self.medium = medium
        self.namespace = namespace
        self.index = CollectionIndex(medium, namespace)

    def item_key(self, collection: str, record_id: str) -> str:
        return f"{self.namespace}:{collection}:{record_id}"

    @property
    def _prefix(self) -> str:
        return f"{self.namespace}:"

    async def read_all(self, collection: str) -> List[Record]:
        records = []
        for record_id in self._index_ids(collection):
            try:
                record = await self.read_one(collection, record_id)
            except SchemaDriftError as exc:
                print(f"[warn] skipping {collection}:{record_id}: {exc}")
                continue
            if record is not None:
                records.append(record)
        return records

    async def read_one(self, collection: str, record_id: str) -> Optional[Record]:
        key = self.item_key(collection, record_id)
        try:
            raw = self.medium.get_item(key)
        except MediumError as exc:
            raise ReadFailure(collection, str(exc)) from exc
        if raw is None:
            return None
        try:
            record = codec.loads(raw)
        except SchemaDriftError as exc:
            raise SchemaDriftError(f"{collection}:{record_id}: {exc}") from exc
        if not isinstance(record, dict):
            raise SchemaDriftError(f"{collection}:{record_id}: stored value is not a record")
        return record

    async def write_all(self, collection: str, records: Sequence[Mapping[str, Any]]) -> None:
        await self.clear(collection)
        for record in records:
            record_id = record.get("id")
            if not record_id:
                print(f"[warn] skipping {collection} record without id")
                continue
            await self.write_one(collection, str(record_id), record)

    async def write_one(self, collection: str, record_id: str, record: Mapping[str, Any]) -> None:
        data = dict(record)
        data["id"] = record_id
        try:
            payload = codec.dumps(data)
        except (TypeError, ValueError) as exc:
            raise WriteFailure(collection, record_id, f"record is not serializable: {exc}") from exc
        try:
            self.medium.set_item(self.item_key(collection, record_id), payload)
            self.index.add(collection, record_id)
        except MediumError as exc:
            raise WriteFailure(collection, record_id, str(exc)) from exc

    async def update_partial(
        self, collection: str, record_id: str, fields: PartialFields
    ) -> Optional[Record]:
        changes = coerce_partial(collection, fields)
        existing = await self.read_one(collection, record_id)
        if existing is None:
            raise NotFoundError(collection, record_id)
        merged = {**existing, **changes, UPDATED_AT: utc_now()}
        await self.write_one(collection, record_id, merged)
        return merged

    async def update_bulk(self, collection: str, updates: Sequence[Any]) -> int:
        # The medium has no batch call; one stamp keeps the entries consistent.
        entries = coerce_bulk(collection, updates)
        stamp = utc_now()
        applied = 0
        for record_id, changes in entries:
            try:
                existing = await self.read_one(collection, record_id)
            except SchemaDriftError as exc:
                print(f"[warn] replacing undecodable {collection}:{record_id}: {exc}")
                existing = None
            merged = {**(existing or {"id": record_id}), **changes, UPDATED_AT: stamp}
            await self.write_one(collection, record_id, merged)
            applied += 1
        return applied

    async def delete_one(self, collection: str, record_id: str) -> bool:
        key = self.item_key(collection, record_id)
        try:
            existed = self.medium.get_item(key) is not None
            self.medium.remove_item(key)
            self.index.remove(collection, record_id)
        except MediumError as exc:
            raise WriteFailure(collection, record_id, str(exc)) from exc
        return existed

    async def exists(self, collection: str) -> bool:
        try:
            return self.index.exists(collection)
        except MediumError as exc:
            raise ReadFailure(collection, str(exc)) from exc

    async def clear(self, collection: str) -> None:
        try:
            for record_id in self.index.get(collection):
                self.medium.remove_item(self.item_key(collection, record_id))
            self.index.drop(collection)
        except MediumError as exc:
            raise WriteFailure(collection, None, str(exc)) from exc

    async def backup(self) -> str:
        data: Dict[str, str] = {}
        for key in self._namespace_keys():
            value = self._get_raw(key)
            if value is not None:
                data[key] = value
        return BackupDocument.for_local(data).to_json()

    async def restore(self, document: Union[str, Mapping[str, Any]]) -> List[str]:
        doc = BackupDocument.parse(document)
        if doc.data is None:
            collections = doc.records_by_collection()
            for name, records in collections.items():
                await self.write_all(name, records)
                print(f"[restore] {name}: {len(records)} records")
            return list(collections)

        for key in doc.data:
            prefix, _, _ = split_key(key)
            if prefix != self.namespace:
                raise BackupCorruptionError(
                    f"Backup key {key!r} is outside namespace {self.namespace!r}"
                )

        names = doc.collection_names(self.namespace)
        existing_keys = self._namespace_keys()
        for name in names:
            collection_prefix = f"{self.namespace}:{name}:"
            try:
                for key in existing_keys:
                    if key.startswith(collection_prefix):
                        self.medium.remove_item(key)
                for key, value in doc.data.items():
                    if key.startswith(collection_prefix):
                        self.medium.set_item(key, value)
            except MediumError as exc:
                raise WriteFailure(name, None, f"restore failed: {exc}") from exc
            count = sum(
                1
                for key in doc.data
                if key.startswith(collection_prefix) and not key.endswith(f":{INDEX_SUFFIX}")
            )
            print(f"[restore] {name}: {count} records")
        return names

    def storage_info(self) -> StorageInfo:
        """Characters used under the namespace and the collections present.

        ``available`` is None when the medium enforces no quota.
        """
        used = 0
        collections: List[str] = []
        for key in self._namespace_keys():
            value = self._get_raw(key) or ""
            used += len(key) + len(value)
            parts = key.split(":")
            if len(parts) >= 3 and parts[1] not in collections:
                collections.append(parts[1])
        quota = getattr(self.medium, "quota", 0)
        available = max(0, quota - used) if quota > 0 else None
        return StorageInfo(used=used, available=available, collections=collections)

    def _get_raw(self, key: str) -> Optional[str]:
        try:
            return self.medium.get_item(key)
        except MediumError as exc:
            raise ReadFailure(self.namespace, str(exc)) from exc

    def _index_ids(self, collection: str) -> List[str]:
        try:
            return self.index.get(collection)
        except MediumError as exc:
            raise ReadFailure(collection, str(exc)) from exc

    def _namespace_keys(self) -> List[str]:
        try:
            return [key for key in self.medium.keys() if key.startswith(self._prefix)]
        except MediumError as exc:
            raise ReadFailure(self.namespace, str(exc)) from exc


__all__ = ["LocalStorageAdapter", "StorageInfo"]
