"""Per-collection id index for the local adapter.

The index is the only record of which ids a collection holds; the local
adapter never scans the medium to enumerate a collection.
"""

import json
from typing import List

from .media import KeyValueMedium

INDEX_SUFFIX = "_index"


class CollectionIndex:
    """Ordered id list stored as JSON under ``<namespace>:<collection>:_index``."""

    def __init__(self, medium: KeyValueMedium, namespace: str):
        self.medium = medium
        self.namespace = namespace

    def key(self, collection: str) -> str:
        return f"{self.namespace}:{collection}:{INDEX_SUFFIX}"

    def get(self, collection: str) -> List[str]:
        raw = self.medium.get_item(self.key(collection))
        if raw is None:
            return []
        try:
            ids = json.loads(raw)
        except ValueError:
            print(f"[warn] index for {collection} is not valid JSON; treating as empty")
            return []
        if not isinstance(ids, list) or not all(isinstance(item, str) for item in ids):
            print(f"[warn] index for {collection} is not a list of ids; treating as empty")
            return []
        return ids

    def set(self, collection: str, ids: List[str]) -> None:
        self.medium.set_item(self.key(collection), json.dumps(ids))

    def add(self, collection: str, record_id: str) -> None:
        ids = self.get(collection)
        if record_id in ids:
            return
        ids.append(record_id)
        self.set(collection, ids)

    def remove(self, collection: str, record_id: str) -> None:
        ids = self.get(collection)
        if record_id not in ids:
            return
        self.set(collection, [item for item in ids if item != record_id])

    def exists(self, collection: str) -> bool:
        return self.medium.get_item(self.key(collection)) is not None

    def drop(self, collection: str) -> None:
        self.medium.remove_item(self.key(collection))


__all__ = ["CollectionIndex", "INDEX_SUFFIX"]
