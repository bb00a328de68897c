"""One-time migration of the legacy single-blob store.

Early dashboard builds kept everything in one JSON document under a single
medium key, with dates as plain ISO strings. ``LegacyMigrator.migrate``
moves that document into the collection store and removes the key, so a
second call finds nothing to do.
"""

import json
from typing import Any, Dict, List, Mapping

from domain import SINGLETON_ID, Collection, schema_for
from shared.config import DEFAULT_LEGACY_KEY

from .base import StorageAdapter
from .codec import parse_datetime
from .media import KeyValueMedium

LIST_COLLECTIONS = (
    Collection.CUSTOMERS,
    Collection.PIECES,
    Collection.EVENTS,
    Collection.EVENT_BOOKINGS,
)


def convert_legacy_dates(collection: str, record: Mapping[str, Any]) -> Dict[str, Any]:
    """Turn the schema's datetime fields from ISO strings into datetimes.

    Only fields the schema declares as datetimes are touched. A value that
    does not parse is dropped with a warning.
    """
    converted = dict(record)
    schema = schema_for(collection)
    if schema is None:
        return converted
    for name in schema.fields_of_kind("datetime"):
        value = converted.get(name)
        if not isinstance(value, str):
            continue
        try:
            converted[name] = parse_datetime(value)
        except ValueError:
            print(f"[warn] legacy {collection}:{converted.get('id')} has unreadable {name}={value!r}; dropped")
            del converted[name]
    return converted


class LegacyMigrator:
    def __init__(self, medium: KeyValueMedium, store: StorageAdapter, legacy_key: str = DEFAULT_LEGACY_KEY):
        self.medium = medium
        self.store = store
        self.legacy_key = legacy_key

    def pending(self) -> bool:
        return self.medium.get_item(self.legacy_key) is not None

    async def migrate(self) -> bool:
        """Move legacy data into the store. Returns True if anything moved."""
        raw = self.medium.get_item(self.legacy_key)
        if raw is None:
            return False
        try:
            parsed = json.loads(raw)
        except ValueError as exc:
            print(f"[warn] legacy data under {self.legacy_key!r} is not valid JSON: {exc}")
            return False
        if not isinstance(parsed, dict):
            print(f"[warn] legacy data under {self.legacy_key!r} is not an object; left in place")
            return False

        for collection in LIST_COLLECTIONS:
            items = parsed.get(collection)
            if not isinstance(items, list):
                continue
            records: List[Dict[str, Any]] = [
                convert_legacy_dates(collection, item) for item in items if isinstance(item, dict)
            ]
            await self.store.write_all(collection, records)
            print(f"[migrate] {collection}: {len(records)} records")

        for collection in Collection.SINGLETONS:
            settings = parsed.get(collection)
            if isinstance(settings, dict):
                record = convert_legacy_dates(collection, settings)
                record.pop("id", None)
                await self.store.write_one(collection, SINGLETON_ID, record)
                print(f"[migrate] {collection}: settings")

        self.medium.remove_item(self.legacy_key)
        print(f"[migrate] legacy data moved; removed {self.legacy_key!r}")
        return True


__all__ = ["LegacyMigrator", "convert_legacy_dates"]
