"""Tests for backup documents and restore on both backends."""

import asyncio
import json
from datetime import date, datetime, timezone

import pytest

from shared.exceptions import BackupCorruptionError
from storage import BackupDocument

STAMP = datetime(2024, 6, 1, 17, 45, 30, 500000, tzinfo=timezone.utc)

SAMPLE = {
    "customers": [
        {"id": "c1", "name": "Ada", "email": "ada@example.com", "createdAt": STAMP},
        {"id": "c2", "name": "Bo", "phone": "555-0101", "createdAt": STAMP},
    ],
    "pieces": [
        {"id": "p1", "customerId": "c1", "cubicInches": 12, "paidGlaze": False, "createdAt": STAMP},
    ],
    "events": [
        {"id": "e1", "name": "Raku night", "date": STAMP, "maxCapacity": 8, "currentBookings": 1},
    ],
    "studioSettings": [
        {
            "id": "default",
            "glazeRatePerCubicInch": 0.2,
            "businessHours": {"monday": {"open": "10:00", "close": "18:00"}},
        }
    ],
}


async def _populate(store):
    for collection, records in SAMPLE.items():
        await store.write_all(collection, records)


async def _snapshot(store):
    return {collection: await store.read_all(collection) for collection in SAMPLE}


def _by_id(records):
    return {record["id"]: record for record in records}


def test_restore_of_backup_reproduces_records(store):
    async def scenario():
        await _populate(store)
        before = await _snapshot(store)
        document = await store.backup()
        await store.write_one("customers", "c3", {"name": "Cy"})
        await store.delete_one("pieces", "p1")
        await store.update_partial("events", "e1", {"currentBookings": 5})
        await store.restore(document)
        return before, await _snapshot(store)

    before, after = asyncio.run(scenario())
    for collection in SAMPLE:
        assert _by_id(after[collection]) == _by_id(before[collection])
    assert _by_id(after["customers"])["c1"]["createdAt"] == STAMP


def test_partial_restore_leaves_other_collections(store):
    async def scenario():
        await _populate(store)
        document = json.loads(await store.backup())
        if "data" in document:
            document["data"] = {
                key: value for key, value in document["data"].items() if ":events:" not in key
            }
        else:
            del document["collections"]["events"]
        await store.write_all("events", [{"id": "e9", "name": "Open studio"}])
        await store.write_one("customers", "c3", {"name": "Cy"})
        restored = await store.restore(json.dumps(document))
        return restored, await store.read_all("events"), await store.read_all("customers")

    restored, events, customers = asyncio.run(scenario())
    assert "events" not in restored
    assert [event["id"] for event in events] == ["e9"]
    assert sorted(customer["id"] for customer in customers) == ["c1", "c2"]


@pytest.mark.parametrize(
    "document",
    [
        "{not json",
        "[]",
        json.dumps({"version": "1.0", "data": {}}),
        json.dumps({"timestamp": "t", "version": "1.0"}),
        json.dumps({"timestamp": "t", "version": "1.0", "data": {"clay-cafe:customers:c1": 5}}),
        json.dumps({"timestamp": "t", "version": "1.0", "data": {"no-colons": "{}"}}),
        json.dumps({"timestamp": "t", "version": "1.0", "data": {"clay-cafe:customers:_index": "{}"}}),
        json.dumps({"timestamp": "t", "version": "1.0.0", "collections": {"customers": [{"name": "no id"}]}}),
        json.dumps({"timestamp": "t", "version": "1.0.0", "collections": {"customers": "c1"}}),
        json.dumps(
            {
                "timestamp": "t",
                "version": "1.0.0",
                "collections": {"events": [{"id": "e1", "date": {"__type": "datetime", "value": "later"}}]},
            }
        ),
    ],
)
def test_corrupt_backup_changes_nothing(store, document):
    async def scenario():
        await _populate(store)
        before = await _snapshot(store)
        with pytest.raises(BackupCorruptionError):
            await store.restore(document)
        return before, await _snapshot(store)

    before, after = asyncio.run(scenario())
    assert after == before


def test_local_backup_layout(local_store, medium):
    medium.set_item("clay-cafe-database", "{}")
    asyncio.run(local_store.write_one("customers", "c1", {"name": "Ada"}))

    document = json.loads(asyncio.run(local_store.backup()))
    assert document["version"] == "1.0"
    assert document["backend"] == "local"
    assert set(document["data"]) == {"clay-cafe:customers:c1", "clay-cafe:customers:_index"}
    assert document["data"]["clay-cafe:customers:_index"] == '["c1"]'


def test_local_restore_rejects_foreign_namespace(local_store):
    document = {
        "timestamp": "t",
        "version": "1.0",
        "data": {"other-shop:customers:c1": '{"id":"c1","name":"Ada"}'},
    }
    with pytest.raises(BackupCorruptionError):
        asyncio.run(local_store.restore(document))


def test_remote_backup_restores_into_local_store(remote_store, local_store):
    async def scenario():
        await _populate(remote_store)
        document = await remote_store.backup()
        await local_store.restore(document)
        return await _snapshot(remote_store), await _snapshot(local_store)

    remote, local = asyncio.run(scenario())
    for collection in SAMPLE:
        assert _by_id(local[collection]) == _by_id(remote[collection])


def test_legacy_top_level_layout_is_recognized():
    raw = json.dumps(
        {
            "timestamp": "2023-11-02T08:00:00.000Z",
            "version": "1.0.0",
            "customers": [{"id": "c1", "name": "Ada"}],
            "notificationSettings": {"emailEnabled": False},
            "unrelated": {"ignored": True},
        }
    )
    doc = BackupDocument.parse(raw)
    assert doc.backend == "remote"
    assert doc.collection_names() == ["customers", "notificationSettings"]
    assert doc.collections["notificationSettings"] == [{"id": "default", "emailEnabled": False}]


def test_remote_payload_encodes_dates():
    doc = BackupDocument.for_remote({"events": [{"id": "e1", "opensOn": date(2024, 6, 1)}]})
    payload = doc.to_payload()
    assert payload["collections"]["events"][0]["opensOn"] == {"__type": "date", "value": "2024-06-01"}
    assert BackupDocument.parse(doc.to_json()).collections["events"][0]["opensOn"] == date(2024, 6, 1)
