"""Tests for record schemas, field maps and partial updates."""

from datetime import datetime, timezone

import pytest

from domain import (
    SCHEMAS,
    BulkUpdate,
    Collection,
    FieldMap,
    FieldSpec,
    PartialUpdate,
    coerce_bulk,
    coerce_partial,
    field_map_for,
    schema_for,
    table_for,
    validate_partial,
)
from domain.schemas import to_snake_case
from shared.exceptions import SchemaValidationError


@pytest.mark.parametrize(
    "name,expected",
    [
        ("id", "id"),
        ("customerId", "customer_id"),
        ("glazeRatePerCubicInch", "glaze_rate_per_cubic_inch"),
        ("readyForPickupDate", "ready_for_pickup_date"),
        ("imageURL", "image_url"),
        ("URLPath", "url_path"),
        ("version2Name", "version2_name"),
    ],
)
def test_to_snake_case(name, expected):
    assert to_snake_case(name) == expected


@pytest.mark.parametrize("collection", list(SCHEMAS))
def test_every_field_round_trips_through_its_map(collection):
    """Each declared field maps to a unique column and back to itself."""
    field_map = field_map_for(collection)
    columns = set()
    for spec in field_map.specs:
        column = field_map.column_for(spec.name)
        assert field_map.field_for(column) == spec.name
        columns.add(column)
    assert len(columns) == len(field_map.specs)


def test_known_collections_and_tables():
    assert set(SCHEMAS) == set(Collection.ALL)
    assert table_for("eventBookings") == "event_bookings"
    assert table_for("notificationSettings") == "notification_settings"
    assert table_for("studioSettings") == "studio_settings"
    assert table_for("eventTemplates") == "event_templates"
    assert table_for("customers") == "customers"


def test_field_kinds_come_from_record_types():
    pieces = schema_for("pieces")
    assert set(pieces.fields_of_kind("datetime")) == {
        "createdAt",
        "updatedAt",
        "readyForPickupDate",
        "pickedUpDate",
    }
    assert pieces.field_map.get("cubicInches").kind == "float"
    assert pieces.field_map.get("paidGlaze").kind == "bool"
    assert pieces.field_map.get("status").kind == "text"
    assert schema_for("studioSettings").field_map.get("businessHours").kind == "object"


def test_nested_maps_translate_nested_keys():
    field_map = field_map_for("studioSettings")
    record = {
        "id": "default",
        "glazeRatePerCubicInch": 0.2,
        "businessHours": {"monday": {"open": "10:00", "close": "18:00"}},
    }
    columns = field_map.to_columns(record)
    assert columns == {
        "id": "default",
        "glaze_rate_per_cubic_inch": 0.2,
        "business_hours": {"monday": {"open": "10:00", "close": "18:00"}},
    }
    assert field_map.to_fields(columns) == record


def test_transient_fields_are_dropped_on_write():
    columns = field_map_for("customers").to_columns({"id": "c1", "name": "Ada", "checkedIn": True})
    assert columns == {"id": "c1", "name": "Ada"}


def test_unknown_fields_are_rejected_by_strict_maps():
    with pytest.raises(SchemaValidationError):
        field_map_for("pieces").to_columns({"id": "p1", "glazeColour": "blue"})


def test_unknown_collection_passes_fields_through():
    record = {"id": "x", "someField": 1}
    assert field_map_for("scratch").to_columns(record) == record
    assert validate_partial("scratch", {"anything": 1}) == {"anything": 1}


def test_duplicate_columns_fail_at_build_time():
    with pytest.raises(ValueError):
        FieldMap([FieldSpec("imageURL", "image_url", "text"), FieldSpec("imageUrl", "image_url", "text")])


def test_partial_update_validates_field_names():
    update = PartialUpdate.of("pieces", paidGlaze=True, cubicInches=12)
    assert dict(update.fields) == {"paidGlaze": True, "cubicInches": 12}

    with pytest.raises(SchemaValidationError):
        PartialUpdate.of("pieces", paid_glaze=True)
    with pytest.raises(SchemaValidationError):
        validate_partial("customers", {"id": "other"})
    with pytest.raises(SchemaValidationError):
        validate_partial("customers", ["name"])


def test_coerce_partial_checks_collection():
    update = PartialUpdate.of("events", currentBookings=3)
    assert coerce_partial("events", update) == {"currentBookings": 3}
    with pytest.raises(SchemaValidationError):
        coerce_partial("pieces", update)


def test_coerce_bulk_accepts_both_entry_shapes():
    stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    entries = coerce_bulk(
        "pieces",
        [
            BulkUpdate("p1", {"eventId": None}),
            {"id": "p2", "fields": {"status": "glazed"}},
            {"id": 3, "data": {"pickedUpDate": stamp}},
        ],
    )
    assert entries == [
        ("p1", {"eventId": None}),
        ("p2", {"status": "glazed"}),
        ("3", {"pickedUpDate": stamp}),
    ]
    with pytest.raises(SchemaValidationError):
        coerce_bulk("pieces", [{"fields": {"status": "glazed"}}])
    with pytest.raises(SchemaValidationError):
        coerce_bulk("pieces", [BulkUpdate("p1", {"colour": "red"})])
