"""Tests for the typed record codec."""

from datetime import date, datetime, timedelta, timezone

import pytest

from shared.exceptions import SchemaDriftError
from storage import codec


def _sample_record():
    return {
        "id": "e1",
        "name": "Glaze night",
        "date": datetime(2024, 3, 9, 18, 30, 15, 123000, tzinfo=timezone.utc),
        "maxCapacity": 12,
        "price": 15.5,
        "tags": ["glaze", "evening"],
        "schedule": {
            "opensOn": date(2024, 3, 1),
            "reminders": [datetime(2024, 3, 8, 9, 0, tzinfo=timezone(timedelta(hours=-5)))],
        },
        "notes": None,
    }


def test_round_trip_keeps_dates_and_nesting():
    """Nested mappings, lists and dates survive encode/decode unchanged."""
    record = _sample_record()
    assert codec.loads(codec.dumps(record)) == record


def test_dates_are_tagged():
    encoded = codec.encode({"when": datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc), "day": date(2024, 1, 2)})
    assert encoded["when"] == {"__type": "datetime", "value": "2024-01-02T03:04:05+00:00"}
    assert encoded["day"] == {"__type": "date", "value": "2024-01-02"}


def test_date_like_strings_stay_strings():
    """Only tagged values become dates; field names and formats never matter."""
    record = {"createdAt": "2024-01-02T03:04:05Z", "startTime": "10:00", "date": "2024-05-01"}
    assert codec.loads(codec.dumps(record)) == record


def test_legacy_tag_and_trailing_z():
    decoded = codec.decode({"__type": "Date", "value": "2024-01-02T03:04:05.000Z"})
    assert decoded == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value",
    [
        {"__type": "datetime", "value": "not a date"},
        {"__type": "datetime", "value": 12},
        {"__type": "duration", "value": "P1D"},
        {"__type": "date", "value": "2024-13-40"},
    ],
)
def test_malformed_tags_raise_schema_drift(value):
    with pytest.raises(SchemaDriftError):
        codec.decode({"id": "x", "field": value})


def test_loads_rejects_invalid_json():
    with pytest.raises(SchemaDriftError):
        codec.loads("{not json")


def test_naive_datetime_stays_naive():
    naive = datetime(2024, 6, 1, 12, 0)
    assert codec.loads(codec.dumps({"at": naive}))["at"] == naive


def test_mappings_using_the_tag_key_round_trip():
    record = {
        "id": "t1",
        "meta": {"__type": "date", "value": "2024-01-01"},
        "extra": {"__type": "kiln", "value": "cone 6", "fired": date(2024, 2, 3)},
    }
    encoded = codec.encode(record)
    assert encoded["meta"] == {"__type": "map", "value": {"__type": "date", "value": "2024-01-01"}}
    assert codec.loads(codec.dumps(record)) == record


def test_malformed_map_tag_raises_schema_drift():
    with pytest.raises(SchemaDriftError):
        codec.decode({"__type": "map", "value": "not an object"})
