"""Typed codec for records.

Dates are wrapped in an explicit tag when encoded
(``{"__type": "datetime", "value": "<ISO-8601>"}``) and only tagged values
are turned back into dates. Plain strings stay strings whatever they look
like or whichever field they sit in. A mapping that already carries a
``__type`` key is wrapped as ``{"__type": "map", "value": {...}}`` so it
never reads back as a tag.
"""

import json
from datetime import date, datetime
from typing import Any, Mapping

from shared.exceptions import SchemaDriftError

TYPE_KEY = "__type"
VALUE_KEY = "value"
DATETIME_TAG = "datetime"
DATE_TAG = "date"
MAP_TAG = "map"
# Written by older dashboard builds; decoded the same as DATETIME_TAG.
LEGACY_DATETIME_TAG = "Date"


def encode(value: Any) -> Any:
    """Convert a record (or any value inside one) to a JSON-safe form."""
    if isinstance(value, datetime):
        return {TYPE_KEY: DATETIME_TAG, VALUE_KEY: value.isoformat()}
    if isinstance(value, date):
        return {TYPE_KEY: DATE_TAG, VALUE_KEY: value.isoformat()}
    if isinstance(value, Mapping):
        encoded = {str(key): encode(item) for key, item in value.items()}
        if TYPE_KEY in encoded:
            # a plain mapping that happens to use the tag key
            return {TYPE_KEY: MAP_TAG, VALUE_KEY: encoded}
        return encoded
    if isinstance(value, (list, tuple)):
        return [encode(item) for item in value]
    return value


def decode(value: Any) -> Any:
    """Reverse ``encode``. Raises SchemaDriftError on a malformed tag."""
    if isinstance(value, Mapping):
        if TYPE_KEY in value:
            return _decode_tagged(value)
        return {key: decode(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode(item) for item in value]
    return value


def _decode_tagged(value: Mapping) -> Any:
    tag = value.get(TYPE_KEY)
    raw = value.get(VALUE_KEY)
    if tag == MAP_TAG:
        if not isinstance(raw, Mapping):
            raise SchemaDriftError(f"Tagged {tag!r} value must be an object, got {type(raw).__name__}")
        return {key: decode(item) for key, item in raw.items()}
    if not isinstance(raw, str):
        raise SchemaDriftError(f"Tagged {tag!r} value must be a string, got {type(raw).__name__}")
    try:
        if tag in (DATETIME_TAG, LEGACY_DATETIME_TAG):
            return parse_datetime(raw)
        if tag == DATE_TAG:
            return date.fromisoformat(raw)
    except ValueError as exc:
        raise SchemaDriftError(f"Malformed {tag} value {raw!r}") from exc
    raise SchemaDriftError(f"Unknown type tag {tag!r}")


def parse_datetime(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z`` for UTC."""
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


def dumps(record: Any) -> str:
    return json.dumps(encode(record), ensure_ascii=False, separators=(",", ":"))


def loads(text: str) -> Any:
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise SchemaDriftError(f"Stored value is not valid JSON: {exc}") from exc
    return decode(payload)


__all__ = ["encode", "decode", "dumps", "loads", "parse_datetime"]
