"""Record schemas and static field maps.

Each known collection gets a ``RecordSchema`` built once at import time from
its TypedDict in ``domain.records``. The schema carries a ``FieldMap``: a
bidirectional table between the domain's camelCase field names and the
remote service's snake_case column names. The map is checked to be a
bijection when it is built, so a mistranslated field fails at import rather
than at write time.
"""

import re
import types
from dataclasses import dataclass
from datetime import date, datetime
from typing import (
    Any,
    Dict,
    List,
    Literal,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
    get_args,
    get_origin,
    get_type_hints,
    is_typeddict,
)

from shared.exceptions import SchemaValidationError

from .records import RECORD_TYPES, TRANSIENT_FIELDS, Collection, table_for

KINDS = ("text", "int", "float", "bool", "datetime", "date", "object", "json")

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def to_snake_case(name: str) -> str:
    """Convert a camelCase field name to snake_case.

    Runs of capitals are kept together (``imageURL`` -> ``image_url``).
    Only used while building field maps, never per record.
    """
    return _WORD_BOUNDARY.sub("_", name).lower()


@dataclass(frozen=True)
class FieldSpec:
    name: str
    column: str
    kind: str
    nested: Optional["FieldMap"] = None
    transient: bool = False


class FieldMap:
    """Bidirectional field-name table for one record type.

    ``strict`` maps reject record keys they do not declare; non-strict maps
    pass unknown keys through unchanged (used for nested values and for
    collections without a schema).
    """

    def __init__(self, specs: Sequence[FieldSpec], strict: bool = True):
        self.strict = strict
        self._by_name: Dict[str, FieldSpec] = {}
        self._by_column: Dict[str, FieldSpec] = {}
        for spec in specs:
            if spec.name in self._by_name:
                raise ValueError(f"Duplicate field {spec.name!r}")
            if spec.column in self._by_column:
                other = self._by_column[spec.column].name
                raise ValueError(
                    f"Fields {other!r} and {spec.name!r} both map to column {spec.column!r}"
                )
            self._by_name[spec.name] = spec
            self._by_column[spec.column] = spec

    @classmethod
    def from_record_type(
        cls,
        record_type: type,
        transient: Sequence[str] = (),
        strict: bool = True,
    ) -> "FieldMap":
        specs = []
        for name, hint in get_type_hints(record_type).items():
            kind, nested_type = _kind_for(hint)
            nested = cls.from_record_type(nested_type, strict=False) if nested_type else None
            specs.append(
                FieldSpec(
                    name=name,
                    column=to_snake_case(name),
                    kind=kind,
                    nested=nested,
                    transient=name in transient,
                )
            )
        return cls(specs, strict=strict)

    @property
    def specs(self) -> List[FieldSpec]:
        return list(self._by_name.values())

    def get(self, name: str) -> Optional[FieldSpec]:
        return self._by_name.get(name)

    def column_for(self, name: str) -> str:
        spec = self._by_name.get(name)
        return spec.column if spec else name

    def field_for(self, column: str) -> str:
        spec = self._by_column.get(column)
        return spec.name if spec else column

    def to_columns(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Rename record keys to column names, dropping transient fields."""
        out: Dict[str, Any] = {}
        for key, value in record.items():
            spec = self._by_name.get(key)
            if spec is None:
                if self.strict:
                    raise SchemaValidationError(f"Unknown field {key!r}")
                out[key] = value
                continue
            if spec.transient:
                continue
            out[spec.column] = _descend(spec, value, to_columns=True)
        return out

    def to_fields(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Rename column names back to record keys."""
        out: Dict[str, Any] = {}
        for column, value in row.items():
            spec = self._by_column.get(column)
            if spec is None:
                out[column] = value
                continue
            out[spec.name] = _descend(spec, value, to_columns=False)
        return out


def _descend(spec: FieldSpec, value: Any, to_columns: bool) -> Any:
    if spec.nested is None or not isinstance(value, Mapping):
        return value
    return spec.nested.to_columns(value) if to_columns else spec.nested.to_fields(value)


def _kind_for(hint: Any) -> Tuple[str, Optional[type]]:
    origin = get_origin(hint)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(hint) if arg is not type(None)]
        if len(args) == 1:
            return _kind_for(args[0])
        return "json", None
    if origin is Literal:
        return "text", None
    if origin is not None:
        return "json", None
    if hint is bool:
        return "bool", None
    if hint is int:
        return "int", None
    if hint is float:
        return "float", None
    if hint is str:
        return "text", None
    if hint is datetime:
        return "datetime", None
    if hint is date:
        return "date", None
    if is_typeddict(hint):
        return "object", hint
    return "json", None


@dataclass(frozen=True)
class RecordSchema:
    collection: str
    table: str
    field_map: FieldMap
    singleton: bool = False

    @property
    def fields(self) -> List[FieldSpec]:
        return self.field_map.specs

    @property
    def field_names(self) -> List[str]:
        return [spec.name for spec in self.fields]

    def fields_of_kind(self, *kinds: str) -> List[str]:
        return [spec.name for spec in self.fields if spec.kind in kinds]

    def validate_partial(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = sorted(key for key in fields if self.field_map.get(key) is None)
        if unknown:
            raise SchemaValidationError(
                f"Unknown fields for {self.collection}: {', '.join(unknown)}"
            )
        return dict(fields)


def _build_schemas() -> Dict[str, RecordSchema]:
    schemas = {}
    for collection, record_type in RECORD_TYPES.items():
        schemas[collection] = RecordSchema(
            collection=collection,
            table=table_for(collection),
            field_map=FieldMap.from_record_type(
                record_type, transient=TRANSIENT_FIELDS.get(collection, ())
            ),
            singleton=collection in Collection.SINGLETONS,
        )
    return schemas


SCHEMAS: Dict[str, RecordSchema] = _build_schemas()

PASSTHROUGH_MAP = FieldMap([], strict=False)


def schema_for(collection: str) -> Optional[RecordSchema]:
    return SCHEMAS.get(collection)


def field_map_for(collection: str) -> FieldMap:
    schema = SCHEMAS.get(collection)
    return schema.field_map if schema else PASSTHROUGH_MAP


def validate_partial(collection: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Check a partial field set against the collection's schema.

    ``id`` can never be changed through a partial update. Collections
    without a schema accept any field names.
    """
    if not isinstance(fields, Mapping):
        raise SchemaValidationError(
            f"Partial update for {collection} must be a mapping, got {type(fields).__name__}"
        )
    if "id" in fields:
        raise SchemaValidationError(f"Partial update for {collection} may not change 'id'")
    schema = SCHEMAS.get(collection)
    if schema is None:
        return dict(fields)
    return schema.validate_partial(fields)


@dataclass(frozen=True)
class PartialUpdate:
    """A schema-checked set of fields to merge into one collection's record."""

    collection: str
    fields: Mapping[str, Any]

    def __post_init__(self):
        object.__setattr__(self, "fields", validate_partial(self.collection, self.fields))

    @classmethod
    def of(cls, collection: str, **fields: Any) -> "PartialUpdate":
        return cls(collection, fields)


@dataclass(frozen=True)
class BulkUpdate:
    """One entry of a bulk partial update."""

    id: str
    fields: Mapping[str, Any]


def coerce_partial(collection: str, fields: Union[PartialUpdate, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(fields, PartialUpdate):
        if fields.collection != collection:
            raise SchemaValidationError(
                f"Partial update for {fields.collection} applied to {collection}"
            )
        return dict(fields.fields)
    return validate_partial(collection, fields)


def coerce_bulk(collection: str, entries: Sequence[Any]) -> List[Tuple[str, Dict[str, Any]]]:
    """Normalize bulk entries into ``(id, fields)`` pairs.

    Entries may be ``BulkUpdate`` values or mappings with ``id`` and either
    ``fields`` or ``data``.
    """
    normalized = []
    for entry in entries:
        if isinstance(entry, BulkUpdate):
            record_id, fields = entry.id, entry.fields
        elif isinstance(entry, Mapping) and "id" in entry:
            record_id = entry["id"]
            fields = entry.get("fields", entry.get("data", {}))
        else:
            raise SchemaValidationError(f"Bulk update entry for {collection} is missing 'id'")
        normalized.append((str(record_id), coerce_partial(collection, fields)))
    return normalized


__all__ = [
    "KINDS",
    "FieldSpec",
    "FieldMap",
    "RecordSchema",
    "SCHEMAS",
    "PartialUpdate",
    "BulkUpdate",
    "schema_for",
    "field_map_for",
    "validate_partial",
    "coerce_partial",
    "coerce_bulk",
    "to_snake_case",
]
