"""Domain layer: collection names, record shapes and record schemas.

Rules:
- Describes records only; it never reads or writes storage.
- May import shared.
"""

from .records import (
    SINGLETON_ID,
    TABLE_NAMES,
    BusinessHours,
    Collection,
    Customer,
    DayHours,
    Event,
    EventBooking,
    EventTemplate,
    NotificationSettings,
    Piece,
    StudioSettings,
    table_for,
)
from .schemas import (
    SCHEMAS,
    BulkUpdate,
    FieldMap,
    FieldSpec,
    PartialUpdate,
    RecordSchema,
    coerce_bulk,
    coerce_partial,
    field_map_for,
    schema_for,
    validate_partial,
)

__all__ = [
    "Collection",
    "SINGLETON_ID",
    "TABLE_NAMES",
    "table_for",
    "Customer",
    "Piece",
    "Event",
    "EventBooking",
    "NotificationSettings",
    "StudioSettings",
    "BusinessHours",
    "DayHours",
    "EventTemplate",
    "SCHEMAS",
    "FieldMap",
    "FieldSpec",
    "RecordSchema",
    "PartialUpdate",
    "BulkUpdate",
    "schema_for",
    "field_map_for",
    "validate_partial",
    "coerce_partial",
    "coerce_bulk",
]
