"""Record shapes for every known collection.

Records travel through the store as plain dicts; these TypedDicts describe
the keys each collection carries and are the single source the record
schemas (and the remote field maps) are generated from.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional, TypedDict


class Collection:
    """Names of the collections the studio keeps."""

    CUSTOMERS = "customers"
    PIECES = "pieces"
    EVENTS = "events"
    EVENT_BOOKINGS = "eventBookings"
    NOTIFICATION_SETTINGS = "notificationSettings"
    STUDIO_SETTINGS = "studioSettings"
    EVENT_TEMPLATES = "eventTemplates"

    ALL = (
        CUSTOMERS,
        PIECES,
        EVENTS,
        EVENT_BOOKINGS,
        NOTIFICATION_SETTINGS,
        STUDIO_SETTINGS,
        EVENT_TEMPLATES,
    )
    SINGLETONS = (NOTIFICATION_SETTINGS, STUDIO_SETTINGS)


SINGLETON_ID = "default"

PieceStatus = Literal[
    "in-progress",
    "bisque-fired",
    "glazed",
    "glaze-fired",
    "ready-for-pickup",
    "picked-up",
]
EventType = Literal["workshop", "open-studio", "private-party", "class", "special-event"]
EventStatus = Literal["upcoming", "in-progress", "completed", "cancelled"]
BookingStatus = Literal["confirmed", "cancelled", "no-show"]


class Customer(TypedDict, total=False):
    id: str
    name: str
    email: str
    phone: Optional[str]
    instagram: Optional[str]
    checkedIn: bool  # UI-only, never written remotely
    createdAt: datetime
    updatedAt: datetime


class Piece(TypedDict, total=False):
    id: str
    customerId: str
    eventId: Optional[str]
    status: PieceStatus
    cubicInches: Optional[float]
    paidGlaze: bool
    glazeTotal: Optional[float]
    notes: Optional[str]
    imageUrl: Optional[str]
    createdAt: datetime
    updatedAt: datetime
    readyForPickupDate: Optional[datetime]
    pickedUpDate: Optional[datetime]


class Event(TypedDict, total=False):
    id: str
    name: str
    description: Optional[str]
    date: datetime
    startTime: str
    endTime: str
    maxCapacity: int
    currentBookings: int
    price: float
    type: EventType
    status: EventStatus
    instructor: Optional[str]
    location: Optional[str]
    notes: Optional[str]
    createdAt: datetime
    updatedAt: datetime


class EventBooking(TypedDict, total=False):
    id: str
    eventId: str
    customerId: str
    bookingDate: datetime
    status: BookingStatus
    notes: Optional[str]
    createdAt: datetime
    updatedAt: datetime


class NotificationSettings(TypedDict, total=False):
    id: str
    emailEnabled: bool
    smsEnabled: bool
    emailTemplate: str
    smsTemplate: str
    updatedAt: datetime


class DayHours(TypedDict, total=False):
    open: str
    close: str
    closed: bool


class BusinessHours(TypedDict, total=False):
    monday: DayHours
    tuesday: DayHours
    wednesday: DayHours
    thursday: DayHours
    friday: DayHours
    saturday: DayHours
    sunday: DayHours


class StudioSettings(TypedDict, total=False):
    id: str
    glazeRatePerCubicInch: float
    defaultTicketPrice: float
    businessHours: BusinessHours
    updatedAt: datetime


class EventTemplate(TypedDict, total=False):
    id: str
    name: str
    description: Optional[str]
    startTime: str
    endTime: str
    maxCapacity: int
    price: float
    type: EventType
    instructor: Optional[str]
    location: Optional[str]
    notes: Optional[str]
    createdAt: datetime
    updatedAt: datetime


RECORD_TYPES: Dict[str, type] = {
    Collection.CUSTOMERS: Customer,
    Collection.PIECES: Piece,
    Collection.EVENTS: Event,
    Collection.EVENT_BOOKINGS: EventBooking,
    Collection.NOTIFICATION_SETTINGS: NotificationSettings,
    Collection.STUDIO_SETTINGS: StudioSettings,
    Collection.EVENT_TEMPLATES: EventTemplate,
}

# Remote table names; collections missing here use their own name.
TABLE_NAMES: Dict[str, str] = {
    Collection.EVENT_BOOKINGS: "event_bookings",
    Collection.NOTIFICATION_SETTINGS: "notification_settings",
    Collection.STUDIO_SETTINGS: "studio_settings",
    Collection.EVENT_TEMPLATES: "event_templates",
}

# Fields that exist only in the dashboard and are never persisted remotely.
TRANSIENT_FIELDS: Dict[str, List[str]] = {
    Collection.CUSTOMERS: ["checkedIn"],
}


def table_for(collection: str) -> str:
    """Map a collection name to its remote table name."""
    return TABLE_NAMES.get(collection, collection)


__all__ = [
    "Collection",
    "SINGLETON_ID",
    "Customer",
    "Piece",
    "Event",
    "EventBooking",
    "NotificationSettings",
    "StudioSettings",
    "BusinessHours",
    "DayHours",
    "EventTemplate",
    "RECORD_TYPES",
    "TABLE_NAMES",
    "TRANSIENT_FIELDS",
    "table_for",
]
