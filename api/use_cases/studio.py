"""Studio record operations on top of the collection store.

The store keeps collections independent, so everything that spans two
collections (a customer's pieces, an event's bookings and its booking
count) is handled here.
"""

import math
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from domain import SINGLETON_ID, BulkUpdate, Collection, validate_partial
from shared.exceptions import NotFoundError
from storage import StorageAdapter

DEFAULT_NOTIFICATION_SETTINGS: Dict[str, Any] = {
    "emailEnabled": True,
    "smsEnabled": True,
    "emailTemplate": (
        "Hi {{customerName}}, your ceramic piece is ready for pickup at Clay Cafe! "
        "Please come by during our business hours."
    ),
    "smsTemplate": "Your ceramic piece is ready for pickup at Clay Cafe!",
}

DEFAULT_STUDIO_SETTINGS: Dict[str, Any] = {
    "glazeRatePerCubicInch": 0.20,
    "defaultTicketPrice": 15,
    "businessHours": {
        "monday": {"open": "10:00", "close": "18:00"},
        "tuesday": {"open": "10:00", "close": "18:00"},
        "wednesday": {"open": "10:00", "close": "18:00"},
        "thursday": {"open": "10:00", "close": "20:00"},
        "friday": {"open": "10:00", "close": "20:00"},
        "saturday": {"open": "09:00", "close": "18:00"},
        "sunday": {"open": "12:00", "close": "17:00"},
    },
}

TEMPLATE_DEFAULTS: Dict[str, Any] = {
    "name": "Untitled Event",
    "startTime": "10:00",
    "endTime": "12:00",
    "maxCapacity": 10,
    "price": 15,
    "type": "workshop",
}
TEMPLATE_OPTIONAL = ("description", "instructor", "location", "notes")


class TimestampIds:
    """Millisecond-timestamp ids, bumped so two calls never collide."""

    def __init__(self):
        self._last = 0

    def __call__(self) -> str:
        candidate = int(time.time() * 1000)
        if candidate <= self._last:
            candidate = self._last + 1
        self._last = candidate
        return str(candidate)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StudioService:
    """Customer, piece, event and booking operations for the dashboard.

    Example:
        >>> context = await bootstrap()
        >>> studio = StudioService(context.store)
        >>> customer = await studio.add_customer({"name": "Ada", "email": "ada@example.com"})
    """

    def __init__(
        self,
        store: StorageAdapter,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.store = store
        self._clock = clock or _utc_now
        self._new_id = id_factory or TimestampIds()

    # --- shared helpers ---------------------------------------------------------

    async def _add(self, collection: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        now = self._clock()
        record = {**data, "id": self._new_id(), "createdAt": now, "updatedAt": now}
        await self.store.write_one(collection, record["id"], record)
        return record

    async def _update(
        self, collection: str, record_id: str, updates: Mapping[str, Any]
    ) -> Optional[Dict[str, Any]]:
        changes = validate_partial(collection, updates)
        try:
            return await self.store.update_partial(collection, record_id, changes)
        except NotFoundError:
            return None

    # --- customers --------------------------------------------------------------

    async def list_customers(self) -> List[Dict[str, Any]]:
        return await self.store.read_all(Collection.CUSTOMERS)

    async def get_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.read_one(Collection.CUSTOMERS, customer_id)

    async def add_customer(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._add(Collection.CUSTOMERS, {"checkedIn": False, **data})

    async def update_customer(self, customer_id: str, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._update(Collection.CUSTOMERS, customer_id, updates)

    async def delete_customer(self, customer_id: str) -> bool:
        """Delete a customer and every piece that belongs to them."""
        deleted = await self.store.delete_one(Collection.CUSTOMERS, customer_id)
        if deleted:
            for piece in await self.store.read_all(Collection.PIECES):
                if piece.get("customerId") == customer_id:
                    await self.store.delete_one(Collection.PIECES, piece["id"])
        return deleted

    # --- pieces -----------------------------------------------------------------

    async def list_pieces(self) -> List[Dict[str, Any]]:
        return await self.store.read_all(Collection.PIECES)

    async def get_piece(self, piece_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.read_one(Collection.PIECES, piece_id)

    async def add_piece(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._add(Collection.PIECES, {"status": "in-progress", "paidGlaze": False, **data})

    async def update_piece(self, piece_id: str, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._update(Collection.PIECES, piece_id, updates)

    async def delete_piece(self, piece_id: str) -> bool:
        return await self.store.delete_one(Collection.PIECES, piece_id)

    # --- events -----------------------------------------------------------------

    async def list_events(self) -> List[Dict[str, Any]]:
        return await self.store.read_all(Collection.EVENTS)

    async def get_event(self, event_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.read_one(Collection.EVENTS, event_id)

    async def add_event(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._add(
            Collection.EVENTS, {"currentBookings": 0, "status": "upcoming", **data}
        )

    async def update_event(self, event_id: str, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._update(Collection.EVENTS, event_id, updates)

    async def delete_event(self, event_id: str) -> bool:
        """Delete an event, its bookings, and unlink pieces made at it."""
        deleted = await self.store.delete_one(Collection.EVENTS, event_id)
        if not deleted:
            return False
        for booking in await self.store.read_all(Collection.EVENT_BOOKINGS):
            if booking.get("eventId") == event_id:
                await self.store.delete_one(Collection.EVENT_BOOKINGS, booking["id"])
        linked = [
            BulkUpdate(piece["id"], {"eventId": None})
            for piece in await self.store.read_all(Collection.PIECES)
            if piece.get("eventId") == event_id
        ]
        if linked:
            await self.store.update_bulk(Collection.PIECES, linked)
        return True

    async def duplicate_event(
        self,
        event_id: str,
        new_date: Optional[datetime] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Copy an event; the copy defaults to one week after the original."""
        original = await self.store.read_one(Collection.EVENTS, event_id)
        if original is None:
            raise NotFoundError(Collection.EVENTS, event_id)
        data = {**original, **(overrides or {})}
        data["date"] = new_date or original["date"] + timedelta(days=7)
        data["currentBookings"] = 0
        data["status"] = "upcoming"
        return await self._add(Collection.EVENTS, data)

    # --- bookings ---------------------------------------------------------------

    async def list_bookings(self) -> List[Dict[str, Any]]:
        return await self.store.read_all(Collection.EVENT_BOOKINGS)

    async def get_booking(self, booking_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.read_one(Collection.EVENT_BOOKINGS, booking_id)

    async def add_booking(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Book a customer onto an event and bump the event's booking count."""
        booking = await self._add(
            Collection.EVENT_BOOKINGS,
            {"status": "confirmed", "bookingDate": self._clock(), **data},
        )
        await self._shift_bookings(booking["eventId"], +1)
        return booking

    async def update_booking(self, booking_id: str, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._update(Collection.EVENT_BOOKINGS, booking_id, updates)

    async def delete_booking(self, booking_id: str) -> bool:
        booking = await self.store.read_one(Collection.EVENT_BOOKINGS, booking_id)
        if booking is None:
            return False
        deleted = await self.store.delete_one(Collection.EVENT_BOOKINGS, booking_id)
        if deleted:
            await self._shift_bookings(booking["eventId"], -1)
        return deleted

    async def _shift_bookings(self, event_id: str, delta: int) -> None:
        event = await self.store.read_one(Collection.EVENTS, event_id)
        if event is None:
            return
        count = max(0, int(event.get("currentBookings", 0)) + delta)
        await self.store.update_partial(Collection.EVENTS, event_id, {"currentBookings": count})

    # --- settings ---------------------------------------------------------------

    async def get_notification_settings(self) -> Dict[str, Any]:
        settings = await self.store.read_one(Collection.NOTIFICATION_SETTINGS, SINGLETON_ID)
        return settings or dict(DEFAULT_NOTIFICATION_SETTINGS)

    async def update_notification_settings(self, updates: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._update_settings(Collection.NOTIFICATION_SETTINGS, updates, self.get_notification_settings)

    async def get_studio_settings(self) -> Dict[str, Any]:
        settings = await self.store.read_one(Collection.STUDIO_SETTINGS, SINGLETON_ID)
        return settings or dict(DEFAULT_STUDIO_SETTINGS)

    async def update_studio_settings(self, updates: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._update_settings(Collection.STUDIO_SETTINGS, updates, self.get_studio_settings)

    async def _update_settings(self, collection: str, updates: Mapping[str, Any], current) -> Dict[str, Any]:
        changes = validate_partial(collection, updates)
        merged = {**(await current()), **changes, "id": SINGLETON_ID, "updatedAt": self._clock()}
        await self.store.write_one(collection, SINGLETON_ID, merged)
        return merged

    async def calculate_glaze_price(self, cubic_inches: float) -> float:
        settings = await self.get_studio_settings()
        rate = float(settings.get("glazeRatePerCubicInch", 0))
        # half-up rounding to cents, matching the dashboard
        return math.floor(cubic_inches * rate * 100 + 0.5) / 100

    # --- event templates --------------------------------------------------------

    async def create_event_template(self, name: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        now = self._clock()
        template = {"name": name, **data, "id": name, "createdAt": now, "updatedAt": now}
        for key in ("date", "currentBookings", "status"):
            template.pop(key, None)
        await self.store.write_one(Collection.EVENT_TEMPLATES, name, template)
        return template

    async def get_event_templates(self) -> Dict[str, Dict[str, Any]]:
        templates = await self.store.read_all(Collection.EVENT_TEMPLATES)
        return {template.get("name", template["id"]): template for template in templates}

    async def create_event_from_template(
        self,
        template_name: str,
        date: datetime,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        template = await self.store.read_one(Collection.EVENT_TEMPLATES, template_name)
        if template is None:
            raise NotFoundError(Collection.EVENT_TEMPLATES, template_name)
        data: Dict[str, Any] = {
            key: default if template.get(key) is None else template[key]
            for key, default in TEMPLATE_DEFAULTS.items()
        }
        for key in TEMPLATE_OPTIONAL:
            if template.get(key) is not None:
                data[key] = template[key]
        data.update(overrides or {})
        data["date"] = date
        data["currentBookings"] = 0
        data["status"] = "upcoming"
        return await self._add(Collection.EVENTS, data)


__all__ = ["StudioService", "TimestampIds", "DEFAULT_NOTIFICATION_SETTINGS", "DEFAULT_STUDIO_SETTINGS"]
