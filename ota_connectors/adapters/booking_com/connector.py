"""
Booking.com Channel Connector
JSON supply API with HTTP Basic authentication
"""

import base64
from datetime import date
from typing import Any, Dict, List, Optional

from ...contracts import (
    BaseChannelConnector,
    Booking,
    BookingStatus,
    InventoryItem,
    RateItem,
    RestrictionItem,
)
from ...utils.logging import log_performance

RESERVATION_PATH = "/properties/{hotel_id}/reservations/{booking_id}"


class BookingComConnector(BaseChannelConnector):
    """Booking.com connector; reports commission, net is derived"""

    channel_name = "booking_com"
    DISPLAY_NAME = "Booking.com"
    DEFAULT_BASE_URL = "https://supply-xml.booking.com/hotels/json"
    HEALTH_PATH = "/properties/{hotel_id}"

    BULK_PATHS = {
        "inventory": "/properties/{hotel_id}/inventory/bulk",
        "rates": "/properties/{hotel_id}/rates/bulk",
        "availability": "/properties/{hotel_id}/availability/bulk",
        "restrictions": "/properties/{hotel_id}/restrictions/bulk",
    }
    ITEM_PATHS = {
        "inventory": "/properties/{hotel_id}/inventory",
        "rates": "/properties/{hotel_id}/rates",
        "availability": "/properties/{hotel_id}/availability",
        "restrictions": "/properties/{hotel_id}/restrictions",
    }
    default_batch_size = 50

    REQUIRED_CREDENTIALS = ("username", "password")
    BOOKING_ID_FIELD = "reservation_id"
    STATUS_MAP = {
        "new": BookingStatus.CONFIRMED,
        "confirmed": BookingStatus.CONFIRMED,
        "pending": BookingStatus.PENDING,
        "modified": BookingStatus.MODIFIED,
        "cancelled": BookingStatus.CANCELLED,
        "no_show": BookingStatus.NO_SHOW,
        "completed": BookingStatus.COMPLETED,
    }

    async def _auth_headers(self, method: str, path: str, body: bytes) -> Dict[str, str]:
        credentials = f"{self.config.credential('username')}:{self.config.credential('password')}"
        encoded = base64.b64encode(credentials.encode()).decode()
        return {"Authorization": f"Basic {encoded}"}

    def _inventory_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "room_id": self._partner_room(item),
            "date": item.date.isoformat(),
            "rooms_to_sell": item.availability,
            "price": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _rate_payload(self, item: RateItem) -> Dict[str, Any]:
        return {
            "room_id": self._partner_room(item),
            "rate_id": self.config.partner_rate_plan(item.rate_plan_id),
            "date": item.date.isoformat(),
            "price": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _availability_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "room_id": self._partner_room(item),
            "date": item.date.isoformat(),
            "rooms_to_sell": item.availability,
            "closed": item.availability == 0,
        }

    def _restriction_payload(self, item: RestrictionItem) -> Dict[str, Any]:
        return {
            "room_id": self._partner_room(item),
            "date": item.date.isoformat(),
            "min_stay": item.min_stay,
            "max_stay": item.max_stay,
            "closed_to_arrival": item.closed_to_arrival,
            "closed_to_departure": item.closed_to_departure,
            "closed": item.stop_sell,
        }

    def _batch_body(self, kind: str, payloads: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"hotel_id": self.hotel_id, "room_updates": payloads}

    async def _fetch_raw_bookings(
        self, from_date: Optional[date], to_date: Optional[date]
    ) -> List[Dict[str, Any]]:
        params = {}
        if from_date:
            params["checkin_from"] = self.isodate(from_date)
        if to_date:
            params["checkin_to"] = self.isodate(to_date)
        data = await self._request(
            "GET", self._path("/properties/{hotel_id}/reservations"), params=params
        )
        return (data or {}).get("reservations", [])

    def _transform_booking(self, raw: Dict[str, Any]) -> Booking:
        customer = raw["customer"]
        room = raw["room"]
        guests = room.get("guests") or {}
        return self._build_booking(
            external_booking_id=raw["reservation_id"],
            status=raw["status"],
            guest=self._guest(
                customer.get("first_name"),
                customer.get("last_name"),
                customer.get("email"),
                customer.get("telephone"),
            ),
            room=self._room(
                room["room_id"],
                room.get("quantity", 1),
                guests["adults"],
                guests.get("children", 0),
            ),
            check_in=raw["arrival_date"],
            check_out=raw["departure_date"],
            amounts=self._amounts(
                raw.get("currencycode"),
                raw["totalprice"],
                commission=raw.get("commissionamount"),
            ),
            created_at=raw.get("date"),
            modified_at=raw.get("modified_at"),
        )

    @log_performance("confirm_booking")
    async def confirm_booking(self, booking_id: str) -> Dict[str, Any]:
        return await self._lifecycle(
            "confirm",
            "POST",
            self._path(RESERVATION_PATH + "/acknowledge", booking_id=booking_id),
            booking_id,
            body={"status": "confirmed"},
        )

    @log_performance("cancel_booking")
    async def cancel_booking(
        self, booking_id: str, reason: Optional[str] = None
    ) -> Dict[str, Any]:
        reason = reason or "Property initiated cancellation"
        return await self._lifecycle(
            "cancel",
            "POST",
            self._path(RESERVATION_PATH + "/cancel", booking_id=booking_id),
            booking_id,
            body={"reason": reason},
            reason=reason,
        )

    @log_performance("modify_booking")
    async def modify_booking(
        self, booking_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._lifecycle(
            "modify",
            "PUT",
            self._path(RESERVATION_PATH, booking_id=booking_id),
            booking_id,
            body=dict(changes),
        )
