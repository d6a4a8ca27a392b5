"""
EaseMyTrip Channel Connector

Partner headers (API key, partner code, property id) with optional HTTP
Basic on top. Bulk endpoints accept the whole snapshot in one request.
"""

import base64
from datetime import date, datetime, timezone
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

# Envelope key per sync kind
ENVELOPES = {
    "inventory": "inventory_data",
    "rates": "rate_updates",
    "availability": "availability_updates",
    "restrictions": "restriction_updates",
}
DEFAULT_MEAL_PLAN = "EP"
DEFAULT_MAX_STAY = 30


class EaseMyTripConnector(BaseChannelConnector):
    channel_name = "easemytrip"
    DISPLAY_NAME = "EaseMyTrip"
    DEFAULT_BASE_URL = "https://hotelapi.easemytrip.com"
    HEALTH_PATH = "/api/v2/hotels/{hotel_id}/ping"

    BULK_PATHS = {
        "inventory": "/api/v2/hotels/{hotel_id}/inventory/bulk",
        "rates": "/api/v2/hotels/{hotel_id}/rates",
        "availability": "/api/v2/hotels/{hotel_id}/availability",
        "restrictions": "/api/v2/hotels/{hotel_id}/restrictions",
    }
    ITEM_PATHS = {
        "inventory": "/api/v2/hotels/{hotel_id}/inventory",
        "rates": "/api/v2/hotels/{hotel_id}/rates",
        "availability": "/api/v2/hotels/{hotel_id}/availability",
        "restrictions": "/api/v2/hotels/{hotel_id}/restrictions",
    }
    # No partner limit on bulk size
    default_batch_size = None

    REQUIRED_CREDENTIALS = ("api_key", "partner_code")
    BOOKING_ID_FIELD = "emt_booking_id"
    STATUS_MAP = {
        "CONFIRMED": BookingStatus.CONFIRMED,
        "PENDING": BookingStatus.PENDING,
        "MODIFIED": BookingStatus.MODIFIED,
        "CANCELLED": BookingStatus.CANCELLED,
        "NO_SHOW": BookingStatus.NO_SHOW,
        "COMPLETED": BookingStatus.COMPLETED,
    }

    async def _auth_headers(self, method: str, path: str, body: bytes) -> Dict[str, str]:
        headers = {
            "X-API-Key": self.config.credential("api_key"),
            "X-Partner-Code": self.config.credential("partner_code"),
            "X-Property-ID": self.hotel_id,
        }
        username = self.config.credential("username")
        password = self.config.credential("password")
        if username and password:
            encoded = base64.b64encode(f"{username}:{password}".encode()).decode()
            headers["Authorization"] = f"Basic {encoded}"
        return headers

    async def _ping(self) -> Optional[str]:
        data = await self._request("GET", self._path(self.HEALTH_PATH), retry=False)
        status = (data or {}).get("status") if isinstance(data, dict) else None
        if status != "ACTIVE":
            return f"EaseMyTrip property status is {status or 'unknown'}"
        return None

    def _inventory_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "room_type_id": self._partner_room(item),
            "date": item.date.isoformat(),
            "available_rooms": item.availability,
            "base_rate": str(item.rate),
            "currency": self._currency(item.currency),
            "meal_plan": DEFAULT_MEAL_PLAN,
            "adult_extra_charge": 0,
            "child_extra_charge": 0,
        }

    def _rate_payload(self, item: RateItem) -> Dict[str, Any]:
        return {
            "room_type_id": self._partner_room(item),
            "rate_plan_id": self.config.partner_rate_plan(item.rate_plan_id),
            "date": item.date.isoformat(),
            "base_rate": str(item.rate),
            "currency": self._currency(item.currency),
            "meal_plan": DEFAULT_MEAL_PLAN,
            "adult_extra_charge": 0,
            "child_extra_charge": 0,
        }

    def _availability_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "room_type_id": self._partner_room(item),
            "date": item.date.isoformat(),
            "available_rooms": item.availability,
            "stop_sell": item.availability == 0,
        }

    def _restriction_payload(self, item: RestrictionItem) -> Dict[str, Any]:
        return {
            "room_type_id": self._partner_room(item),
            "date": item.date.isoformat(),
            "min_stay": item.min_stay,
            "max_stay": item.max_stay or DEFAULT_MAX_STAY,
            "closed_to_arrival": item.closed_to_arrival,
            "closed_to_departure": item.closed_to_departure,
            "stop_sell": item.stop_sell,
        }

    def _batch_body(self, kind: str, payloads: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {ENVELOPES[kind]: payloads}

    def _item_body(self, kind: str, payload: Dict[str, Any]) -> Any:
        # Only inventory has a single-item endpoint; the others take a one-row list
        if kind == "inventory":
            return payload
        return {ENVELOPES[kind]: [payload]}

    async def _fetch_raw_bookings(
        self, from_date: Optional[date], to_date: Optional[date]
    ) -> List[Dict[str, Any]]:
        params = {"property_id": self.hotel_id, "status": "ALL"}
        if from_date:
            params["checkin_start"] = self.isodate(from_date)
        if to_date:
            params["checkin_end"] = self.isodate(to_date)
        data = await self._request("GET", "/api/v2/bookings", params=params)
        return (data or {}).get("reservations", [])

    def _transform_booking(self, raw: Dict[str, Any]) -> Booking:
        guest = raw["guest"]
        room = raw["room"]
        pricing = raw["pricing"]
        room_count = int(room.get("room_count", 1))
        return self._build_booking(
            external_booking_id=raw["emt_booking_id"],
            status=raw["booking_status"],
            guest=self._guest(
                guest.get("first_name"),
                guest.get("last_name"),
                guest.get("email"),
                guest.get("contact_number"),
            ),
            room=self._room(
                room["room_type_id"],
                room_count,
                int(room["adults_per_room"]) * room_count,
                int(room.get("children_per_room") or 0) * room_count,
            ),
            check_in=raw["checkin_date"],
            check_out=raw["checkout_date"],
            amounts=self._amounts(
                pricing.get("currency"),
                pricing["total_amount"],
                net=pricing.get("net_payable"),
                commission=pricing.get("commission_amount"),
            ),
            created_at=raw.get("booked_date_time"),
            modified_at=raw.get("modified_date_time"),
        )

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @log_performance("confirm_booking")
    async def confirm_booking(self, booking_id: str) -> Dict[str, Any]:
        return await self._lifecycle(
            "confirm",
            "POST",
            self._path("/api/v2/bookings/{booking_id}/confirm", booking_id=booking_id),
            booking_id,
            body={"status": "CONFIRMED", "confirmation_date": self._now()},
        )

    @log_performance("cancel_booking")
    async def cancel_booking(
        self, booking_id: str, reason: Optional[str] = None
    ) -> Dict[str, Any]:
        reason = reason or "Property initiated cancellation"
        return await self._lifecycle(
            "cancel",
            "POST",
            self._path("/api/v2/bookings/{booking_id}/cancel", booking_id=booking_id),
            booking_id,
            body={
                "cancellation_reason": reason,
                "cancelled_by": "HOTEL",
                "cancellation_date": self._now(),
            },
            reason=reason,
        )

    @log_performance("modify_booking")
    async def modify_booking(
        self, booking_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._lifecycle(
            "modify",
            "PUT",
            self._path("/api/v2/bookings/{booking_id}", booking_id=booking_id),
            booking_id,
            body={**changes, "modification_date": self._now()},
        )
