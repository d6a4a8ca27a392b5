"""
OYO Channel Connector
Partner API v2 with API key and partner id headers
"""

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


class OYOConnector(BaseChannelConnector):
    """OYO sends one guest_name and the amount payable to the hotel"""

    channel_name = "oyo"
    DISPLAY_NAME = "OYO"
    DEFAULT_BASE_URL = "https://partner-api.oyorooms.com/v2"
    HEALTH_PATH = "/properties/{hotel_id}"

    BULK_PATHS = {
        "inventory": "/inventory/bulk-update",
        "rates": "/rates/bulk-update",
        "availability": "/availability/bulk-update",
        "restrictions": "/restrictions/bulk-update",
    }
    ITEM_PATHS = {
        "inventory": "/inventory/update",
        "rates": "/rates/update",
        "availability": "/availability/update",
        "restrictions": "/restrictions/update",
    }
    default_batch_size = 100

    REQUIRED_CREDENTIALS = ("api_key", "partner_id")
    BOOKING_ID_FIELD = "booking_id"
    STATUS_MAP = {
        "CONFIRMED": BookingStatus.CONFIRMED,
        "PENDING_CONFIRMATION": BookingStatus.PENDING,
        "MODIFIED": BookingStatus.MODIFIED,
        "CANCELLED": BookingStatus.CANCELLED,
        "NO_SHOW": BookingStatus.NO_SHOW,
        "CHECKED_IN": BookingStatus.CONFIRMED,
        "CHECKED_OUT": BookingStatus.COMPLETED,
    }

    async def _auth_headers(self, method: str, path: str, body: bytes) -> Dict[str, str]:
        return {
            "X-API-Key": self.config.credential("api_key"),
            "X-Partner-ID": self.config.credential("partner_id"),
            "X-Property-ID": self.hotel_id,
        }

    async def _ping(self) -> Optional[str]:
        data = await self._request("GET", self._path(self.HEALTH_PATH), retry=False)
        if not isinstance(data, dict) or not data.get("success"):
            return "OYO property lookup did not succeed"
        return None

    def _inventory_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "property_id": self.hotel_id,
            "room_category_id": self._partner_room(item),
            "date": item.date.isoformat(),
            "available_rooms": item.availability,
            "price": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _rate_payload(self, item: RateItem) -> Dict[str, Any]:
        return {
            "property_id": self.hotel_id,
            "room_category_id": self._partner_room(item),
            "rate_plan_id": self.config.partner_rate_plan(item.rate_plan_id),
            "date": item.date.isoformat(),
            "price": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _availability_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "property_id": self.hotel_id,
            "room_category_id": self._partner_room(item),
            "date": item.date.isoformat(),
            "available_rooms": item.availability,
            "sold_out": item.availability == 0,
        }

    def _restriction_payload(self, item: RestrictionItem) -> Dict[str, Any]:
        return {
            "property_id": self.hotel_id,
            "room_category_id": self._partner_room(item),
            "date": item.date.isoformat(),
            "min_stay": item.min_stay,
            "max_stay": item.max_stay,
            "closed_to_arrival": item.closed_to_arrival,
            "closed_to_departure": item.closed_to_departure,
            "sold_out": item.stop_sell,
        }

    def _batch_body(self, kind: str, payloads: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"property_id": self.hotel_id, "updates": payloads}

    async def _fetch_raw_bookings(
        self, from_date: Optional[date], to_date: Optional[date]
    ) -> List[Dict[str, Any]]:
        params = {}
        if from_date:
            params["from"] = self.isodate(from_date)
        if to_date:
            params["to"] = self.isodate(to_date)
        data = await self._request(
            "GET", self._path("/properties/{hotel_id}/bookings"), params=params
        )
        return (data or {}).get("data", [])

    def _transform_booking(self, raw: Dict[str, Any]) -> Booking:
        first_name, last_name = self.split_name(raw.get("guest_name"))
        return self._build_booking(
            external_booking_id=raw["booking_id"],
            status=raw["booking_status"],
            guest=self._guest(
                first_name,
                last_name,
                raw.get("guest_email"),
                raw.get("guest_phone"),
            ),
            room=self._room(
                raw["room_category_id"],
                raw.get("room_count", 1),
                raw["adults"],
                raw.get("children", 0),
            ),
            check_in=raw["check_in"],
            check_out=raw["check_out"],
            amounts=self._amounts(
                raw.get("currency"),
                raw["total_amount"],
                net=raw.get("payable_to_hotel"),
            ),
            created_at=raw.get("created_at"),
            modified_at=raw.get("updated_at"),
        )

    @log_performance("confirm_booking")
    async def confirm_booking(self, booking_id: str) -> Dict[str, Any]:
        return await self._lifecycle(
            "confirm",
            "POST",
            self._path("/bookings/{booking_id}/acknowledge", booking_id=booking_id),
            booking_id,
            body={"property_id": self.hotel_id, "status": "CONFIRMED"},
        )

    @log_performance("cancel_booking")
    async def cancel_booking(
        self, booking_id: str, reason: Optional[str] = None
    ) -> Dict[str, Any]:
        reason = reason or "Property initiated cancellation"
        return await self._lifecycle(
            "cancel",
            "POST",
            self._path("/bookings/{booking_id}/cancel", booking_id=booking_id),
            booking_id,
            body={"property_id": self.hotel_id, "reason": reason},
            reason=reason,
        )

    @log_performance("modify_booking")
    async def modify_booking(
        self, booking_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._lifecycle(
            "modify",
            "POST",
            self._path("/bookings/{booking_id}/modify", booking_id=booking_id),
            booking_id,
            body={"property_id": self.hotel_id, **changes},
        )
