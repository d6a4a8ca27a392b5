"""
Agoda Channel Connector
YCS supply API authenticated with a static API key
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


class AgodaConnector(BaseChannelConnector):
    """Agoda reports the net amount; commission is derived"""

    channel_name = "agoda"
    DISPLAY_NAME = "Agoda"
    DEFAULT_BASE_URL = "https://supply.agoda.com/api/v1"
    HEALTH_PATH = "/hotels/{hotel_id}/status"

    BULK_PATHS = {
        "inventory": "/hotels/{hotel_id}/allotments/bulk",
        "rates": "/hotels/{hotel_id}/rates/bulk",
        "availability": "/hotels/{hotel_id}/availability/bulk",
        "restrictions": "/hotels/{hotel_id}/restrictions/bulk",
    }
    ITEM_PATHS = {
        "inventory": "/hotels/{hotel_id}/allotments",
        "rates": "/hotels/{hotel_id}/rates",
        "availability": "/hotels/{hotel_id}/availability",
        "restrictions": "/hotels/{hotel_id}/restrictions",
    }
    default_batch_size = 200

    REQUIRED_CREDENTIALS = ("api_key",)
    BOOKING_ID_FIELD = "booking_id"
    STATUS_MAP = {
        "Confirmed": BookingStatus.CONFIRMED,
        "Pending": BookingStatus.PENDING,
        "Amended": BookingStatus.MODIFIED,
        "Cancelled": BookingStatus.CANCELLED,
        "NoShow": BookingStatus.NO_SHOW,
        "Departed": BookingStatus.COMPLETED,
    }

    async def _auth_headers(self, method: str, path: str, body: bytes) -> Dict[str, str]:
        return {"X-Api-Key": self.config.credential("api_key")}

    def _inventory_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "room_type_code": self._partner_room(item),
            "date": item.date.isoformat(),
            "allotment": item.availability,
            "rate": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _rate_payload(self, item: RateItem) -> Dict[str, Any]:
        return {
            "room_type_code": self._partner_room(item),
            "rate_plan_code": self.config.partner_rate_plan(item.rate_plan_id),
            "date": item.date.isoformat(),
            "rate": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _availability_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "room_type_code": self._partner_room(item),
            "date": item.date.isoformat(),
            "allotment": item.availability,
            "close_out": item.availability == 0,
        }

    def _restriction_payload(self, item: RestrictionItem) -> Dict[str, Any]:
        return {
            "room_type_code": self._partner_room(item),
            "date": item.date.isoformat(),
            "min_nights": item.min_stay,
            "max_nights": item.max_stay,
            "cta": item.closed_to_arrival,
            "ctd": item.closed_to_departure,
            "close_out": item.stop_sell,
        }

    def _batch_body(self, kind: str, payloads: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"hotel_id": self.hotel_id, "items": payloads}

    async def _fetch_raw_bookings(
        self, from_date: Optional[date], to_date: Optional[date]
    ) -> List[Dict[str, Any]]:
        params = {}
        if from_date:
            params["check_in_from"] = self.isodate(from_date)
        if to_date:
            params["check_in_to"] = self.isodate(to_date)
        data = await self._request(
            "GET", self._path("/hotels/{hotel_id}/bookings"), params=params
        )
        return (data or {}).get("bookings", [])

    def _transform_booking(self, raw: Dict[str, Any]) -> Booking:
        guest = raw["guest"]
        return self._build_booking(
            external_booking_id=raw["booking_id"],
            status=raw["status"],
            guest=self._guest(
                guest.get("first_name"),
                guest.get("last_name"),
                guest.get("email"),
                guest.get("phone"),
            ),
            room=self._room(
                raw["room_type_code"],
                raw.get("number_of_rooms", 1),
                raw["adults"],
                raw.get("children", 0),
            ),
            check_in=raw["check_in"],
            check_out=raw["check_out"],
            amounts=self._amounts(
                raw.get("currency"),
                raw["total_amount"],
                net=raw.get("net_amount"),
            ),
            created_at=raw.get("booked_at"),
            modified_at=raw.get("updated_at"),
        )

    @log_performance("confirm_booking")
    async def confirm_booking(self, booking_id: str) -> Dict[str, Any]:
        return await self._lifecycle(
            "confirm",
            "POST",
            self._path("/bookings/{booking_id}/confirm", booking_id=booking_id),
            booking_id,
            body={"hotel_id": self.hotel_id},
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
            body={"hotel_id": self.hotel_id, "reason": reason},
            reason=reason,
        )

    @log_performance("modify_booking")
    async def modify_booking(
        self, booking_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._lifecycle(
            "modify",
            "PATCH",
            self._path("/bookings/{booking_id}", booking_id=booking_id),
            booking_id,
            body={"hotel_id": self.hotel_id, **changes},
        )
