"""
Yatra Channel Connector
HotelConnect API; HTTP Basic over partner code and API key
"""

import base64
from datetime import date
from typing import Any, Dict, List, Optional

from ...contracts import (
    BaseChannelConnector,
    BatchRejectedError,
    Booking,
    BookingStatus,
    InventoryItem,
    RateItem,
    RestrictionItem,
)
from ...utils.logging import log_performance


class YatraConnector(BaseChannelConnector):
    channel_name = "yatra"
    DISPLAY_NAME = "Yatra"
    DEFAULT_BASE_URL = "https://hotelconnect.yatra.com/api"
    HEALTH_PATH = "/hotel/{hotel_id}/status"

    BULK_PATHS = {
        "inventory": "/hotel/{hotel_id}/inventory/bulk",
        "rates": "/hotel/{hotel_id}/rates/bulk",
        "availability": "/hotel/{hotel_id}/availability/bulk",
        "restrictions": "/hotel/{hotel_id}/restrictions/bulk",
    }
    ITEM_PATHS = {
        "inventory": "/hotel/{hotel_id}/inventory",
        "rates": "/hotel/{hotel_id}/rates",
        "availability": "/hotel/{hotel_id}/availability",
        "restrictions": "/hotel/{hotel_id}/restrictions",
    }
    default_batch_size = 25

    REQUIRED_CREDENTIALS = ("partner_code", "api_key")
    BOOKING_ID_FIELD = "BookingId"
    STATUS_MAP = {
        "Confirmed": BookingStatus.CONFIRMED,
        "Pending": BookingStatus.PENDING,
        "Modified": BookingStatus.MODIFIED,
        "Cancelled": BookingStatus.CANCELLED,
        "NoShow": BookingStatus.NO_SHOW,
        "CheckedOut": BookingStatus.COMPLETED,
    }

    async def _auth_headers(self, method: str, path: str, body: bytes) -> Dict[str, str]:
        credentials = f"{self.config.credential('partner_code')}:{self.config.credential('api_key')}"
        encoded = base64.b64encode(credentials.encode()).decode()
        return {"Authorization": f"Basic {encoded}"}

    def _inventory_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "RoomCode": self._partner_room(item),
            "Date": item.date.isoformat(),
            "Inventory": item.availability,
            "Rate": str(item.rate),
            "Currency": self._currency(item.currency),
        }

    def _rate_payload(self, item: RateItem) -> Dict[str, Any]:
        return {
            "RoomCode": self._partner_room(item),
            "RatePlanCode": self.config.partner_rate_plan(item.rate_plan_id),
            "Date": item.date.isoformat(),
            "Rate": str(item.rate),
            "Currency": self._currency(item.currency),
        }

    def _availability_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "RoomCode": self._partner_room(item),
            "Date": item.date.isoformat(),
            "Inventory": item.availability,
            "StopSell": item.availability == 0,
        }

    def _restriction_payload(self, item: RestrictionItem) -> Dict[str, Any]:
        return {
            "RoomCode": self._partner_room(item),
            "Date": item.date.isoformat(),
            "MinLOS": item.min_stay,
            "MaxLOS": item.max_stay,
            "CTA": item.closed_to_arrival,
            "CTD": item.closed_to_departure,
            "StopSell": item.stop_sell,
        }

    def _batch_body(self, kind: str, payloads: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"HotelCode": self.hotel_id, "Updates": payloads}

    def _check_batch_response(self, kind: str, data: Any, size: int):
        if not isinstance(data, dict):
            return
        if data.get("Status", "Success") != "Success" or data.get("Errors"):
            raise BatchRejectedError(
                f"yatra rejected {kind} batch of {size}: "
                f"{data.get('Errors') or data.get('Message') or data.get('Status')}"
            )

    async def _fetch_raw_bookings(
        self, from_date: Optional[date], to_date: Optional[date]
    ) -> List[Dict[str, Any]]:
        params = {}
        if from_date:
            params["FromDate"] = self.isodate(from_date)
        if to_date:
            params["ToDate"] = self.isodate(to_date)
        data = await self._request(
            "GET", self._path("/hotel/{hotel_id}/bookings"), params=params
        )
        return (data or {}).get("Bookings", [])

    def _transform_booking(self, raw: Dict[str, Any]) -> Booking:
        guest = raw["Guest"]
        return self._build_booking(
            external_booking_id=raw["BookingId"],
            status=raw["BookingStatus"],
            guest=self._guest(
                guest.get("FirstName"),
                guest.get("LastName"),
                guest.get("Email"),
                guest.get("Phone"),
            ),
            room=self._room(
                raw["RoomCode"],
                raw.get("NoOfRooms", 1),
                raw["Adults"],
                raw.get("Children", 0),
            ),
            check_in=raw["CheckInDate"],
            check_out=raw["CheckOutDate"],
            amounts=self._amounts(
                raw.get("Currency"),
                raw["TotalAmount"],
                commission=raw.get("Commission"),
            ),
            created_at=raw.get("CreatedOn"),
            modified_at=raw.get("ModifiedOn"),
        )

    @log_performance("confirm_booking")
    async def confirm_booking(self, booking_id: str) -> Dict[str, Any]:
        return await self._lifecycle(
            "confirm",
            "POST",
            self._path("/booking/{booking_id}/confirm", booking_id=booking_id),
            booking_id,
            body={"HotelCode": self.hotel_id},
        )

    @log_performance("cancel_booking")
    async def cancel_booking(
        self, booking_id: str, reason: Optional[str] = None
    ) -> Dict[str, Any]:
        reason = reason or "Property initiated cancellation"
        return await self._lifecycle(
            "cancel",
            "POST",
            self._path("/booking/{booking_id}/cancel", booking_id=booking_id),
            booking_id,
            body={"HotelCode": self.hotel_id, "Reason": reason},
            reason=reason,
        )

    @log_performance("modify_booking")
    async def modify_booking(
        self, booking_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._lifecycle(
            "modify",
            "POST",
            self._path("/booking/{booking_id}/modify", booking_id=booking_id),
            booking_id,
            body={"HotelCode": self.hotel_id, "Changes": dict(changes)},
        )
