"""
Cleartrip Channel Connector
Signed Authorization header (CT-HMAC-SHA256) on every request
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
from ...utils.signing import RequestSigner

AUTH_SCHEME = "CT-HMAC-SHA256"
TRIP_PATH = "/trips/{booking_id}"


class CleartripConnector(BaseChannelConnector):
    channel_name = "cleartrip"
    DISPLAY_NAME = "Cleartrip"
    DEFAULT_BASE_URL = "https://supply.cleartrip.com/api/v1"
    HEALTH_PATH = "/properties/{hotel_id}/ping"

    BULK_PATHS = {
        "inventory": "/properties/{hotel_id}/inventory/batch",
        "rates": "/properties/{hotel_id}/rates/batch",
        "availability": "/properties/{hotel_id}/availability/batch",
        "restrictions": "/properties/{hotel_id}/restrictions/batch",
    }
    ITEM_PATHS = {
        "inventory": "/properties/{hotel_id}/inventory",
        "rates": "/properties/{hotel_id}/rates",
        "availability": "/properties/{hotel_id}/availability",
        "restrictions": "/properties/{hotel_id}/restrictions",
    }
    default_batch_size = 30

    REQUIRED_CREDENTIALS = ("api_key",)
    BOOKING_ID_FIELD = "trip_id"
    STATUS_MAP = {
        "booked": BookingStatus.CONFIRMED,
        "pending": BookingStatus.PENDING,
        "amended": BookingStatus.MODIFIED,
        "cancelled": BookingStatus.CANCELLED,
        "no_show": BookingStatus.NO_SHOW,
        "completed": BookingStatus.COMPLETED,
    }

    def __init__(self, config, accessor, **kwargs):
        super().__init__(config, accessor, **kwargs)
        self.signer = RequestSigner(
            key_id=config.credential("api_key"),
            secret=config.credential("api_secret"),
        )

    async def _auth_headers(self, method: str, path: str, body: bytes) -> Dict[str, str]:
        signature = self.signer.sign(method, path, body)
        return {
            "Authorization": (
                f"{AUTH_SCHEME} key={self.signer.key_id},ts={signature.timestamp},"
                f"nonce={signature.nonce},sig={signature.signature}"
            )
        }

    def _inventory_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "room_code": self._partner_room(item),
            "date": item.date.isoformat(),
            "count": item.availability,
            "price": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _rate_payload(self, item: RateItem) -> Dict[str, Any]:
        return {
            "room_code": self._partner_room(item),
            "rate_code": self.config.partner_rate_plan(item.rate_plan_id),
            "date": item.date.isoformat(),
            "price": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _availability_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "room_code": self._partner_room(item),
            "date": item.date.isoformat(),
            "count": item.availability,
            "stop_sell": item.availability == 0,
        }

    def _restriction_payload(self, item: RestrictionItem) -> Dict[str, Any]:
        return {
            "room_code": self._partner_room(item),
            "date": item.date.isoformat(),
            "min_stay": item.min_stay,
            "max_stay": item.max_stay,
            "cta": item.closed_to_arrival,
            "ctd": item.closed_to_departure,
            "stop_sell": item.stop_sell,
        }

    def _batch_body(self, kind: str, payloads: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"items": payloads}

    async def _fetch_raw_bookings(
        self, from_date: Optional[date], to_date: Optional[date]
    ) -> List[Dict[str, Any]]:
        params = {}
        if from_date:
            params["check_in_from"] = self.isodate(from_date)
        if to_date:
            params["check_in_to"] = self.isodate(to_date)
        data = await self._request(
            "GET", self._path("/properties/{hotel_id}/trips"), params=params
        )
        return (data or {}).get("trips", [])

    def _transform_booking(self, raw: Dict[str, Any]) -> Booking:
        contact = raw["contact"]
        room = raw["room"]
        stay = raw["stay"]
        fare = raw["fare"]
        return self._build_booking(
            external_booking_id=raw["trip_id"],
            status=raw["state"],
            guest=self._guest(
                contact.get("first_name"),
                contact.get("last_name"),
                contact.get("email"),
                contact.get("mobile"),
            ),
            room=self._room(
                room["code"],
                room.get("count", 1),
                room["adults"],
                room.get("children", 0),
            ),
            check_in=stay["check_in"],
            check_out=stay["check_out"],
            amounts=self._amounts(
                fare.get("currency"),
                fare["total"],
                net=fare.get("net"),
                commission=fare.get("commission"),
            ),
            created_at=raw.get("booked_at"),
            modified_at=raw.get("amended_at"),
        )

    @log_performance("confirm_booking")
    async def confirm_booking(self, booking_id: str) -> Dict[str, Any]:
        return await self._lifecycle(
            "confirm",
            "POST",
            self._path(TRIP_PATH + "/confirm", booking_id=booking_id),
            booking_id,
        )

    @log_performance("cancel_booking")
    async def cancel_booking(
        self, booking_id: str, reason: Optional[str] = None
    ) -> Dict[str, Any]:
        reason = reason or "Property initiated cancellation"
        return await self._lifecycle(
            "cancel",
            "POST",
            self._path(TRIP_PATH + "/cancel", booking_id=booking_id),
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
            "PATCH",
            self._path(TRIP_PATH, booking_id=booking_id),
            booking_id,
            body=dict(changes),
        )
