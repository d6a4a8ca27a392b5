"""
Goibibo Channel Connector

Every request is signed with HMAC-SHA256 over method, path (without query
string), timestamp, nonce and the SHA-256 of the exact body bytes.
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


class GoibiboConnector(BaseChannelConnector):
    channel_name = "goibibo"
    DISPLAY_NAME = "Goibibo"
    DEFAULT_BASE_URL = "https://partners.goibibo.com/api/v2"
    HEALTH_PATH = "/hotels/{hotel_id}/health"

    BULK_PATHS = {
        "inventory": "/hotels/{hotel_id}/inventory/bulk",
        "rates": "/hotels/{hotel_id}/rates/bulk",
        "availability": "/hotels/{hotel_id}/availability/bulk",
        "restrictions": "/hotels/{hotel_id}/restrictions/bulk",
    }
    ITEM_PATHS = {
        "inventory": "/hotels/{hotel_id}/inventory",
        "rates": "/hotels/{hotel_id}/rates",
        "availability": "/hotels/{hotel_id}/availability",
        "restrictions": "/hotels/{hotel_id}/restrictions",
    }
    default_batch_size = 50

    # api_secret is checked by the signer so a missing secret fails per request
    REQUIRED_CREDENTIALS = ("api_key",)
    BOOKING_ID_FIELD = "booking_ref"
    STATUS_MAP = {
        "Confirmed": BookingStatus.CONFIRMED,
        "Pending": BookingStatus.PENDING,
        "Modified": BookingStatus.MODIFIED,
        "Cancelled": BookingStatus.CANCELLED,
        "NoShow": BookingStatus.NO_SHOW,
        "CheckedOut": BookingStatus.COMPLETED,
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
            "X-GI-Key": self.signer.key_id,
            "X-GI-Timestamp": signature.timestamp,
            "X-GI-Nonce": signature.nonce,
            "X-GI-Signature": signature.signature,
        }

    def _inventory_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "room_type_id": self._partner_room(item),
            "date": item.date.isoformat(),
            "inventory": item.availability,
            "sell_rate": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _rate_payload(self, item: RateItem) -> Dict[str, Any]:
        return {
            "room_type_id": self._partner_room(item),
            "rate_plan_id": self.config.partner_rate_plan(item.rate_plan_id),
            "date": item.date.isoformat(),
            "sell_rate": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _availability_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "room_type_id": self._partner_room(item),
            "date": item.date.isoformat(),
            "inventory": item.availability,
            "block": item.availability == 0,
        }

    def _restriction_payload(self, item: RestrictionItem) -> Dict[str, Any]:
        return {
            "room_type_id": self._partner_room(item),
            "date": item.date.isoformat(),
            "min_los": item.min_stay,
            "max_los": item.max_stay,
            "cta": item.closed_to_arrival,
            "ctd": item.closed_to_departure,
            "block": item.stop_sell,
        }

    def _batch_body(self, kind: str, payloads: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"hotel_id": self.hotel_id, "data": payloads}

    async def _fetch_raw_bookings(
        self, from_date: Optional[date], to_date: Optional[date]
    ) -> List[Dict[str, Any]]:
        params = {}
        if from_date:
            params["from_date"] = self.isodate(from_date)
        if to_date:
            params["to_date"] = self.isodate(to_date)
        data = await self._request(
            "GET", self._path("/hotels/{hotel_id}/bookings"), params=params
        )
        return (data or {}).get("bookings", [])

    def _transform_booking(self, raw: Dict[str, Any]) -> Booking:
        return self._build_booking(
            external_booking_id=raw["booking_ref"],
            status=raw["booking_status"],
            guest=self._guest(
                raw.get("guest_first_name"),
                raw.get("guest_last_name"),
                raw.get("guest_email"),
                raw.get("guest_phone"),
            ),
            room=self._room(
                raw["room_type_id"],
                raw.get("rooms", 1),
                raw["adults"],
                raw.get("children", 0),
            ),
            check_in=raw["checkin"],
            check_out=raw["checkout"],
            amounts=self._amounts(
                raw.get("currency"),
                raw["booking_amount"],
                net=raw.get("hotel_payable"),
            ),
            created_at=raw.get("created_on"),
            modified_at=raw.get("updated_on"),
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
            "POST",
            self._path("/bookings/{booking_id}/modify", booking_id=booking_id),
            booking_id,
            body={"hotel_id": self.hotel_id, "changes": dict(changes)},
        )
