"""
Expedia Channel Connector
Partner Central REST API; every body travels inside an "entity" envelope
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

RESERVATION_PATH = "/properties/v1/{hotel_id}/reservations/{booking_id}"


class ExpediaConnector(BaseChannelConnector):
    channel_name = "expedia"
    DISPLAY_NAME = "Expedia"
    DEFAULT_BASE_URL = "https://services.expediapartnercentral.com"
    HEALTH_PATH = "/properties/v1/{hotel_id}"

    BULK_PATHS = {
        "inventory": "/properties/v1/{hotel_id}/inventory/batch",
        "rates": "/properties/v1/{hotel_id}/rates/batch",
        "availability": "/properties/v1/{hotel_id}/availability/batch",
        "restrictions": "/properties/v1/{hotel_id}/restrictions/batch",
    }
    ITEM_PATHS = {
        "inventory": "/properties/v1/{hotel_id}/inventory",
        "rates": "/properties/v1/{hotel_id}/rates",
        "availability": "/properties/v1/{hotel_id}/availability",
        "restrictions": "/properties/v1/{hotel_id}/restrictions",
    }
    default_batch_size = 100

    REQUIRED_CREDENTIALS = ("username", "password")
    STATUS_MAP = {
        "Booked": BookingStatus.CONFIRMED,
        "Confirmed": BookingStatus.CONFIRMED,
        "Pending": BookingStatus.PENDING,
        "Modified": BookingStatus.MODIFIED,
        "Cancelled": BookingStatus.CANCELLED,
        "NoShow": BookingStatus.NO_SHOW,
        "Completed": BookingStatus.COMPLETED,
    }

    async def _auth_headers(self, method: str, path: str, body: bytes) -> Dict[str, str]:
        credentials = f"{self.config.credential('username')}:{self.config.credential('password')}"
        encoded = base64.b64encode(credentials.encode()).decode()
        return {"Authorization": f"Basic {encoded}"}

    def _inventory_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "roomTypeId": self._partner_room(item),
            "date": item.date.isoformat(),
            "totalInventoryAvailable": item.availability,
            "rate": {"amount": str(item.rate), "currency": self._currency(item.currency)},
        }

    def _rate_payload(self, item: RateItem) -> Dict[str, Any]:
        return {
            "roomTypeId": self._partner_room(item),
            "ratePlanId": self.config.partner_rate_plan(item.rate_plan_id),
            "date": item.date.isoformat(),
            "rate": {"amount": str(item.rate), "currency": self._currency(item.currency)},
        }

    def _availability_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "roomTypeId": self._partner_room(item),
            "date": item.date.isoformat(),
            "totalInventoryAvailable": item.availability,
            "status": "Open" if item.availability > 0 else "Closed",
        }

    def _restriction_payload(self, item: RestrictionItem) -> Dict[str, Any]:
        return {
            "roomTypeId": self._partner_room(item),
            "date": item.date.isoformat(),
            "minLOS": item.min_stay,
            "maxLOS": item.max_stay,
            "closedToArrival": item.closed_to_arrival,
            "closedToDeparture": item.closed_to_departure,
            "status": "Closed" if item.stop_sell else "Open",
        }

    def _batch_body(self, kind: str, payloads: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"entity": payloads}

    def _item_body(self, kind: str, payload: Dict[str, Any]) -> Any:
        return {"entity": payload}

    async def _fetch_raw_bookings(
        self, from_date: Optional[date], to_date: Optional[date]
    ) -> List[Dict[str, Any]]:
        params = {}
        if from_date:
            params["checkInFrom"] = self.isodate(from_date)
        if to_date:
            params["checkInTo"] = self.isodate(to_date)
        data = await self._request(
            "GET", self._path("/properties/v1/{hotel_id}/reservations"), params=params
        )
        return (data or {}).get("entity", [])

    def _transform_booking(self, raw: Dict[str, Any]) -> Booking:
        guest = raw["primaryGuest"]
        total = raw["totalAmount"]
        return self._build_booking(
            external_booking_id=raw["id"],
            status=raw["status"],
            guest=self._guest(
                guest.get("givenName"),
                guest.get("surName"),
                guest.get("email"),
                guest.get("phoneNumber"),
            ),
            room=self._room(
                raw["roomTypeId"],
                raw.get("rooms", 1),
                raw["adultCount"],
                raw.get("childCount", 0),
            ),
            check_in=raw["checkInDate"],
            check_out=raw["checkOutDate"],
            amounts=self._amounts(
                total.get("currency"),
                total["amount"],
                net=(raw.get("netAmount") or {}).get("amount"),
                commission=(raw.get("commissionAmount") or {}).get("amount"),
            ),
            created_at=raw.get("creationDateTime"),
            modified_at=raw.get("lastUpdateDateTime"),
        )

    @log_performance("confirm_booking")
    async def confirm_booking(self, booking_id: str) -> Dict[str, Any]:
        return await self._lifecycle(
            "confirm",
            "POST",
            self._path(RESERVATION_PATH + "/confirmation", booking_id=booking_id),
            booking_id,
            body={"entity": {"status": "Confirmed"}},
        )

    @log_performance("cancel_booking")
    async def cancel_booking(
        self, booking_id: str, reason: Optional[str] = None
    ) -> Dict[str, Any]:
        reason = reason or "Property initiated cancellation"
        return await self._lifecycle(
            "cancel",
            "POST",
            self._path(RESERVATION_PATH + "/cancellation", booking_id=booking_id),
            booking_id,
            body={"entity": {"reason": reason}},
            reason=reason,
        )

    @log_performance("modify_booking")
    async def modify_booking(
        self, booking_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._lifecycle(
            "modify",
            "PATCH",
            self._path(RESERVATION_PATH, booking_id=booking_id),
            booking_id,
            body={"entity": dict(changes)},
        )
