"""
Airbnb Channel Connector

Airbnb has no bulk ARI endpoint: every night of every listing is pushed on
its own calendar. Booking mutations are refused while the API is unreachable.
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


class AirbnbConnector(BaseChannelConnector):
    channel_name = "airbnb"
    DISPLAY_NAME = "Airbnb"
    DEFAULT_BASE_URL = "https://api.airbnb.com/v2"
    HEALTH_PATH = "/hosts/{hotel_id}"

    # Listings map to local room types
    ITEM_PATHS = {
        "inventory": "/listings/{listing_id}/calendar",
        "rates": "/listings/{listing_id}/calendar",
        "availability": "/listings/{listing_id}/calendar",
        "restrictions": "/listings/{listing_id}/availability_rules",
    }
    ITEM_METHOD = "PUT"
    requires_preflight = True

    REQUIRED_CREDENTIALS = ("access_token",)
    BOOKING_ID_FIELD = "confirmation_code"
    STATUS_MAP = {
        "accepted": BookingStatus.CONFIRMED,
        "pending": BookingStatus.PENDING,
        "altered": BookingStatus.MODIFIED,
        "cancelled": BookingStatus.CANCELLED,
        "cancelled_by_guest": BookingStatus.CANCELLED,
        "cancelled_by_host": BookingStatus.CANCELLED,
        "no_show": BookingStatus.NO_SHOW,
        "completed": BookingStatus.COMPLETED,
    }

    async def _auth_headers(self, method: str, path: str, body: bytes) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.config.credential('access_token')}"}

    def _path_params(self, item: Any) -> Dict[str, Any]:
        return {"listing_id": self._partner_room(item)}

    def _inventory_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "night": item.date.isoformat(),
            "available": item.availability > 0,
            "nightly_price": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _rate_payload(self, item: RateItem) -> Dict[str, Any]:
        return {
            "night": item.date.isoformat(),
            "nightly_price": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _availability_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "night": item.date.isoformat(),
            "available": item.availability > 0,
        }

    def _restriction_payload(self, item: RestrictionItem) -> Dict[str, Any]:
        return {
            "night": item.date.isoformat(),
            "min_nights": item.min_stay,
            "max_nights": item.max_stay,
            "closed_to_checkin": item.closed_to_arrival,
            "closed_to_checkout": item.closed_to_departure,
            "available": not item.stop_sell,
        }

    async def _fetch_raw_bookings(
        self, from_date: Optional[date], to_date: Optional[date]
    ) -> List[Dict[str, Any]]:
        params = {"host_id": self.hotel_id}
        if from_date:
            params["start_date"] = self.isodate(from_date)
        if to_date:
            params["end_date"] = self.isodate(to_date)
        data = await self._request("GET", "/reservations", params=params)
        return (data or {}).get("reservations", [])

    def _transform_booking(self, raw: Dict[str, Any]) -> Booking:
        guest = raw["guest"]
        occupancy = raw.get("guest_details") or {}
        return self._build_booking(
            external_booking_id=raw["confirmation_code"],
            status=raw["status"],
            guest=self._guest(
                guest.get("first_name"),
                guest.get("last_name"),
                guest.get("email"),
                guest.get("phone"),
            ),
            room=self._room(
                raw["listing_id"],
                1,
                occupancy["number_of_adults"],
                occupancy.get("number_of_children", 0),
            ),
            check_in=raw["start_date"],
            check_out=raw["end_date"],
            amounts=self._amounts(
                raw.get("currency"),
                raw["total_price"],
                commission=raw.get("host_fee"),
            ),
            created_at=raw.get("created_at"),
            modified_at=raw.get("updated_at"),
        )

    @log_performance("confirm_booking")
    async def confirm_booking(self, booking_id: str) -> Dict[str, Any]:
        return await self._lifecycle(
            "confirm",
            "POST",
            self._path("/reservations/{booking_id}/accept", booking_id=booking_id),
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
            self._path("/reservations/{booking_id}/cancel", booking_id=booking_id),
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
            self._path("/reservations/{booking_id}/alteration", booking_id=booking_id),
            booking_id,
            body=dict(changes),
        )
