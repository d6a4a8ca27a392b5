"""
MakeMyTrip Channel Connector
InGo-MMT partner API: static API key plus a short-lived bearer token
"""

import asyncio
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from ...contracts import (
    AuthenticationError,
    BaseChannelConnector,
    BatchRejectedError,
    Booking,
    BookingStatus,
    InventoryItem,
    RateItem,
    RestrictionItem,
    TransportError,
)
from ...utils.logging import log_performance

TOKEN_PATH = "/auth/token"
# Refresh slightly before the partner expires the token
TOKEN_EXPIRY_MARGIN = 60


class MakeMyTripConnector(BaseChannelConnector):
    channel_name = "makemytrip"
    DISPLAY_NAME = "MakeMyTrip"
    DEFAULT_BASE_URL = "https://connect.makemytrip.com/api/v1"
    HEALTH_PATH = "/hotels/{hotel_id}"

    BULK_PATHS = {
        "inventory": "/inventory/batch",
        "rates": "/rates/batch",
        "availability": "/availability/batch",
        "restrictions": "/restrictions/batch",
    }
    ITEM_PATHS = {
        "inventory": "/inventory",
        "rates": "/rates",
        "availability": "/availability",
        "restrictions": "/restrictions",
    }
    default_batch_size = 100

    REQUIRED_CREDENTIALS = ("api_key", "api_secret")
    BOOKING_ID_FIELD = "bookingId"
    STATUS_MAP = {
        "CONFIRMED": BookingStatus.CONFIRMED,
        "PENDING": BookingStatus.PENDING,
        "MODIFIED": BookingStatus.MODIFIED,
        "CANCELLED": BookingStatus.CANCELLED,
        "NO_SHOW": BookingStatus.NO_SHOW,
        "COMPLETED": BookingStatus.COMPLETED,
    }

    def __init__(self, config, accessor, **kwargs):
        super().__init__(config, accessor, **kwargs)
        self._access_token: Optional[str] = None
        self._token_expires_at: Optional[float] = None
        self._token_lock: Optional[asyncio.Lock] = None

    async def disconnect(self):
        await super().disconnect()
        self._access_token = None
        self._token_expires_at = None

    # Authentication

    def _static_headers(self) -> Dict[str, str]:
        headers = {"X-API-Key": self.config.credential("api_key")}
        partner_id = self.config.credential("partner_id")
        if partner_id:
            headers["X-Partner-ID"] = partner_id
        return headers

    async def _authenticate(self):
        """Exchange the API key/secret for a bearer token"""
        if self._client is None:
            await self.connect()

        self.logger.info("Authenticating with MakeMyTrip")
        await self._throttle()
        start_time = datetime.now(timezone.utc)
        try:
            response = await self._client.post(
                TOKEN_PATH,
                headers=self._static_headers(),
                json={
                    "apiKey": self.config.credential("api_key"),
                    "apiSecret": self.config.credential("api_secret"),
                    "hotelCode": self.hotel_id,
                },
            )
        except httpx.TimeoutException as e:
            self._record_call(start_time, ok=False)
            raise TransportError(f"MakeMyTrip token exchange timed out: {e}", retryable=True) from e
        except httpx.RequestError as e:
            self._record_call(start_time, ok=False)
            raise TransportError(f"MakeMyTrip token exchange failed: {e}", retryable=True) from e
        self._record_call(start_time, ok=not response.is_error)

        if response.status_code in (401, 403):
            raise AuthenticationError(
                "MakeMyTrip rejected API credentials", status_code=response.status_code
            )
        if response.is_error:
            raise TransportError(
                f"MakeMyTrip token exchange returned {response.status_code}",
                status_code=response.status_code,
                retryable=response.status_code >= 500 or response.status_code == 429,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError("MakeMyTrip token response is not JSON") from e
        token_data = data.get("data") or {}
        if data.get("status") != "success" or not token_data.get("token"):
            raise AuthenticationError(
                f"MakeMyTrip token exchange failed: {data.get('message', 'no token returned')}"
            )

        try:
            expires_in = int(token_data.get("expiresIn", 3600))
        except (TypeError, ValueError) as e:
            raise AuthenticationError(
                f"MakeMyTrip token expiry is not a number: {token_data.get('expiresIn')!r}"
            ) from e
        self._access_token = token_data["token"]
        self._token_expires_at = datetime.now(timezone.utc).timestamp() + expires_in
        self.logger.info("Successfully authenticated with MakeMyTrip", expires_in=expires_in)

    def _token_is_valid(self) -> bool:
        return bool(self._access_token) and (
            datetime.now(timezone.utc).timestamp()
            < self._token_expires_at - TOKEN_EXPIRY_MARGIN
        )

    async def _ensure_authenticated(self):
        """Ensure we have a valid token; concurrent callers share one exchange"""
        if self._token_is_valid():
            return
        if self._token_lock is None:
            self._token_lock = asyncio.Lock()
        async with self._token_lock:
            if self._token_is_valid():
                return
            async for attempt in self._retrying():
                with attempt:
                    await self._authenticate()

    async def _auth_headers(self, method: str, path: str, body: bytes) -> Dict[str, str]:
        await self._ensure_authenticated()
        headers = self._static_headers()
        headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    def _status_error(self, method: str, path: str, response) -> TransportError:
        if response.status_code == 401:
            # Token revoked or expired early; next request re-authenticates
            self._access_token = None
            self._token_expires_at = None
        return super()._status_error(method, path, response)

    async def _ping(self) -> Optional[str]:
        data = await self._request("GET", self._path(self.HEALTH_PATH), retry=False)
        if not isinstance(data, dict) or data.get("status") != "success":
            return "MakeMyTrip health check did not report success"
        return None

    # Payloads

    def _inventory_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "hotelCode": self.hotel_id,
            "roomCode": self._partner_room(item),
            "date": item.date.isoformat(),
            "available": item.availability,
            "rate": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _rate_payload(self, item: RateItem) -> Dict[str, Any]:
        return {
            "hotelCode": self.hotel_id,
            "roomCode": self._partner_room(item),
            "ratePlanCode": self.config.partner_rate_plan(item.rate_plan_id),
            "date": item.date.isoformat(),
            "rate": str(item.rate),
            "currency": self._currency(item.currency),
        }

    def _availability_payload(self, item: InventoryItem) -> Dict[str, Any]:
        return {
            "hotelCode": self.hotel_id,
            "roomCode": self._partner_room(item),
            "date": item.date.isoformat(),
            "available": item.availability,
            "stopSell": item.availability == 0,
        }

    def _restriction_payload(self, item: RestrictionItem) -> Dict[str, Any]:
        return {
            "hotelCode": self.hotel_id,
            "roomCode": self._partner_room(item),
            "date": item.date.isoformat(),
            "minLos": item.min_stay,
            "maxLos": item.max_stay,
            "cta": item.closed_to_arrival,
            "ctd": item.closed_to_departure,
            "stopSell": item.stop_sell,
        }

    def _batch_body(self, kind: str, payloads: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"hotelCode": self.hotel_id, "updates": payloads}

    def _check_batch_response(self, kind: str, data: Any, size: int):
        if isinstance(data, dict) and data.get("status") not in (None, "success"):
            raise BatchRejectedError(
                f"makemytrip rejected {kind} batch of {size}: "
                f"{data.get('message') or data.get('status')}"
            )
        super()._check_batch_response(kind, data, size)

    # Bookings

    async def _fetch_raw_bookings(
        self, from_date: Optional[date], to_date: Optional[date]
    ) -> List[Dict[str, Any]]:
        params = {"hotelCode": self.hotel_id}
        if from_date:
            params["fromDate"] = self.isodate(from_date)
        if to_date:
            params["toDate"] = self.isodate(to_date)
        data = await self._request("GET", "/bookings", params=params)
        return ((data or {}).get("data") or {}).get("bookings", [])

    def _transform_booking(self, raw: Dict[str, Any]) -> Booking:
        guest = raw["guest"]
        return self._build_booking(
            external_booking_id=raw["bookingId"],
            status=raw["status"],
            guest=self._guest(
                guest.get("firstName"),
                guest.get("lastName"),
                guest.get("email"),
                guest.get("mobile"),
            ),
            room=self._room(
                raw["roomCode"],
                raw.get("noOfRooms", 1),
                raw["adults"],
                raw.get("children", 0),
            ),
            check_in=raw["checkIn"],
            check_out=raw["checkOut"],
            amounts=self._amounts(
                raw.get("currency"),
                raw["totalAmount"],
                net=raw.get("netAmount"),
                commission=raw.get("commission"),
            ),
            created_at=raw.get("bookedOn"),
            modified_at=raw.get("modifiedOn"),
        )

    @log_performance("confirm_booking")
    async def confirm_booking(self, booking_id: str) -> Dict[str, Any]:
        return await self._lifecycle(
            "confirm",
            "POST",
            self._path("/bookings/{booking_id}/acknowledge", booking_id=booking_id),
            booking_id,
            body={"hotelCode": self.hotel_id, "status": "CONFIRMED"},
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
            body={"hotelCode": self.hotel_id, "reason": reason},
            reason=reason,
        )

    @log_performance("modify_booking")
    async def modify_booking(
        self, booking_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._lifecycle(
            "modify",
            "PUT",
            self._path("/bookings/{booking_id}", booking_id=booking_id),
            booking_id,
            body={"hotelCode": self.hotel_id, **changes},
        )
