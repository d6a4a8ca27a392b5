"""
OTA Channel Connector Contracts
Universal interface that all channel adapters must implement
"""

import asyncio
import json
import math
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Sequence
from urllib.parse import quote

import httpx
from dateutil import parser as date_parser
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from .utils.logging import ConnectorLogger, log_performance
from .utils.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpenError,
    TokenBucketRateLimiter,
)


# Domain Models (channel-agnostic)
@dataclass(frozen=True)
class InventoryItem:
    """One cell of the local availability/rate grid"""

    room_type_id: str
    date: date
    availability: int
    rate: Decimal
    currency: Optional[str] = None

    def __post_init__(self):
        if self.availability < 0:
            raise ValueError(
                f"availability must be non-negative, got {self.availability} "
                f"for {self.room_type_id} on {self.date}"
            )


@dataclass(frozen=True)
class RateItem:
    room_type_id: str
    date: date
    rate: Decimal
    currency: str
    rate_plan_id: Optional[str] = None


@dataclass(frozen=True)
class RestrictionItem:
    room_type_id: str
    date: date
    min_stay: int = 1
    max_stay: Optional[int] = None
    closed_to_arrival: bool = False
    closed_to_departure: bool = False
    stop_sell: bool = False


class BookingStatus(str, Enum):
    """Closed set of booking states handed to callers"""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    MODIFIED = "modified"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


@dataclass(frozen=True)
class GuestDetails:
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class RoomDetails:
    room_type_id: str  # local room type id
    room_count: int
    adults: int
    children: int = 0


@dataclass(frozen=True)
class MonetaryBreakdown:
    gross: Decimal
    net: Decimal
    commission: Decimal
    currency: str


@dataclass(frozen=True)
class Booking:
    external_booking_id: str
    channel: str
    guest: GuestDetails
    room: RoomDetails
    check_in: date
    check_out: date
    amounts: MonetaryBreakdown
    status: BookingStatus
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    def same_reservation_as(self, other: "Booking") -> bool:
        """True when both describe the same stay, whatever channel sold it"""
        return (
            self.guest == other.guest
            and self.room == other.room
            and self.check_in == other.check_in
            and self.check_out == other.check_out
            and self.amounts == other.amounts
            and self.status == other.status
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "external_booking_id": self.external_booking_id,
            "channel": self.channel,
            "guest": {
                "first_name": self.guest.first_name,
                "last_name": self.guest.last_name,
                "email": self.guest.email,
                "phone": self.guest.phone,
            },
            "room": {
                "room_type_id": self.room.room_type_id,
                "room_count": self.room.room_count,
                "adults": self.room.adults,
                "children": self.room.children,
            },
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "amounts": {
                "gross": str(self.amounts.gross),
                "net": str(self.amounts.net),
                "commission": str(self.amounts.commission),
                "currency": self.amounts.currency,
            },
            "status": self.status.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "modified_at": self.modified_at.isoformat() if self.modified_at else None,
        }


@dataclass
class RejectedBooking:
    """A partner record that could not be normalized"""

    external_id: Optional[str]
    reason: str
    raw: Dict[str, Any]


@dataclass
class BookingFetchResult:
    bookings: List[Booking] = field(default_factory=list)
    rejected: List[RejectedBooking] = field(default_factory=list)

    def __iter__(self) -> Iterator[Booking]:
        return iter(self.bookings)

    def __len__(self) -> int:
        return len(self.bookings)


@dataclass
class SyncError:
    item: Any
    cause: str
    error_type: str

    @classmethod
    def from_exception(cls, item: Any, exc: Exception) -> "SyncError":
        return cls(item=item, cause=str(exc), error_type=type(exc).__name__)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "room_type_id": getattr(self.item, "room_type_id", None),
            "date": str(getattr(self.item, "date", "")) or None,
            "cause": self.cause,
            "error_type": self.error_type,
        }


@dataclass
class SyncResult:
    success: bool
    synced: int
    errors: List[SyncError] = field(default_factory=list)
    kind: str = "inventory"
    batch_failures: int = 0
    cancelled: bool = False

    @property
    def partial(self) -> bool:
        """Partial failure: surface as a warning, not a hard error"""
        return not self.success and self.synced > 0

    @property
    def outcome(self) -> str:
        if self.success:
            return "success"
        return "partial" if self.partial else "failed"

    def to_details(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "synced": self.synced,
            "errors": [error.to_dict() for error in self.errors],
            "batch_failures": self.batch_failures,
            "cancelled": self.cancelled,
        }


@dataclass
class ConnectionStatus:
    connected: bool
    last_sync: Optional[datetime] = None
    error: Optional[str] = None


@dataclass
class ConnectorMetrics:
    """HTTP call counters for one connector instance"""

    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_response_ms: float = 0.0
    last_response_ms: Optional[float] = None

    def record(self, duration_ms: float, ok: bool):
        self.request_count += 1
        if ok:
            self.success_count += 1
        else:
            self.error_count += 1
        self.total_response_ms += duration_ms
        self.last_response_ms = duration_ms

    @property
    def average_response_ms(self) -> float:
        if not self.request_count:
            return 0.0
        return self.total_response_ms / self.request_count

    @property
    def success_rate(self) -> float:
        if not self.request_count:
            return 0.0
        return self.success_count / self.request_count

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["average_response_ms"] = round(self.average_response_ms, 2)
        data["success_rate"] = round(self.success_rate, 4)
        return data


# Error types
class ChannelError(Exception):
    """Base exception for channel operations"""

    pass


class ConfigurationError(ChannelError):
    """Channel not configured, disabled, or configured inconsistently"""

    pass


class SigningError(ConfigurationError):
    """Request signature cannot be produced"""

    pass


class UnsupportedChannelError(ChannelError):
    """Factory asked for a channel it does not know"""

    pass


class TransportError(ChannelError):
    """Network failure, timeout or non-2xx answer from the partner"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class AuthenticationError(TransportError):
    """Partner rejected our credentials"""

    pass


class RateLimitError(TransportError):
    """Rate limit exceeded"""

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message, status_code=429, retryable=True)
        self.retry_after = retry_after


class CircuitOpenError(TransportError):
    """Recent partner failures opened the circuit; nothing was sent"""

    pass


class BatchRejectedError(TransportError):
    """Partner accepted the request but reported failures inside the batch"""

    pass


class TransformError(ChannelError):
    """Partner payload does not match the expected booking shape"""

    pass


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, TransportError) and exc.retryable


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date)"""
    if value is None:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        when = date_parser.parse(value)
    except (ValueError, OverflowError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0, math.ceil((when - datetime.now(timezone.utc)).total_seconds()))


class wait_retry_after(wait_base):
    """Wait what the partner asked for on 429, capped; otherwise fall back"""

    def __init__(self, fallback: wait_base, max_wait: float):
        self.fallback = fallback
        self.max_wait = max_wait

    def __call__(self, retry_state) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitError) and exc.retry_after is not None:
            return min(float(exc.retry_after), self.max_wait)
        return self.fallback(retry_state)


# Main Protocol
class ChannelConnector(Protocol):
    """
    Universal channel connector interface.
    All methods are async for consistency.
    """

    @property
    def channel_name(self) -> str:
        """Return the channel key (e.g., 'booking_com', 'agoda')"""
        ...

    @property
    def capabilities(self) -> Dict[str, bool]:
        """Return capability matrix for this connector"""
        ...

    async def get_connection_status(self) -> ConnectionStatus:
        """Check the partner is reachable; never raises"""
        ...

    async def sync_inventory(
        self, cancel_event: Optional[asyncio.Event] = None
    ) -> SyncResult:
        """Push the local inventory snapshot to the partner"""
        ...

    async def sync_rates(
        self, cancel_event: Optional[asyncio.Event] = None
    ) -> SyncResult:
        ...

    async def sync_availability(
        self, cancel_event: Optional[asyncio.Event] = None
    ) -> SyncResult:
        ...

    async def sync_restrictions(
        self,
        restrictions: Sequence[RestrictionItem],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SyncResult:
        ...

    async def get_bookings(
        self, from_date: Optional[date] = None, to_date: Optional[date] = None
    ) -> BookingFetchResult:
        """Fetch partner bookings and normalize them"""
        ...

    async def confirm_booking(self, booking_id: str) -> Dict[str, Any]:
        ...

    async def cancel_booking(
        self, booking_id: str, reason: Optional[str] = None
    ) -> Dict[str, Any]:
        ...

    async def modify_booking(
        self, booking_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        ...


# Capability definitions
class Capabilities(Enum):
    """Standard capability flags"""

    INVENTORY = "inventory"
    RATES = "rates"
    AVAILABILITY = "availability"
    RESTRICTIONS = "restrictions"
    BULK_UPDATES = "bulk_updates"
    BOOKINGS = "bookings"
    CONFIRM_BOOKING = "confirm_booking"
    CANCEL_BOOKING = "cancel_booking"
    MODIFY_BOOKING = "modify_booking"


SYNC_KINDS = ("inventory", "rates", "availability", "restrictions")


# Base implementation with common functionality
class BaseChannelConnector(ABC):
    """Base class with common functionality for all channel adapters"""

    channel_name = "base"
    DISPLAY_NAME = "Base"
    DEFAULT_BASE_URL = ""
    HEALTH_PATH = "/"

    # Bulk endpoints per sync kind; empty means per-item only
    BULK_PATHS: Dict[str, str] = {}
    ITEM_PATHS: Dict[str, str] = {}
    ITEM_METHOD = "POST"

    default_batch_size: Optional[int] = None
    requires_preflight = False
    REQUIRED_CREDENTIALS: Sequence[str] = ()
    STATUS_MAP: Dict[str, BookingStatus] = {}
    BOOKING_ID_FIELD = "id"

    capabilities = {cap.value: True for cap in Capabilities}

    def __init__(
        self,
        config,
        accessor,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        if config.channel != self.channel_name:
            raise ConfigurationError(
                f"{self.__class__.__name__} cannot use configuration for "
                f"channel '{config.channel}'"
            )
        missing = [
            name for name in self.REQUIRED_CREDENTIALS if not config.credential(name)
        ]
        if missing:
            raise ConfigurationError(
                f"Missing credentials for {self.channel_name} on property "
                f"{config.property_id}: {missing}"
            )

        self.config = config
        self.accessor = accessor
        self.property_id = config.property_id
        self.hotel_id = config.channel_property_id
        self.base_url = (config.base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.settings = config.sync_settings
        self._client: Optional[httpx.AsyncClient] = None
        self._last_sync_at: Optional[datetime] = None
        self.metrics = ConnectorMetrics()

        if rate_limiter is None and self.settings.requests_per_minute:
            rate_limiter = TokenBucketRateLimiter.per_minute(self.settings.requests_per_minute)
        self.rate_limiter = rate_limiter
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            CircuitBreakerConfig(
                name=self.channel_name,
                failure_threshold=self.settings.circuit_failure_threshold,
                recovery_timeout=self.settings.circuit_recovery_timeout,
                counts_as_failure=is_retryable,
            )
        )

        self.logger = ConnectorLogger(
            name=f"{self.__class__.__module__}.{self.__class__.__name__}",
            vendor=self.channel_name,
            hotel_id=self.hotel_id,
        )

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    @property
    def supports_bulk(self) -> bool:
        return bool(self.BULK_PATHS)

    @property
    def batch_size(self) -> Optional[int]:
        return self.settings.batch_size or self.default_batch_size

    async def connect(self):
        """Open the pooled HTTP client"""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.settings.request_timeout, connect=10.0),
            limits=httpx.Limits(
                max_keepalive_connections=self.settings.max_concurrency,
                max_connections=self.settings.max_concurrency * 2,
                keepalive_expiry=30.0,
            ),
            headers={
                "User-Agent": "ota-connectors/1.0",
                "Accept": "application/json",
            },
        )

    async def disconnect(self):
        """Clean up connection"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # Partner specifics every adapter supplies

    @abstractmethod
    async def _auth_headers(
        self, method: str, path: str, body: bytes
    ) -> Dict[str, str]:
        """Headers that authenticate one request"""

    @abstractmethod
    def _inventory_payload(self, item: InventoryItem) -> Dict[str, Any]:
        ...

    @abstractmethod
    def _rate_payload(self, item: RateItem) -> Dict[str, Any]:
        ...

    @abstractmethod
    def _availability_payload(self, item: InventoryItem) -> Dict[str, Any]:
        ...

    @abstractmethod
    def _restriction_payload(self, item: RestrictionItem) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def _fetch_raw_bookings(
        self, from_date: Optional[date], to_date: Optional[date]
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def _transform_booking(self, raw: Dict[str, Any]) -> Booking:
        """Single place where the partner's booking field names live"""

    @abstractmethod
    async def confirm_booking(self, booking_id: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def cancel_booking(
        self, booking_id: str, reason: Optional[str] = None
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def modify_booking(
        self, booking_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        ...

    # HTTP plumbing

    def _path(self, template: str, **kwargs) -> str:
        """Fill a path template; every value becomes one quoted segment"""
        values = {"hotel_id": self.hotel_id, **kwargs}
        return template.format(
            **{key: quote(str(value), safe="") for key, value in values.items()}
        )

    def _retrying(self) -> AsyncRetrying:
        """Bounded exponential backoff for idempotent calls"""
        return AsyncRetrying(
            stop=stop_after_attempt(self.settings.retry_attempts),
            wait=wait_retry_after(
                wait_exponential(
                    multiplier=0.5,
                    min=min(0.5, self.settings.retry_backoff_max),
                    max=self.settings.retry_backoff_max,
                ),
                max_wait=self.settings.retry_backoff_max,
            ),
            retry=retry_if_exception(is_retryable),
            reraise=True,
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        retry: bool = True,
    ) -> Any:
        """Authenticated request; retries only when `retry` is set"""
        try:
            return await self.circuit_breaker.call(
                self._attempt, method, path, json_body, params, retry
            )
        except CircuitBreakerOpenError as e:
            raise CircuitOpenError(
                f"{self.channel_name} {method} {path} not sent: {e}"
            ) from e

    async def _attempt(
        self,
        method: str,
        path: str,
        json_body: Optional[Any],
        params: Optional[Dict[str, Any]],
        retry: bool,
    ) -> Any:
        if not retry:
            return await self._send(method, path, json_body, params)

        async for attempt in self._retrying():
            with attempt:
                return await self._send(method, path, json_body, params)

    async def _throttle(self):
        """Wait for the partner rate limit, when one is configured"""
        if self.rate_limiter is None:
            return
        waited = await self.rate_limiter.acquire()
        if waited:
            self.logger.debug("Throttled by partner rate limit", waited_s=round(waited, 3))

    def _record_call(self, start_time: datetime, ok: bool) -> float:
        duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        self.metrics.record(duration_ms, ok)
        return duration_ms

    async def _send(
        self,
        method: str,
        path: str,
        json_body: Optional[Any],
        params: Optional[Dict[str, Any]],
    ) -> Any:
        body = b""
        if json_body is not None:
            body = json.dumps(
                json_body, separators=(",", ":"), sort_keys=True, default=str
            ).encode()

        # Auth comes first so a signing failure never reaches the wire
        headers = await self._auth_headers(method, path, body)
        if json_body is not None:
            headers["Content-Type"] = "application/json"

        if self._client is None:
            await self.connect()

        await self._throttle()
        start_time = datetime.now(timezone.utc)
        try:
            response = await self._client.request(
                method, path, content=body or None, params=params, headers=headers
            )
        except httpx.TimeoutException as e:
            self._record_call(start_time, ok=False)
            raise TransportError(
                f"{self.channel_name} {method} {path} timed out: {e}", retryable=True
            ) from e
        except httpx.RequestError as e:
            self._record_call(start_time, ok=False)
            raise TransportError(
                f"{self.channel_name} {method} {path} failed: {e}", retryable=True
            ) from e

        duration_ms = self._record_call(start_time, ok=not response.is_error)
        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            self.logger.warning(
                f"Rate limit hit for {method} {path}", retry_after=retry_after
            )
            message = f"{self.channel_name} rate limit exceeded"
            if retry_after is not None:
                message += f", retry after {retry_after}s"
            raise RateLimitError(message, retry_after=retry_after)

        if response.is_error:
            error = self._status_error(method, path, response)
            self.logger.log_api_call(
                operation=f"{method} {path}",
                status_code=response.status_code,
                duration_ms=duration_ms,
                error=error,
            )
            raise error

        self.logger.log_api_call(
            operation=f"{method} {path}",
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                f"{self.channel_name} {method} {path} returned invalid JSON"
            ) from e

    def _status_error(self, method: str, path: str, response) -> TransportError:
        status = response.status_code
        message = f"{self.channel_name} {method} {path} returned {status}: {response.text[:200]}"
        if status in (401, 403):
            return AuthenticationError(message, status_code=status)
        return TransportError(message, status_code=status, retryable=status >= 500)

    # Connection health

    async def _ping(self) -> Optional[str]:
        """Return None when healthy, otherwise a reason"""
        await self._request("GET", self._path(self.HEALTH_PATH), retry=False)
        return None

    @log_performance("get_connection_status")
    async def get_connection_status(self) -> ConnectionStatus:
        try:
            problem = await self._ping()
        except ChannelError as e:
            return ConnectionStatus(
                connected=False, last_sync=self._last_sync_at, error=str(e)
            )
        if problem:
            return ConnectionStatus(
                connected=False, last_sync=self._last_sync_at, error=problem
            )
        return ConnectionStatus(connected=True, last_sync=self._last_sync_at)

    def get_metrics(self) -> Dict[str, Any]:
        """Call counters plus circuit and rate limit state"""
        data = self.metrics.to_dict()
        data["circuit"] = self.circuit_breaker.get_stats().model_dump(mode="json")
        data["rate_limit"] = (
            self.rate_limiter.get_state().model_dump() if self.rate_limiter else None
        )
        return data

    def reset_metrics(self):
        self.metrics = ConnectorMetrics()
        self.circuit_breaker.reset()
        if self.rate_limiter is not None:
            self.rate_limiter.reset()
        self.logger.info("Connector metrics reset")

    async def _validate_connection(self) -> bool:
        status = await self.get_connection_status()
        return status.connected

    async def _preflight(self, operation: str):
        """Refuse state-changing calls when the partner is unreachable"""
        if self.requires_preflight and not await self._validate_connection():
            raise TransportError(
                f"{self.channel_name} unreachable, refusing to {operation}"
            )

    # Local data accessors

    async def _get_local_inventory(self) -> List[InventoryItem]:
        return list(await self.accessor.get_local_inventory(self.property_id))

    async def _get_local_rates(self) -> List[RateItem]:
        return list(await self.accessor.get_local_rates(self.property_id))

    async def _record_sync_outcome(self, result: SyncResult):
        await self.accessor.record_sync_outcome(
            self.property_id, self.channel_name, result.outcome, result.to_details()
        )

    # Synchronization

    def _payload(self, kind: str, item: Any) -> Dict[str, Any]:
        builders: Dict[str, Callable[[Any], Dict[str, Any]]] = {
            "inventory": self._inventory_payload,
            "rates": self._rate_payload,
            "availability": self._availability_payload,
            "restrictions": self._restriction_payload,
        }
        return builders[kind](item)

    def _batch_body(self, kind: str, payloads: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"updates": payloads}

    def _check_batch_response(self, kind: str, data: Any, size: int):
        """Raise when the partner reports failures inside an accepted batch"""
        if not isinstance(data, dict):
            return
        if data.get("success") is False or data.get("errors"):
            raise BatchRejectedError(
                f"{self.channel_name} rejected {kind} batch of {size}: "
                f"{data.get('errors') or data.get('message') or 'unspecified'}"
            )

    async def _push_batch(self, kind: str, items: Sequence[Any]):
        payloads = [self._payload(kind, item) for item in items]
        data = await self._request(
            "POST", self._path(self.BULK_PATHS[kind]), json_body=self._batch_body(kind, payloads)
        )
        self._check_batch_response(kind, data, len(items))

    def _item_body(self, kind: str, payload: Dict[str, Any]) -> Any:
        return payload

    def _path_params(self, item: Any) -> Dict[str, Any]:
        """Extra placeholders for ITEM_PATHS templates"""
        return {}

    async def _push_item(self, kind: str, item: Any):
        await self._request(
            self.ITEM_METHOD,
            self._path(self.ITEM_PATHS[kind], **self._path_params(item)),
            json_body=self._item_body(kind, self._payload(kind, item)),
        )

    async def _run_sync(
        self,
        kind: str,
        items: Sequence[Any],
        cancel_event: Optional[asyncio.Event],
    ) -> SyncResult:
        from .utils.batching import push_with_fallback

        push_batch = None
        if kind in self.BULK_PATHS:

            async def push_batch(chunk):
                await self._push_batch(kind, chunk)

        async def push_one(item):
            await self._push_item(kind, item)

        self.logger.info(
            f"Starting {kind} sync", items=len(items), bulk=push_batch is not None
        )
        result = await push_with_fallback(
            items,
            push_one,
            push_batch=push_batch,
            batch_size=self.batch_size,
            max_concurrency=self.settings.max_concurrency,
            cancel_event=cancel_event,
            deadline=self.settings.deadline_seconds,
            logger=self.logger,
        )
        result.kind = kind
        if result.synced:
            self._last_sync_at = datetime.now(timezone.utc)

        log = self.logger.info if result.success else self.logger.warning
        log(
            f"{kind.capitalize()} sync finished",
            synced=result.synced,
            failed=len(result.errors),
            batch_failures=result.batch_failures,
            outcome=result.outcome,
        )
        await self._record_sync_outcome(result)
        return result

    @log_performance("sync_inventory")
    async def sync_inventory(
        self, cancel_event: Optional[asyncio.Event] = None
    ) -> SyncResult:
        inventory = await self._get_local_inventory()
        return await self._run_sync("inventory", inventory, cancel_event)

    @log_performance("sync_rates")
    async def sync_rates(
        self, cancel_event: Optional[asyncio.Event] = None
    ) -> SyncResult:
        rates = await self._get_local_rates()
        return await self._run_sync("rates", rates, cancel_event)

    @log_performance("sync_availability")
    async def sync_availability(
        self, cancel_event: Optional[asyncio.Event] = None
    ) -> SyncResult:
        inventory = await self._get_local_inventory()
        return await self._run_sync("availability", inventory, cancel_event)

    @log_performance("sync_restrictions")
    async def sync_restrictions(
        self,
        restrictions: Sequence[RestrictionItem],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SyncResult:
        return await self._run_sync("restrictions", list(restrictions), cancel_event)

    # Bookings

    @log_performance("get_bookings")
    async def get_bookings(
        self, from_date: Optional[date] = None, to_date: Optional[date] = None
    ) -> BookingFetchResult:
        raw_records = await self._fetch_raw_bookings(from_date, to_date)
        result = BookingFetchResult()
        for raw in raw_records or []:
            try:
                result.bookings.append(self.transform_booking(raw))
            except TransformError as e:
                external_id = self._raw_booking_id(raw)
                self.logger.warning(
                    "Dropping malformed booking",
                    booking_id=external_id,
                    reason=str(e),
                )
                result.rejected.append(
                    RejectedBooking(external_id=external_id, reason=str(e), raw=raw)
                )
        self.logger.info(
            "Bookings fetched",
            bookings=len(result.bookings),
            rejected=len(result.rejected),
        )
        return result

    def transform_booking(self, raw: Dict[str, Any]) -> Booking:
        """Normalize one partner record, wrapping shape errors"""
        if not isinstance(raw, dict):
            raise TransformError(f"Expected an object, got {type(raw).__name__}")
        try:
            return self._transform_booking(raw)
        except TransformError:
            raise
        except KeyError as e:
            raise TransformError(f"Missing field {e}") from e
        except AttributeError as e:
            raise TransformError(f"Malformed record: {e}") from e
        except (TypeError, ValueError, ArithmeticError) as e:
            raise TransformError(f"Invalid value: {e}") from e

    def _raw_booking_id(self, raw: Any) -> Optional[str]:
        if isinstance(raw, dict) and raw.get(self.BOOKING_ID_FIELD):
            return str(raw[self.BOOKING_ID_FIELD])
        return None

    async def _lifecycle(
        self,
        action: str,
        method: str,
        path: str,
        booking_id: str,
        body: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """One-shot booking mutation; never retried"""
        await self._preflight(f"{action} booking {booking_id}")
        data = await self._request(method, path, json_body=body, retry=False)
        self.logger.log_booking(action, booking_id=booking_id, reason=reason)
        return data if isinstance(data, dict) else {"result": data}

    # Payload helpers shared by adapters

    def _partner_room(self, item: Any) -> str:
        return self.config.partner_room_type(item.room_type_id)

    def _currency(self, currency: Optional[str]) -> str:
        return (currency or self.settings.default_currency).upper()

    # Normalization helpers shared by transforms

    def _room(
        self,
        partner_room_type_id: Any,
        room_count: Any = 1,
        adults: Any = 1,
        children: Any = 0,
    ) -> RoomDetails:
        if not partner_room_type_id:
            raise TransformError("Room type is missing")
        room = RoomDetails(
            room_type_id=self.config.local_room_type(str(partner_room_type_id)),
            room_count=int(room_count),
            adults=int(adults),
            children=int(children or 0),
        )
        if room.room_count < 1 or room.adults < 1 or room.children < 0:
            raise TransformError(
                f"Invalid room occupancy: {room.room_count} rooms, "
                f"{room.adults} adults, {room.children} children"
            )
        return room

    def _build_booking(
        self,
        external_booking_id: Any,
        status: Any,
        guest: GuestDetails,
        room: RoomDetails,
        check_in: Any,
        check_out: Any,
        amounts: MonetaryBreakdown,
        created_at: Any = None,
        modified_at: Any = None,
    ) -> Booking:
        if not external_booking_id:
            raise TransformError("Booking id is missing")
        arrival = self.normalize_date(check_in)
        departure = self.normalize_date(check_out)
        if departure <= arrival:
            raise TransformError(
                f"Check-out {departure} is not after check-in {arrival}"
            )
        return Booking(
            external_booking_id=str(external_booking_id),
            channel=self.channel_name,
            guest=guest,
            room=room,
            check_in=arrival,
            check_out=departure,
            amounts=amounts,
            status=self._map_status(status),
            created_at=self.normalize_datetime(created_at),
            modified_at=self.normalize_datetime(modified_at),
        )

    def _map_status(self, partner_status: Any) -> BookingStatus:
        key = str(partner_status).strip().lower()
        for partner_value, status in self.STATUS_MAP.items():
            if partner_value.lower() == key:
                return status
        raise TransformError(
            f"Unknown {self.channel_name} booking status: {partner_status!r}"
        )

    def _guest(
        self,
        first_name: Optional[str],
        last_name: Optional[str],
        email: Optional[str],
        phone: Optional[str] = None,
    ) -> GuestDetails:
        if not email or not str(email).strip():
            raise TransformError("Guest email is missing")
        if not first_name and not last_name:
            raise TransformError("Guest name is missing")
        return GuestDetails(
            first_name=(first_name or "").strip(),
            last_name=(last_name or "").strip(),
            email=str(email).strip().lower(),
            phone=self.normalize_phone(phone),
        )

    def _amounts(
        self,
        currency: str,
        gross: Any,
        net: Any = None,
        commission: Any = None,
    ) -> MonetaryBreakdown:
        """Fill in whichever of net/commission the partner leaves out"""
        gross_amount = self.normalize_amount(gross)
        if net is None and commission is None:
            net_amount, commission_amount = gross_amount, Decimal("0.00")
        elif net is None:
            commission_amount = self.normalize_amount(commission)
            net_amount = gross_amount - commission_amount
        elif commission is None:
            net_amount = self.normalize_amount(net)
            commission_amount = gross_amount - net_amount
        else:
            net_amount = self.normalize_amount(net)
            commission_amount = self.normalize_amount(commission)
        if not currency:
            raise TransformError("Booking currency is missing")
        return MonetaryBreakdown(
            gross=gross_amount,
            net=net_amount,
            commission=commission_amount,
            currency=str(currency).upper(),
        )

    def normalize_date(self, date_input) -> date:
        """Normalize various date formats to Python date"""
        if isinstance(date_input, datetime):
            return date_input.date()
        if isinstance(date_input, date):
            return date_input
        return date_parser.parse(date_input).date()

    def normalize_datetime(self, value) -> Optional[datetime]:
        if not value:
            return None
        parsed = value if isinstance(value, datetime) else date_parser.parse(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    def normalize_amount(self, amount: Any) -> Decimal:
        """Normalize monetary amounts to Decimal"""
        if isinstance(amount, str):
            amount = amount.replace(",", "")
        try:
            return Decimal(str(amount)).quantize(Decimal("0.01"))
        except InvalidOperation as e:
            raise TransformError(f"Invalid amount: {amount!r}") from e

    @staticmethod
    def normalize_phone(phone: Optional[str]) -> Optional[str]:
        if not phone:
            return None
        digits = "".join(ch for ch in str(phone) if ch.isdigit())
        return f"+{digits}" if str(phone).strip().startswith("+") else digits

    @staticmethod
    def split_name(full_name: Optional[str]):
        parts = (full_name or "").strip().split(None, 1)
        if not parts:
            return "", ""
        return parts[0], parts[1] if len(parts) > 1 else ""

    @staticmethod
    def isodate(value: Optional[date]) -> Optional[str]:
        return value.isoformat() if value else None
