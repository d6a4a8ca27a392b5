"""
Shared test fixtures for connector tests
Uses pytest-httpx for mocking partner HTTP calls
"""

import re
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from pytest_httpx import HTTPXMock

from ota_connectors.accessors import (
    InMemoryInventoryStore,
    InMemorySyncLog,
    LocalDataAccessor,
)
from ota_connectors.config import ChannelConfig, ChannelMappings, SyncSettings
from ota_connectors.contracts import (
    BookingStatus,
    GuestDetails,
    InventoryItem,
    MonetaryBreakdown,
    RoomDetails,
)
from ota_connectors.factory import BUILTIN_ADAPTERS

PROPERTY_ID = "prop-001"
HOTEL_ID = "H123"

ALL_CHANNELS = list(BUILTIN_ADAPTERS)

MAPPINGS = ChannelMappings(
    room_types={"DLX": "P-DLX", "STD": "P-STD"},
    rate_plans={"BAR": "RP-BAR"},
)

CHANNEL_CREDENTIALS: Dict[str, Dict[str, str]] = {
    "booking_com": {"username": "bk-user", "password": "bk-pass"},
    "expedia": {"username": "ex-user", "password": "ex-pass"},
    "agoda": {"api_key": "ag-key"},
    "airbnb": {"access_token": "ab-token"},
    "makemytrip": {"api_key": "mmt-key", "api_secret": "mmt-secret"},
    "goibibo": {"api_key": "gi-key", "api_secret": "gi-secret"},
    "easemytrip": {"api_key": "emt-key", "partner_code": "EMT01"},
    "oyo": {"api_key": "oyo-key", "partner_id": "OYO01"},
    "cleartrip": {"api_key": "ct-key", "api_secret": "ct-secret"},
    "yatra": {"partner_code": "YT01", "api_key": "yt-key"},
}

# No backoff sleeps in tests
FAST_SETTINGS = SyncSettings(retry_attempts=2, retry_backoff_max=0, request_timeout=5.0)

HEALTHY_RESPONSES: Dict[str, Dict[str, Any]] = {
    "makemytrip": {"status": "success"},
    "easemytrip": {"status": "ACTIVE"},
    "oyo": {"success": True},
}

CONFIRMED_STATUS = {
    "booking_com": "new",
    "expedia": "Booked",
    "agoda": "Confirmed",
    "airbnb": "accepted",
    "makemytrip": "CONFIRMED",
    "goibibo": "Confirmed",
    "cleartrip": "booked",
    "easemytrip": "CONFIRMED",
    "oyo": "CONFIRMED",
    "yatra": "Confirmed",
}

CANCELLED_STATUS = {
    "booking_com": "cancelled",
    "expedia": "Cancelled",
    "agoda": "Cancelled",
    "airbnb": "cancelled_by_guest",
    "makemytrip": "CANCELLED",
    "goibibo": "Cancelled",
    "cleartrip": "cancelled",
    "easemytrip": "CANCELLED",
    "oyo": "CANCELLED",
    "yatra": "Cancelled",
}

# The reservation every channel's raw fixture below describes
EXPECTED_GUEST = GuestDetails(
    first_name="Asha",
    last_name="Rao",
    email="asha.rao@example.com",
    phone="+919876543210",
)
EXPECTED_ROOM = RoomDetails(room_type_id="DLX", room_count=1, adults=2, children=1)
EXPECTED_AMOUNTS = MonetaryBreakdown(
    gross=Decimal("12000.00"),
    net=Decimal("10200.00"),
    commission=Decimal("1800.00"),
    currency="INR",
)
CHECK_IN = date(2026, 3, 1)
CHECK_OUT = date(2026, 3, 3)


def make_config(
    channel: str,
    credentials: Optional[Dict[str, str]] = None,
    sync_settings: Optional[SyncSettings] = None,
    **overrides,
) -> ChannelConfig:
    values = {
        "property_id": PROPERTY_ID,
        "channel": channel,
        "channel_property_id": HOTEL_ID,
        "credentials": CHANNEL_CREDENTIALS[channel] if credentials is None else credentials,
        "mappings": MAPPINGS,
        "sync_settings": sync_settings or FAST_SETTINGS,
    }
    values.update(overrides)
    return ChannelConfig(**values)


def make_connector(channel: str, accessor, **config_kwargs):
    return BUILTIN_ADAPTERS[channel](make_config(channel, **config_kwargs), accessor)


def make_inventory(
    count: int, room_type_id: str = "DLX", start: date = CHECK_IN
) -> List[InventoryItem]:
    return [
        InventoryItem(
            room_type_id=room_type_id,
            date=start + timedelta(days=offset),
            availability=5,
            rate=Decimal("4500.00"),
            currency="INR",
        )
        for offset in range(count)
    ]


def mock_token_exchange(httpx_mock: HTTPXMock, channel: str):
    """MakeMyTrip exchanges its API key for a bearer token first"""
    if channel != "makemytrip":
        return
    httpx_mock.add_response(
        method="POST",
        url=re.compile(r".*/auth/token$"),
        json={"status": "success", "data": {"token": "mmt-token", "expiresIn": 3600}},
        is_reusable=True,
        is_optional=True,
    )


def partner_requests(httpx_mock: HTTPXMock, method: Optional[str] = None):
    """Requests sent to the partner, excluding token exchanges"""
    return [
        request
        for request in httpx_mock.get_requests()
        if not request.url.path.endswith("/auth/token")
        and (method is None or request.method == method)
    ]


# Raw partner bookings; all describe the same stay

def raw_booking(
    channel: str,
    status: Optional[str] = None,
    email: str = "asha.rao@example.com",
    check_out: str = "2026-03-03",
) -> Dict[str, Any]:
    status = CONFIRMED_STATUS[channel] if status is None else status
    builders = {
        "booking_com": lambda: {
            "reservation_id": "BK-1001",
            "status": status,
            "customer": {
                "first_name": "Asha",
                "last_name": "Rao",
                "email": email,
                "telephone": "+91 98765 43210",
            },
            "room": {"room_id": "P-DLX", "quantity": 1, "guests": {"adults": 2, "children": 1}},
            "arrival_date": "2026-03-01",
            "departure_date": check_out,
            "currencycode": "INR",
            "totalprice": "12000.00",
            "commissionamount": "1800.00",
            "date": "2026-01-10 09:30:00",
        },
        "expedia": lambda: {
            "id": "EX-2002",
            "status": status,
            "primaryGuest": {
                "givenName": "Asha",
                "surName": "Rao",
                "email": email.upper() if email else email,
                "phoneNumber": "+91-98765-43210",
            },
            "roomTypeId": "P-DLX",
            "rooms": 1,
            "adultCount": 2,
            "childCount": 1,
            "checkInDate": "2026-03-01",
            "checkOutDate": check_out,
            "totalAmount": {"amount": 12000, "currency": "INR"},
            "netAmount": {"amount": 10200},
            "commissionAmount": {"amount": 1800},
            "creationDateTime": "2026-01-10T09:30:00Z",
            "lastUpdateDateTime": "2026-01-11T10:00:00+05:30",
        },
        "agoda": lambda: {
            "booking_id": "AG-3003",
            "status": status,
            "guest": {
                "first_name": "Asha",
                "last_name": "Rao",
                "email": email,
                "phone": "+919876543210",
            },
            "room_type_code": "P-DLX",
            "number_of_rooms": 1,
            "adults": 2,
            "children": 1,
            "check_in": "2026-03-01",
            "check_out": check_out,
            "currency": "inr",
            "total_amount": "12,000.00",
            "net_amount": "10200",
        },
        "airbnb": lambda: {
            "confirmation_code": "HMABC123",
            "status": status,
            "guest": {
                "first_name": "Asha",
                "last_name": "Rao",
                "email": email,
                "phone": "+91 98765 43210",
            },
            "listing_id": "P-DLX",
            "guest_details": {"number_of_adults": 2, "number_of_children": 1},
            "start_date": "2026-03-01",
            "end_date": check_out,
            "currency": "INR",
            "total_price": 12000.0,
            "host_fee": 1800.0,
            "created_at": "2026-01-10T09:30:00Z",
        },
        "makemytrip": lambda: {
            "bookingId": "MMT-4004",
            "status": status,
            "guest": {
                "firstName": "Asha",
                "lastName": "Rao",
                "email": email,
                "mobile": "+91 9876543210",
            },
            "roomCode": "P-DLX",
            "noOfRooms": 1,
            "adults": 2,
            "children": 1,
            "checkIn": "2026-03-01",
            "checkOut": check_out,
            "currency": "INR",
            "totalAmount": 12000,
            "netAmount": 10200,
            "commission": 1800,
            "bookedOn": "2026-01-10T09:30:00+05:30",
        },
        "goibibo": lambda: {
            "booking_ref": "GI-5005",
            "booking_status": status,
            "guest_first_name": "Asha",
            "guest_last_name": "Rao",
            "guest_email": email,
            "guest_phone": "+91 98765-43210",
            "room_type_id": "P-DLX",
            "rooms": 1,
            "adults": 2,
            "children": 1,
            "checkin": "2026-03-01",
            "checkout": check_out,
            "currency": "INR",
            "booking_amount": "12000.00",
            "hotel_payable": "10200.00",
        },
        "cleartrip": lambda: {
            "trip_id": "CT-6006",
            "state": status,
            "contact": {
                "first_name": "Asha",
                "last_name": "Rao",
                "email": email,
                "mobile": "+91 98765 43210",
            },
            "room": {"code": "P-DLX", "count": 1, "adults": 2, "children": 1},
            "stay": {"check_in": "2026-03-01", "check_out": check_out},
            "fare": {"currency": "INR", "total": "12000", "net": "10200", "commission": "1800"},
            "booked_at": "2026-01-10T09:30:00Z",
        },
        "easemytrip": lambda: {
            "emt_booking_id": "EMT-7007",
            "booking_status": status,
            "guest": {
                "first_name": "Asha",
                "last_name": "Rao",
                "email": email,
                "contact_number": "+91 98765 43210",
            },
            "room": {
                "room_type_id": "P-DLX",
                "room_count": 1,
                "adults_per_room": 2,
                "children_per_room": 1,
            },
            "checkin_date": "2026-03-01",
            "checkout_date": check_out,
            "pricing": {
                "total_amount": 12000,
                "currency": "INR",
                "net_payable": 10200,
                "commission_amount": 1800,
            },
            "booked_date_time": "2026-01-10 09:30:00",
        },
        "oyo": lambda: {
            "booking_id": "OYO-8008",
            "booking_status": status,
            "guest_name": "Asha Rao",
            "guest_email": email,
            "guest_phone": "+91 98765 43210",
            "room_category_id": "P-DLX",
            "room_count": 1,
            "adults": 2,
            "children": 1,
            "check_in": "2026-03-01",
            "check_out": check_out,
            "currency": "INR",
            "total_amount": 12000,
            "payable_to_hotel": 10200,
        },
        "yatra": lambda: {
            "BookingId": "YT-9009",
            "BookingStatus": status,
            "Guest": {
                "FirstName": "Asha",
                "LastName": "Rao",
                "Email": email,
                "Phone": "+91 98765 43210",
            },
            "RoomCode": "P-DLX",
            "NoOfRooms": 1,
            "Adults": 2,
            "Children": 1,
            "CheckInDate": "2026-03-01",
            "CheckOutDate": check_out,
            "Currency": "INR",
            "TotalAmount": "12000.00",
            "Commission": "1800.00",
        },
    }
    return builders[channel]()


def bookings_response(channel: str, records: List[Any]) -> Dict[str, Any]:
    """Wrap raw records the way each partner's bookings endpoint does"""
    wrappers = {
        "booking_com": lambda: {"reservations": records},
        "expedia": lambda: {"entity": records},
        "agoda": lambda: {"bookings": records},
        "airbnb": lambda: {"reservations": records},
        "makemytrip": lambda: {"status": "success", "data": {"bookings": records}},
        "goibibo": lambda: {"bookings": records},
        "cleartrip": lambda: {"trips": records},
        "easemytrip": lambda: {"reservations": records},
        "oyo": lambda: {"success": True, "data": records},
        "yatra": lambda: {"Bookings": records},
    }
    return wrappers[channel]()


@pytest.fixture
def inventory_store() -> InMemoryInventoryStore:
    return InMemoryInventoryStore()


@pytest.fixture
def sync_log() -> InMemorySyncLog:
    return InMemorySyncLog()


@pytest.fixture
def accessor(inventory_store, sync_log) -> LocalDataAccessor:
    return LocalDataAccessor(inventory_store, sync_log)


@pytest_asyncio.fixture
async def connector_factory(accessor):
    """Build connectors with test config and close their clients afterwards"""
    connectors = []

    def _create(channel: str, **config_kwargs):
        connector = make_connector(channel, accessor, **config_kwargs)
        connectors.append(connector)
        return connector

    yield _create

    for connector in connectors:
        await connector.disconnect()
