"""
Local data accessors consumed by the connectors

The connectors only read local inventory/rates, read per-property channel
records and append sync outcomes. Persistence lives behind these protocols.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .config import PropertyChannelRecord, normalize_channel_name
from .contracts import InventoryItem, RateItem

logger = logging.getLogger(__name__)

SYNC_OUTCOME_STATUSES = ("success", "partial", "failed")

ChangeListener = Callable[[Optional[str], Optional[str]], None]


class InventoryReader(Protocol):
    async def get_local_inventory(self, property_id: str) -> Sequence[InventoryItem]:
        ...

    async def get_local_rates(self, property_id: str) -> Sequence[RateItem]:
        ...


class ChannelConfigStore(Protocol):
    async def get_property_channel_config(
        self, property_id: str, channel: str
    ) -> Optional[PropertyChannelRecord]:
        ...

    def add_change_listener(self, callback: ChangeListener) -> None:
        ...


class SyncOutcomeRecorder(Protocol):
    async def record_sync_outcome(
        self, property_id: str, channel: str, status: str, details: Dict[str, Any]
    ) -> None:
        ...


def _check_status(status: str):
    if status not in SYNC_OUTCOME_STATUSES:
        raise ValueError(
            f"Sync outcome status must be one of {SYNC_OUTCOME_STATUSES}, got {status!r}"
        )


class InMemoryInventoryStore:
    def __init__(self):
        self._inventory: Dict[str, List[InventoryItem]] = {}
        self._rates: Dict[str, List[RateItem]] = {}

    def set_inventory(self, property_id: str, items: Sequence[InventoryItem]):
        self._inventory[property_id] = list(items)

    def set_rates(self, property_id: str, items: Sequence[RateItem]):
        self._rates[property_id] = list(items)

    async def get_local_inventory(self, property_id: str) -> List[InventoryItem]:
        # Copy so a sync works on a snapshot
        return list(self._inventory.get(property_id, []))

    async def get_local_rates(self, property_id: str) -> List[RateItem]:
        return list(self._rates.get(property_id, []))


class InMemoryChannelConfigStore:
    def __init__(self, records: Optional[Sequence[PropertyChannelRecord]] = None):
        self._records: Dict[Tuple[str, str], PropertyChannelRecord] = {}
        self._listeners: List[ChangeListener] = []
        for record in records or []:
            self._records[(record.property_id, record.channel)] = record

    def add_change_listener(self, callback: ChangeListener):
        self._listeners.append(callback)

    def put(self, record: PropertyChannelRecord):
        self._records[(record.property_id, record.channel)] = record
        self._notify(record.property_id, record.channel)

    def remove(self, property_id: str, channel: str):
        channel = normalize_channel_name(channel)
        self._records.pop((property_id, channel), None)
        self._notify(property_id, channel)

    def _notify(self, property_id: str, channel: str):
        for listener in self._listeners:
            listener(property_id, channel)

    async def get_property_channel_config(
        self, property_id: str, channel: str
    ) -> Optional[PropertyChannelRecord]:
        return self._records.get((property_id, normalize_channel_name(channel)))


@dataclass
class SyncOutcome:
    property_id: str
    channel: str
    status: str
    details: Dict[str, Any]
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemorySyncLog:
    """Append-only outcome log; safe for concurrent adapters on one loop"""

    def __init__(self):
        self._entries: List[SyncOutcome] = []
        self._lock = asyncio.Lock()

    async def record_sync_outcome(
        self, property_id: str, channel: str, status: str, details: Dict[str, Any]
    ):
        _check_status(status)
        async with self._lock:
            self._entries.append(
                SyncOutcome(property_id, channel, status, dict(details))
            )

    @property
    def entries(self) -> List[SyncOutcome]:
        return list(self._entries)

    def for_channel(self, channel: str) -> List[SyncOutcome]:
        channel = normalize_channel_name(channel)
        return [entry for entry in self._entries if entry.channel == channel]


class LoggingSyncRecorder:
    """Default recorder when no persistence is wired in"""

    async def record_sync_outcome(
        self, property_id: str, channel: str, status: str, details: Dict[str, Any]
    ):
        _check_status(status)
        log = logger.info if status == "success" else logger.warning
        log(
            f"Sync outcome for {channel}: {status}",
            extra={"property_id": property_id, "channel": channel, "details": details},
        )


class LocalDataAccessor:
    """Bundles the inventory reader and outcome recorder handed to adapters"""

    def __init__(
        self,
        inventory: InventoryReader,
        recorder: Optional[SyncOutcomeRecorder] = None,
    ):
        self.inventory = inventory
        self.recorder = recorder or LoggingSyncRecorder()

    async def get_local_inventory(self, property_id: str) -> Sequence[InventoryItem]:
        return await self.inventory.get_local_inventory(property_id)

    async def get_local_rates(self, property_id: str) -> Sequence[RateItem]:
        return await self.inventory.get_local_rates(property_id)

    async def record_sync_outcome(
        self, property_id: str, channel: str, status: str, details: Dict[str, Any]
    ):
        await self.recorder.record_sync_outcome(property_id, channel, status, details)
