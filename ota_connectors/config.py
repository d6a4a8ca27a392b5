"""
Layered channel configuration

Resolves the effective ChannelConfig for one (property, channel) pair by
merging channel-wide default credentials from a provider with the
property's own channel record. Property values win when non-empty.
"""

import logging
import re
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .contracts import ConfigurationError
from .utils.vault_client import (
    AsyncVaultClient,
    VaultClient,
    VaultError,
    VaultSecretNotFoundError,
)

logger = logging.getLogger(__name__)

# Default keys that describe the partner property rather than a credential
_LOCATION_KEYS = ("property_id", "hotel_id", "base_url")

_CHANNEL_ALIASES = {
    "bookingcom": "booking_com",
    "booking": "booking_com",
    "mmt": "makemytrip",
    "make_my_trip": "makemytrip",
    "ease_my_trip": "easemytrip",
    "go_ibibo": "goibibo",
    "oyo_rooms": "oyo",
    "clear_trip": "cleartrip",
}


def normalize_channel_name(name: str) -> str:
    """'Booking.com', 'booking-com' and 'BOOKING_COM' all become 'booking_com'"""
    key = re.sub(r"[^a-z0-9]+", "_", str(name).strip().lower()).strip("_")
    if key.endswith("_com") and key != "booking_com":
        key = key[: -len("_com")]
    return _CHANNEL_ALIASES.get(key, key)


class SyncSettings(BaseModel):
    """Per-property sync tuning"""

    model_config = ConfigDict(frozen=True)

    interval_minutes: int = Field(default=15, ge=1, description="Cadence hint for schedulers")
    batch_size: Optional[int] = Field(default=None, ge=1, description="Overrides the adapter batch size")
    max_concurrency: int = Field(default=4, ge=1, le=64)
    request_timeout: float = Field(default=30.0, gt=0)
    retry_attempts: int = Field(default=3, ge=1, le=10)
    retry_backoff_max: float = Field(default=10.0, ge=0)
    deadline_seconds: Optional[float] = Field(default=None, gt=0)
    requests_per_minute: Optional[int] = Field(
        default=None, ge=1, description="Overrides the partner rate limit from the channel matrix"
    )
    circuit_failure_threshold: int = Field(default=10, ge=1)
    circuit_recovery_timeout: float = Field(default=60.0, ge=0)
    default_currency: str = Field(default="INR", min_length=3, max_length=3)

    @field_validator("default_currency")
    @classmethod
    def upper_currency(cls, v):
        return v.upper()


class ChannelMappings(BaseModel):
    """Local id -> partner id"""

    model_config = ConfigDict(frozen=True)

    room_types: Dict[str, str] = Field(default_factory=dict)
    rate_plans: Dict[str, str] = Field(default_factory=dict)


class PropertyChannelRecord(BaseModel):
    """What the configuration store holds for one property on one channel"""

    property_id: str
    channel: str
    enabled: bool = True
    channel_property_id: Optional[str] = None
    base_url: Optional[str] = None
    credentials: Dict[str, Optional[str]] = Field(default_factory=dict)
    mappings: ChannelMappings = Field(default_factory=ChannelMappings)
    sync_settings: SyncSettings = Field(default_factory=SyncSettings)

    @field_validator("channel")
    @classmethod
    def normalize_channel(cls, v):
        return normalize_channel_name(v)


class ChannelConfig(BaseModel):
    """Effective configuration for one adapter instance; immutable for a sync"""

    model_config = ConfigDict(frozen=True)

    property_id: str = Field(..., min_length=1)
    channel: str = Field(..., min_length=1)
    channel_property_id: str = Field(..., min_length=1)
    base_url: Optional[str] = None
    credentials: Dict[str, str] = Field(default_factory=dict)
    mappings: ChannelMappings = Field(default_factory=ChannelMappings)
    sync_settings: SyncSettings = Field(default_factory=SyncSettings)

    def credential(self, name: str) -> Optional[str]:
        value = self.credentials.get(name)
        return value or None

    def partner_room_type(self, local_room_type_id: str) -> str:
        return self.mappings.room_types.get(local_room_type_id, local_room_type_id)

    def local_room_type(self, partner_room_type_id: str) -> str:
        for local_id, partner_id in self.mappings.room_types.items():
            if partner_id == partner_room_type_id:
                return local_id
        return partner_room_type_id

    def partner_rate_plan(self, local_rate_plan_id: Optional[str]) -> Optional[str]:
        if local_rate_plan_id is None:
            return None
        return self.mappings.rate_plans.get(local_rate_plan_id, local_rate_plan_id)


# Credential providers

class CredentialProvider(Protocol):
    async def get_channel_defaults(self, channel: str) -> Dict[str, Any]:
        """Channel-wide defaults; empty when none are configured"""
        ...


class StaticCredentialProvider:
    """Fixed defaults, mostly for tests and local runs"""

    def __init__(self, defaults: Optional[Dict[str, Dict[str, Any]]] = None):
        self._defaults = {
            normalize_channel_name(channel): dict(values)
            for channel, values in (defaults or {}).items()
        }

    async def get_channel_defaults(self, channel: str) -> Dict[str, Any]:
        return dict(self._defaults.get(normalize_channel_name(channel), {}))


class ChannelDefaultsSettings(BaseSettings):
    """Channel defaults read from OTA_<CHANNEL>_<FIELD> environment variables"""

    model_config = SettingsConfigDict(env_prefix="OTA_", extra="ignore")

    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    partner_code: Optional[str] = None
    partner_id: Optional[str] = None
    access_token: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    property_id: Optional[str] = None
    hotel_id: Optional[str] = None
    base_url: Optional[str] = None


class EnvironmentCredentialProvider:
    def __init__(self, env_file: Optional[str] = None):
        self.env_file = env_file

    async def get_channel_defaults(self, channel: str) -> Dict[str, Any]:
        prefix = f"OTA_{normalize_channel_name(channel).upper()}_"
        settings = ChannelDefaultsSettings(_env_prefix=prefix, _env_file=self.env_file)
        return settings.model_dump(exclude_none=True)


class VaultCredentialProvider:
    """Defaults stored in Vault under channels/<channel>/defaults"""

    def __init__(self, vault_client: Optional[VaultClient] = None):
        self._vault = AsyncVaultClient(vault_client)

    async def get_channel_defaults(self, channel: str) -> Dict[str, Any]:
        channel = normalize_channel_name(channel)
        try:
            return dict(await self._vault.read_channel_defaults(channel))
        except VaultSecretNotFoundError:
            logger.debug(f"No Vault defaults for channel {channel}")
            return {}
        except VaultError as e:
            raise ConfigurationError(
                f"Cannot read {channel} defaults from Vault: {e}"
            ) from e


class ConfigResolver:
    """
    Resolves and caches ChannelConfig per (property, channel)

    Entries expire after `ttl_seconds`; `invalidate` drops them early and is
    registered as a change listener on stores that support one.
    """

    def __init__(
        self,
        store,
        credentials: Optional[CredentialProvider] = None,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.credentials = credentials or StaticCredentialProvider()
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: Dict[Tuple[str, str], Tuple[ChannelConfig, float]] = {}

        add_listener = getattr(store, "add_change_listener", None)
        if add_listener is not None:
            add_listener(self.invalidate)

    async def resolve(self, property_id: str, channel_name: str) -> ChannelConfig:
        channel = normalize_channel_name(channel_name)
        key = (property_id, channel)

        cached = self._cache.get(key)
        if cached is not None:
            config, expires_at = cached
            if self._clock() < expires_at:
                return config
            del self._cache[key]

        config = await self._build(property_id, channel)
        self._cache[key] = (config, self._clock() + self.ttl_seconds)
        return config

    def invalidate(
        self, property_id: Optional[str] = None, channel_name: Optional[str] = None
    ):
        channel = normalize_channel_name(channel_name) if channel_name else None
        for cached_property, cached_channel in list(self._cache):
            if property_id is not None and cached_property != property_id:
                continue
            if channel is not None and cached_channel != channel:
                continue
            del self._cache[(cached_property, cached_channel)]

    async def _build(self, property_id: str, channel: str) -> ChannelConfig:
        record = await self.store.get_property_channel_config(property_id, channel)
        if record is None:
            raise ConfigurationError(
                f"Channel {channel} is not configured for property {property_id}"
            )
        if not record.enabled:
            raise ConfigurationError(
                f"Channel {channel} is disabled for property {property_id}"
            )

        defaults = dict(await self.credentials.get_channel_defaults(channel))

        credentials = {
            name: str(value)
            for name, value in defaults.items()
            if name not in _LOCATION_KEYS and value
        }
        credentials.update(
            {name: value for name, value in record.credentials.items() if value}
        )

        channel_property_id = (
            record.channel_property_id
            or defaults.get("property_id")
            or defaults.get("hotel_id")
        )
        if not channel_property_id:
            raise ConfigurationError(
                f"No {channel} property id for property {property_id}"
            )

        try:
            return ChannelConfig(
                property_id=property_id,
                channel=channel,
                channel_property_id=str(channel_property_id),
                base_url=record.base_url or defaults.get("base_url"),
                credentials=credentials,
                mappings=record.mappings,
                sync_settings=record.sync_settings,
            )
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid {channel} configuration for property {property_id}: {e}"
            ) from e
