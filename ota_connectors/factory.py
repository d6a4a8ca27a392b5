"""
OTA Channel Connector Factory
Explicit adapter registry, capability metadata and connector construction
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

import yaml

from .adapters.agoda import AgodaConnector
from .adapters.airbnb import AirbnbConnector
from .adapters.booking_com import BookingComConnector
from .adapters.cleartrip import CleartripConnector
from .adapters.easemytrip import EaseMyTripConnector
from .adapters.expedia import ExpediaConnector
from .adapters.goibibo import GoibiboConnector
from .adapters.makemytrip import MakeMyTripConnector
from .adapters.oyo import OYOConnector
from .adapters.yatra import YatraConnector
from .config import ChannelConfig, ConfigResolver, normalize_channel_name
from .contracts import (
    BaseChannelConnector,
    Capabilities,
    ChannelError,
    ConfigurationError,
    ConnectionStatus,
    UnsupportedChannelError,
    is_retryable,
)
from .utils.resilience import CircuitBreaker, CircuitBreakerConfig, TokenBucketRateLimiter

logger = logging.getLogger(__name__)

MATRIX_PATH = Path(__file__).parent / "channel_matrix.yaml"

# The single place where supported channels are enumerated
BUILTIN_ADAPTERS: Dict[str, Type[BaseChannelConnector]] = {
    adapter.channel_name: adapter
    for adapter in (
        BookingComConnector,
        ExpediaConnector,
        AgodaConnector,
        AirbnbConnector,
        MakeMyTripConnector,
        GoibiboConnector,
        EaseMyTripConnector,
        OYOConnector,
        CleartripConnector,
        YatraConnector,
    )
}


class ConnectorStatus(Enum):
    """Connector availability status"""

    AVAILABLE = "available"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    MAINTENANCE = "maintenance"


@dataclass
class ConnectorMetadata:
    """Metadata about a channel connector"""

    channel: str
    name: str
    version: str
    status: ConnectorStatus
    capabilities: Dict[str, bool]
    authentication: str  # basic, api_key, bearer, token_exchange, hmac
    supports_bulk: bool
    batch_size: Optional[int]
    rate_limits: Dict[str, int] = field(default_factory=dict)
    regions: List[str] = field(default_factory=list)
    documentation_url: Optional[str] = None
    support_contact: Optional[str] = None


class ConnectorRegistry:
    """Registry of available channel connectors"""

    def __init__(
        self,
        adapters: Optional[Dict[str, Type[BaseChannelConnector]]] = None,
        matrix_path: Optional[Path] = MATRIX_PATH,
    ):
        self._connectors: Dict[str, Type[BaseChannelConnector]] = {}
        self._metadata: Dict[str, ConnectorMetadata] = {}
        self._capability_matrix: Dict[str, Any] = {"channels": {}}
        self._load_capability_matrix(matrix_path)

        for channel, connector_class in (adapters or BUILTIN_ADAPTERS).items():
            self.register(channel, connector_class)

    def _load_capability_matrix(self, matrix_path: Optional[Path]):
        """Load capability matrix from YAML configuration"""
        if matrix_path is None or not Path(matrix_path).exists():
            logger.warning("Channel matrix not found, using adapter defaults")
            return
        with open(matrix_path, "r") as f:
            self._capability_matrix = yaml.safe_load(f) or {"channels": {}}
        logger.info(
            f"Loaded channel matrix with {len(self._capability_matrix.get('channels') or {})} channels"
        )

    def _build_metadata(
        self, channel: str, connector_class: Type[BaseChannelConnector]
    ) -> ConnectorMetadata:
        channel_config = (self._capability_matrix.get("channels") or {}).get(channel, {})

        capabilities = dict(connector_class.capabilities)
        capabilities[Capabilities.BULK_UPDATES.value] = bool(connector_class.BULK_PATHS)
        capabilities.update(channel_config.get("capabilities") or {})

        return ConnectorMetadata(
            channel=channel,
            name=getattr(connector_class, "DISPLAY_NAME", channel.title()),
            version=getattr(connector_class, "VERSION", "1.0.0"),
            status=ConnectorStatus(channel_config.get("status", "available")),
            capabilities=capabilities,
            authentication=channel_config.get("authentication", "api_key"),
            supports_bulk=capabilities[Capabilities.BULK_UPDATES.value],
            batch_size=connector_class.default_batch_size,
            rate_limits=channel_config.get("rate_limits", {"requests_per_minute": 60}),
            regions=channel_config.get("regions", []),
            documentation_url=channel_config.get("documentation_url"),
            support_contact=channel_config.get("support_contact"),
        )

    def register(
        self,
        channel: str,
        connector_class: Type[BaseChannelConnector],
        metadata: Optional[ConnectorMetadata] = None,
    ):
        """Register a connector, with metadata from the matrix unless given"""
        channel = normalize_channel_name(channel)
        self._connectors[channel] = connector_class
        self._metadata[channel] = metadata or self._build_metadata(channel, connector_class)
        logger.debug(f"Registered connector: {channel} ({connector_class.__name__})")

    def is_supported(self, channel: str) -> bool:
        return normalize_channel_name(channel) in self._connectors

    def get_connector_class(self, channel: str) -> Type[BaseChannelConnector]:
        """Get connector class by channel name"""
        key = normalize_channel_name(channel)
        if key not in self._connectors:
            raise UnsupportedChannelError(f"Unsupported channel: {channel}")
        return self._connectors[key]

    def get_metadata(self, channel: str) -> ConnectorMetadata:
        key = normalize_channel_name(channel)
        if key not in self._metadata:
            raise UnsupportedChannelError(f"Unsupported channel: {channel}")
        return self._metadata[key]

    def list_channels(self, status: Optional[ConnectorStatus] = None) -> List[str]:
        """List all registered channels, optionally filtered by status"""
        if status:
            return [
                channel
                for channel, meta in self._metadata.items()
                if meta.status == status
            ]
        return list(self._connectors.keys())

    def get_capability_matrix(self) -> Dict[str, Dict[str, bool]]:
        """Get capability matrix for all channels"""
        return {channel: meta.capabilities for channel, meta in self._metadata.items()}

    def find_channels_with_capability(self, capability: str) -> List[str]:
        """Find channels that support a specific capability"""
        return [
            channel
            for channel, meta in self._metadata.items()
            if meta.capabilities.get(capability, False)
        ]


# Global registry instance
_registry = ConnectorRegistry()


class ConnectorFactory:
    """Creates a connector bound to one property's resolved channel config"""

    def __init__(
        self,
        resolver: ConfigResolver,
        accessor,
        registry: Optional[ConnectorRegistry] = None,
    ):
        self.resolver = resolver
        self.accessor = accessor
        self.registry = registry or _registry
        # Partner quotas are per property account, outages are per partner
        self._rate_limiters: Dict[Tuple[str, str], TokenBucketRateLimiter] = {}
        self._circuit_breakers: Dict[str, CircuitBreaker] = {}

    def _rate_limiter_for(
        self, metadata: ConnectorMetadata, config: ChannelConfig
    ) -> Optional[TokenBucketRateLimiter]:
        requests_per_minute = config.sync_settings.requests_per_minute or (
            metadata.rate_limits or {}
        ).get("requests_per_minute")
        if not requests_per_minute:
            return None
        key = (metadata.channel, config.property_id)
        limiter = self._rate_limiters.get(key)
        if limiter is None or limiter.capacity != requests_per_minute:
            limiter = TokenBucketRateLimiter.per_minute(requests_per_minute)
            self._rate_limiters[key] = limiter
        return limiter

    def _circuit_breaker_for(
        self, metadata: ConnectorMetadata, config: ChannelConfig
    ) -> CircuitBreaker:
        breaker = self._circuit_breakers.get(metadata.channel)
        if breaker is None:
            settings = config.sync_settings
            breaker = CircuitBreaker(
                CircuitBreakerConfig(
                    name=metadata.channel,
                    failure_threshold=settings.circuit_failure_threshold,
                    recovery_timeout=settings.circuit_recovery_timeout,
                    counts_as_failure=is_retryable,
                )
            )
            self._circuit_breakers[metadata.channel] = breaker
        return breaker

    async def create_connector(
        self, channel_name: str, property_id: str
    ) -> BaseChannelConnector:
        """
        Create a connector instance for the given channel and property

        Connectors for the same partner share one circuit breaker, and
        connectors for the same property account share one rate limiter.

        Raises:
            UnsupportedChannelError: Channel name is not registered
            ChannelError: Channel is marked unavailable
            ConfigurationError: Channel is not configured or disabled for the property
        """
        connector_class = self.registry.get_connector_class(channel_name)
        metadata = self.registry.get_metadata(channel_name)

        if metadata.status == ConnectorStatus.UNAVAILABLE:
            raise ChannelError(f"Connector {metadata.channel} is currently unavailable")

        if metadata.status == ConnectorStatus.MAINTENANCE:
            logger.warning(f"Connector {metadata.channel} is in maintenance mode")

        config = await self.resolver.resolve(property_id, metadata.channel)
        connector = connector_class(
            config,
            self.accessor,
            rate_limiter=self._rate_limiter_for(metadata, config),
            circuit_breaker=self._circuit_breaker_for(metadata, config),
        )
        logger.info(
            f"Created connector instance: {metadata.channel}:{property_id}",
            extra={"channel": metadata.channel, "property_id": property_id},
        )
        return connector

    async def get_channel_health_status(
        self, property_id: str, channels: Optional[List[str]] = None
    ) -> Dict[str, ConnectionStatus]:
        """
        Check every channel of a property concurrently

        Without an explicit channel list, channels the property has not
        configured are left out; requested channels that cannot be built
        are reported as disconnected with the reason.
        """
        explicit = channels is not None
        names = [normalize_channel_name(c) for c in channels] if explicit else (
            self.get_supported_channels()
        )

        async def check(channel: str) -> Optional[ConnectionStatus]:
            try:
                connector = await self.create_connector(channel, property_id)
            except ConfigurationError as e:
                if not explicit:
                    return None
                return ConnectionStatus(connected=False, error=str(e))
            except ChannelError as e:
                return ConnectionStatus(connected=False, error=str(e))
            async with connector:
                return await connector.get_connection_status()

        statuses = await asyncio.gather(*(check(channel) for channel in names))
        health = {
            channel: status
            for channel, status in zip(names, statuses)
            if status is not None
        }
        logger.info(
            f"Health checked {len(health)} channels for {property_id}",
            extra={
                "property_id": property_id,
                "connected": sum(1 for status in health.values() if status.connected),
            },
        )
        return health

    def is_channel_supported(self, channel_name: str) -> bool:
        return self.registry.is_supported(channel_name)

    def get_supported_channels(self) -> List[str]:
        return self.registry.list_channels()


# Convenience functions
def is_channel_supported(channel_name: str) -> bool:
    return _registry.is_supported(channel_name)


def get_supported_channels() -> List[str]:
    """List all supported channel keys"""
    return _registry.list_channels()


def list_available_connectors() -> List[str]:
    """List channels whose connectors are currently available"""
    return _registry.list_channels(ConnectorStatus.AVAILABLE)


def get_connector_metadata(channel_name: str) -> ConnectorMetadata:
    """Get metadata for a specific channel"""
    return _registry.get_metadata(channel_name)


def get_capability_matrix() -> Dict[str, Dict[str, bool]]:
    """Get the capability matrix for all channels"""
    return _registry.get_capability_matrix()


def find_connectors_with_capability(capability: str) -> List[str]:
    """Find all connectors that support a specific capability"""
    return _registry.find_channels_with_capability(capability)


# Allow manual registration for testing
def register_connector(
    channel_name: str,
    connector_class: Type[BaseChannelConnector],
    metadata: Optional[ConnectorMetadata] = None,
):
    """Register a custom connector"""
    _registry.register(channel_name, connector_class, metadata)
