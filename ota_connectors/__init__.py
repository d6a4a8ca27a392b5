"""
OTA Channel Connector Package

This package provides a unified interface for pushing inventory, rates,
availability and restrictions to online travel agencies and for pulling
their bookings back in one normalized shape:
- common sync, retry and normalization logic in contracts and utils
- channel-specific wire formats in adapters
"""

from .accessors import (
    InMemoryChannelConfigStore,
    InMemoryInventoryStore,
    InMemorySyncLog,
    LocalDataAccessor,
)
from .config import (
    ChannelConfig,
    ChannelMappings,
    ConfigResolver,
    EnvironmentCredentialProvider,
    PropertyChannelRecord,
    StaticCredentialProvider,
    SyncSettings,
    VaultCredentialProvider,
    normalize_channel_name,
)
from .contracts import (
    AuthenticationError,
    BaseChannelConnector,
    Booking,
    BookingFetchResult,
    BookingStatus,
    Capabilities,
    ChannelConnector,
    ChannelError,
    CircuitOpenError,
    ConfigurationError,
    ConnectionStatus,
    ConnectorMetrics,
    GuestDetails,
    InventoryItem,
    MonetaryBreakdown,
    RateItem,
    RateLimitError,
    RejectedBooking,
    RestrictionItem,
    RoomDetails,
    SigningError,
    SyncError,
    SyncResult,
    TransformError,
    TransportError,
    UnsupportedChannelError,
)
from .factory import (
    ConnectorFactory,
    ConnectorMetadata,
    ConnectorRegistry,
    ConnectorStatus,
    find_connectors_with_capability,
    get_capability_matrix,
    get_connector_metadata,
    get_supported_channels,
    is_channel_supported,
    list_available_connectors,
    register_connector,
)

__all__ = [
    # Factory functions
    "is_channel_supported",
    "get_supported_channels",
    "list_available_connectors",
    "get_connector_metadata",
    "get_capability_matrix",
    "find_connectors_with_capability",
    "register_connector",
    # Factory classes
    "ConnectorFactory",
    "ConnectorRegistry",
    "ConnectorStatus",
    "ConnectorMetadata",
    # Contracts
    "ChannelConnector",
    "BaseChannelConnector",
    # Configuration
    "ChannelConfig",
    "ChannelMappings",
    "ConfigResolver",
    "PropertyChannelRecord",
    "SyncSettings",
    "StaticCredentialProvider",
    "EnvironmentCredentialProvider",
    "VaultCredentialProvider",
    "normalize_channel_name",
    # Local data
    "LocalDataAccessor",
    "InMemoryInventoryStore",
    "InMemoryChannelConfigStore",
    "InMemorySyncLog",
    # Errors
    "ChannelError",
    "ConfigurationError",
    "SigningError",
    "UnsupportedChannelError",
    "TransportError",
    "AuthenticationError",
    "RateLimitError",
    "CircuitOpenError",
    "TransformError",
    # Enums
    "Capabilities",
    "BookingStatus",
    # Domain models
    "InventoryItem",
    "RateItem",
    "RestrictionItem",
    "Booking",
    "GuestDetails",
    "RoomDetails",
    "MonetaryBreakdown",
    "BookingFetchResult",
    "ConnectorMetrics",
    "RejectedBooking",
    "SyncResult",
    "SyncError",
    "ConnectionStatus",
]
