"""
Tests for layered channel configuration resolution
"""

import json

import pytest
from pydantic import ValidationError

from ota_connectors.accessors import InMemoryChannelConfigStore
from ota_connectors.config import (
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
from ota_connectors.contracts import ConfigurationError
from ota_connectors.utils.vault_client import DevelopmentVaultClient

from .fixtures import HOTEL_ID, PROPERTY_ID


class CountingStore(InMemoryChannelConfigStore):
    def __init__(self, records=None):
        super().__init__(records)
        self.reads = 0

    async def get_property_channel_config(self, property_id, channel):
        self.reads += 1
        return await super().get_property_channel_config(property_id, channel)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def record(channel="goibibo", **overrides):
    values = {
        "property_id": PROPERTY_ID,
        "channel": channel,
        "channel_property_id": HOTEL_ID,
        "credentials": {"api_key": "prop-key"},
    }
    values.update(overrides)
    return PropertyChannelRecord(**values)


class TestChannelNames:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Booking.com", "booking_com"),
            ("booking-com", "booking_com"),
            ("booking", "booking_com"),
            ("Expedia", "expedia"),
            ("Agoda.com", "agoda"),
            ("Make My Trip", "makemytrip"),
            ("MMT", "makemytrip"),
            ("  OYO  ", "oyo"),
            ("Clear-Trip", "cleartrip"),
        ],
    )
    def test_normalize_channel_name(self, raw, expected):
        assert normalize_channel_name(raw) == expected

    def test_record_normalizes_channel(self):
        assert record(channel="Booking.com").channel == "booking_com"


class TestModels:
    def test_sync_settings_defaults(self):
        settings = SyncSettings()
        assert settings.interval_minutes == 15
        assert settings.batch_size is None
        assert settings.max_concurrency == 4
        assert settings.retry_attempts == 3
        assert settings.default_currency == "INR"

    def test_sync_settings_validation(self):
        with pytest.raises(ValidationError):
            SyncSettings(retry_attempts=0)
        with pytest.raises(ValidationError):
            SyncSettings(batch_size=0)
        assert SyncSettings(default_currency="usd").default_currency == "USD"

    def test_channel_config_is_immutable(self):
        config = ChannelConfig(
            property_id=PROPERTY_ID, channel="agoda", channel_property_id=HOTEL_ID
        )
        with pytest.raises(ValidationError):
            config.channel_property_id = "other"

    def test_channel_config_requires_partner_property(self):
        with pytest.raises(ValidationError):
            ChannelConfig(property_id=PROPERTY_ID, channel="agoda", channel_property_id="")

    def test_mapping_helpers(self):
        config = ChannelConfig(
            property_id=PROPERTY_ID,
            channel="agoda",
            channel_property_id=HOTEL_ID,
            credentials={"api_key": "k", "api_secret": ""},
            mappings=ChannelMappings(
                room_types={"DLX": "P-DLX"}, rate_plans={"BAR": "RP-BAR"}
            ),
        )
        assert config.partner_room_type("DLX") == "P-DLX"
        assert config.partner_room_type("STD") == "STD"
        assert config.local_room_type("P-DLX") == "DLX"
        assert config.local_room_type("P-UNKNOWN") == "P-UNKNOWN"
        assert config.partner_rate_plan("BAR") == "RP-BAR"
        assert config.partner_rate_plan(None) is None
        assert config.credential("api_key") == "k"
        assert config.credential("api_secret") is None
        assert config.credential("missing") is None


class TestConfigResolver:
    @pytest.mark.asyncio
    async def test_property_values_override_channel_defaults(self):
        store = InMemoryChannelConfigStore(
            [record(credentials={"api_key": "prop-key", "api_secret": ""})]
        )
        provider = StaticCredentialProvider(
            {
                "Goibibo": {
                    "api_key": "global-key",
                    "api_secret": "global-secret",
                    "base_url": "https://sandbox.goibibo.test",
                }
            }
        )
        resolver = ConfigResolver(store, provider)

        config = await resolver.resolve(PROPERTY_ID, "goibibo")

        assert config.credential("api_key") == "prop-key"
        assert config.credential("api_secret") == "global-secret"
        assert config.base_url == "https://sandbox.goibibo.test"
        assert config.channel_property_id == HOTEL_ID
        assert "base_url" not in config.credentials

    @pytest.mark.asyncio
    async def test_partner_property_id_falls_back_to_defaults(self):
        store = InMemoryChannelConfigStore([record(channel_property_id=None)])
        resolver = ConfigResolver(
            store, StaticCredentialProvider({"goibibo": {"hotel_id": "GI-42"}})
        )

        config = await resolver.resolve(PROPERTY_ID, "goibibo")

        assert config.channel_property_id == "GI-42"
        assert "hotel_id" not in config.credentials

    @pytest.mark.asyncio
    async def test_record_base_url_wins(self):
        store = InMemoryChannelConfigStore(
            [record(base_url="https://property.example.test")]
        )
        resolver = ConfigResolver(
            store,
            StaticCredentialProvider({"goibibo": {"base_url": "https://global.test"}}),
        )

        config = await resolver.resolve(PROPERTY_ID, "goibibo")

        assert config.base_url == "https://property.example.test"

    @pytest.mark.asyncio
    async def test_missing_record(self):
        resolver = ConfigResolver(InMemoryChannelConfigStore())

        with pytest.raises(ConfigurationError, match="not configured"):
            await resolver.resolve(PROPERTY_ID, "goibibo")

    @pytest.mark.asyncio
    async def test_disabled_channel(self):
        resolver = ConfigResolver(InMemoryChannelConfigStore([record(enabled=False)]))

        with pytest.raises(ConfigurationError, match="disabled"):
            await resolver.resolve(PROPERTY_ID, "goibibo")

    @pytest.mark.asyncio
    async def test_missing_partner_property_id(self):
        resolver = ConfigResolver(
            InMemoryChannelConfigStore([record(channel_property_id=None)])
        )

        with pytest.raises(ConfigurationError, match="property id"):
            await resolver.resolve(PROPERTY_ID, "goibibo")

    @pytest.mark.asyncio
    async def test_results_are_cached(self):
        store = CountingStore([record()])
        resolver = ConfigResolver(store)

        first = await resolver.resolve(PROPERTY_ID, "goibibo")
        second = await resolver.resolve(PROPERTY_ID, "Goibibo")

        assert first is second
        assert store.reads == 1

    @pytest.mark.asyncio
    async def test_cache_entries_expire(self):
        store = CountingStore([record()])
        clock = FakeClock()
        resolver = ConfigResolver(store, ttl_seconds=60, clock=clock)

        await resolver.resolve(PROPERTY_ID, "goibibo")
        clock.now += 59
        await resolver.resolve(PROPERTY_ID, "goibibo")
        assert store.reads == 1

        clock.now += 2
        await resolver.resolve(PROPERTY_ID, "goibibo")
        assert store.reads == 2

    @pytest.mark.asyncio
    async def test_store_changes_invalidate_the_cache(self):
        store = CountingStore([record()])
        resolver = ConfigResolver(store)

        await resolver.resolve(PROPERTY_ID, "goibibo")
        store.put(record(credentials={"api_key": "rotated-key"}))
        config = await resolver.resolve(PROPERTY_ID, "goibibo")

        assert store.reads == 2
        assert config.credential("api_key") == "rotated-key"

    @pytest.mark.asyncio
    async def test_invalidate_is_scoped(self):
        store = CountingStore(
            [record(), record(channel="agoda"), record(property_id="prop-002")]
        )
        resolver = ConfigResolver(store)
        for property_id, channel in [
            (PROPERTY_ID, "goibibo"),
            (PROPERTY_ID, "agoda"),
            ("prop-002", "goibibo"),
        ]:
            await resolver.resolve(property_id, channel)
        assert store.reads == 3

        resolver.invalidate(property_id=PROPERTY_ID, channel_name="Goibibo")
        await resolver.resolve(PROPERTY_ID, "agoda")
        await resolver.resolve("prop-002", "goibibo")
        assert store.reads == 3

        await resolver.resolve(PROPERTY_ID, "goibibo")
        assert store.reads == 4

        resolver.invalidate()
        await resolver.resolve("prop-002", "goibibo")
        assert store.reads == 5


class TestCredentialProviders:
    @pytest.mark.asyncio
    async def test_environment_provider(self, monkeypatch):
        monkeypatch.setenv("OTA_AGODA_API_KEY", "env-key")
        monkeypatch.setenv("OTA_AGODA_HOTEL_ID", "AG-1")
        monkeypatch.setenv("OTA_EXPEDIA_API_KEY", "not-for-agoda")

        defaults = await EnvironmentCredentialProvider().get_channel_defaults("Agoda")

        assert defaults == {"api_key": "env-key", "hotel_id": "AG-1"}

    @pytest.mark.asyncio
    async def test_environment_provider_feeds_resolver(self, monkeypatch):
        monkeypatch.setenv("OTA_GOIBIBO_API_SECRET", "env-secret")
        resolver = ConfigResolver(
            InMemoryChannelConfigStore([record()]), EnvironmentCredentialProvider()
        )

        config = await resolver.resolve(PROPERTY_ID, "goibibo")

        assert config.credential("api_secret") == "env-secret"
        assert config.credential("api_key") == "prop-key"

    @pytest.mark.asyncio
    async def test_vault_provider(self, tmp_path):
        secret_file = tmp_path / "channels" / "cleartrip" / "defaults.json"
        secret_file.parent.mkdir(parents=True)
        secret_file.write_text(json.dumps({"api_key": "vault-key", "api_secret": "vault-secret"}))
        provider = VaultCredentialProvider(DevelopmentVaultClient(secrets_dir=str(tmp_path)))

        defaults = await provider.get_channel_defaults("Cleartrip")

        assert defaults == {"api_key": "vault-key", "api_secret": "vault-secret"}

    @pytest.mark.asyncio
    async def test_vault_provider_without_defaults(self, tmp_path):
        provider = VaultCredentialProvider(DevelopmentVaultClient(secrets_dir=str(tmp_path)))

        assert await provider.get_channel_defaults("cleartrip") == {}

    @pytest.mark.asyncio
    async def test_vault_provider_errors_become_configuration_errors(self, tmp_path):
        secret_file = tmp_path / "channels" / "cleartrip" / "defaults.json"
        secret_file.parent.mkdir(parents=True)
        secret_file.write_text("{not json")
        provider = VaultCredentialProvider(DevelopmentVaultClient(secrets_dir=str(tmp_path)))

        with pytest.raises(ConfigurationError, match="Vault"):
            await provider.get_channel_defaults("cleartrip")
