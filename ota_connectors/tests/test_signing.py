"""
Tests for HMAC request signing and the signed channels
"""

import hashlib
import hmac
import re

import pytest
from pytest_httpx import HTTPXMock

from ota_connectors.contracts import SigningError
from ota_connectors.utils.signing import RequestSignature, RequestSigner

from .fixtures import PROPERTY_ID, make_inventory


def fixed_signer(secret="ct-secret"):
    return RequestSigner(
        key_id="ct-key",
        secret=secret,
        clock=lambda: 1767225600.7,
        nonce_factory=lambda: "nonce-1",
    )


class TestRequestSigner:
    def test_signature_is_deterministic(self):
        signer = fixed_signer()
        body = b'{"a":1}'

        first = signer.sign("post", "/hotels/H123/inventory", body)
        second = signer.sign("POST", "/hotels/H123/inventory", body)

        assert first == second
        assert first.timestamp == "1767225600"
        assert first.nonce == "nonce-1"

        message = "\n".join(
            [
                "POST",
                "/hotels/H123/inventory",
                "1767225600",
                "nonce-1",
                hashlib.sha256(body).hexdigest(),
            ]
        )
        expected = hmac.new(b"ct-secret", message.encode(), hashlib.sha256).hexdigest()
        assert first.signature == expected

    def test_body_changes_the_signature(self):
        signer = fixed_signer()

        assert (
            signer.sign("POST", "/x", b"{}").signature
            != signer.sign("POST", "/x", b"[]").signature
        )

    def test_verify(self):
        signer = fixed_signer()
        signature = signer.sign("POST", "/trips/T1/cancel", b'{"reason":"x"}')

        assert signer.verify("POST", "/trips/T1/cancel", b'{"reason":"x"}', signature)
        assert not signer.verify("POST", "/trips/T1/cancel", b'{"reason":"y"}', signature)
        forged = RequestSignature(signature.timestamp, signature.nonce, "0" * 64)
        assert not signer.verify("POST", "/trips/T1/cancel", b'{"reason":"x"}', forged)

    def test_missing_secret_refuses_to_sign(self):
        with pytest.raises(SigningError):
            fixed_signer(secret=None).sign("GET", "/ping")

        with pytest.raises(SigningError):
            fixed_signer(secret="").verify(
                "GET", "/ping", b"", RequestSignature("1", "n", "s")
            )

    def test_missing_key_refuses_to_sign(self):
        signer = RequestSigner(key_id=None, secret="s")

        with pytest.raises(SigningError):
            signer.sign("GET", "/ping")

    def test_nonces_are_unique_by_default(self):
        signer = RequestSigner(key_id="k", secret="s")

        assert signer.sign("GET", "/a").nonce != signer.sign("GET", "/a").nonce


class TestSignedChannels:
    @pytest.mark.asyncio
    async def test_goibibo_signs_every_request(
        self, connector_factory, inventory_store, httpx_mock: HTTPXMock
    ):
        inventory_store.set_inventory(PROPERTY_ID, make_inventory(2))
        httpx_mock.add_response(method="POST", json={"status": "ok"})
        connector = connector_factory("goibibo")

        result = await connector.sync_inventory()

        assert result.success is True
        request = httpx_mock.get_requests()[0]
        assert request.headers["X-GI-Key"] == "gi-key"
        signature = RequestSignature(
            timestamp=request.headers["X-GI-Timestamp"],
            nonce=request.headers["X-GI-Nonce"],
            signature=request.headers["X-GI-Signature"],
        )
        assert connector.signer.verify(
            "POST", "/hotels/H123/inventory/bulk", request.content, signature
        )

    @pytest.mark.asyncio
    async def test_cleartrip_authorization_header(
        self, connector_factory, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(method="GET", json={"status": "ok"})
        connector = connector_factory("cleartrip")

        status = await connector.get_connection_status()

        assert status.connected is True
        header = httpx_mock.get_requests()[0].headers["Authorization"]
        assert re.fullmatch(
            r"CT-HMAC-SHA256 key=ct-key,ts=\d+,nonce=[0-9a-f]{32},sig=[0-9a-f]{64}",
            header,
        )

    @pytest.mark.parametrize("channel", ["goibibo", "cleartrip"])
    @pytest.mark.asyncio
    async def test_missing_secret_sends_nothing(
        self, connector_factory, inventory_store, httpx_mock: HTTPXMock, channel
    ):
        inventory_store.set_inventory(PROPERTY_ID, make_inventory(3))
        connector = connector_factory(channel, credentials={"api_key": "only-key"})

        with pytest.raises(SigningError):
            await connector.sync_inventory()

        with pytest.raises(SigningError):
            await connector.cancel_booking("BK-1")

        status = await connector.get_connection_status()
        assert status.connected is False
        assert "secret" in status.error.lower()

        assert httpx_mock.get_requests() == []
