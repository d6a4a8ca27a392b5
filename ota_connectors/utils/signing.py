"""
HMAC request signing for partners that authenticate every call
"""

import hashlib
import hmac
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from ..contracts import SigningError


@dataclass(frozen=True)
class RequestSignature:
    timestamp: str
    nonce: str
    signature: str


class RequestSigner:
    """
    Signs requests with HMAC-SHA256 over method, path, timestamp, nonce and body hash

    The canonical string is::

        METHOD\\nPATH\\nTIMESTAMP\\nNONCE\\nsha256(body)

    A signer without a shared secret refuses to sign instead of letting an
    unsigned request go out.
    """

    def __init__(
        self,
        key_id: Optional[str],
        secret: Optional[str],
        clock: Callable[[], float] = time.time,
        nonce_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self.key_id = key_id
        self._secret = secret
        self._clock = clock
        self._nonce_factory = nonce_factory

    @staticmethod
    def canonical_string(
        method: str, path: str, timestamp: str, nonce: str, body: bytes
    ) -> str:
        body_hash = hashlib.sha256(body or b"").hexdigest()
        return "\n".join([method.upper(), path, timestamp, nonce, body_hash])

    def sign(self, method: str, path: str, body: bytes = b"") -> RequestSignature:
        if not self._secret:
            raise SigningError("Shared secret is not configured; refusing to sign request")
        if not self.key_id:
            raise SigningError("API key is not configured; refusing to sign request")

        timestamp = str(int(self._clock()))
        nonce = self._nonce_factory()
        message = self.canonical_string(method, path, timestamp, nonce, body)
        digest = hmac.new(
            self._secret.encode(), message.encode(), hashlib.sha256
        ).hexdigest()
        return RequestSignature(timestamp=timestamp, nonce=nonce, signature=digest)

    def verify(
        self, method: str, path: str, body: bytes, signature: RequestSignature
    ) -> bool:
        """Recompute a signature, e.g. for partner webhooks"""
        if not self._secret:
            raise SigningError("Shared secret is not configured; cannot verify")
        message = self.canonical_string(
            method, path, signature.timestamp, signature.nonce, body
        )
        expected = hmac.new(
            self._secret.encode(), message.encode(), hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, signature.signature)
