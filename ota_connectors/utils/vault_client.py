"""
HashiCorp Vault Client for OTA channel connectors
Holds channel-wide default credentials shared by every property
"""

import asyncio
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import hvac
import hvac.exceptions

from .pii_redactor import setup_logging_redaction

logger = logging.getLogger(__name__)
setup_logging_redaction(logger)


class VaultError(Exception):
    """Base exception for Vault operations"""

    pass


class VaultAuthError(VaultError):
    """Vault authentication failed"""

    pass


class VaultSecretNotFoundError(VaultError):
    """Secret not found in Vault"""

    pass


class VaultClient:
    """
    HashiCorp Vault client for channel credential management

    Features:
    - Secret caching with TTL
    - Kubernetes auth support
    - Direct token auth for local runs
    """

    def __init__(
        self,
        vault_url: Optional[str] = None,
        vault_token: Optional[str] = None,
        kubernetes_role: str = "ota-connectors",
        mount_path: str = "ota",
        cache_ttl: int = 300,
    ):
        """
        Initialize Vault client

        Args:
            vault_url: Vault server URL (defaults to VAULT_ADDR env var)
            vault_token: Vault token (defaults to VAULT_TOKEN env var)
            kubernetes_role: Kubernetes auth role for pod authentication
            mount_path: KV v2 mount path
            cache_ttl: Secret cache TTL in seconds
        """
        self.vault_url = vault_url or os.getenv("VAULT_ADDR", "http://vault:8200")
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.kubernetes_role = kubernetes_role
        self.mount_path = mount_path
        self.cache_ttl = cache_ttl

        self._client: Optional[hvac.Client] = None
        self._cache: Dict[str, Tuple[Dict[str, Any], datetime]] = {}
        self._initialized = False

        self._k8s_token_path = "/var/run/secrets/kubernetes.io/serviceaccount/token"
        self._in_kubernetes = os.path.exists(self._k8s_token_path)

        logger.info(
            "Vault client initialized",
            extra={
                "vault_url": self.vault_url,
                "in_kubernetes": self._in_kubernetes,
                "mount_path": self.mount_path,
            },
        )

    def _initialize(self):
        """Initialize Vault client connection"""
        if self._initialized:
            return

        self._client = hvac.Client(url=self.vault_url)

        if self._in_kubernetes:
            self._authenticate_kubernetes()
        elif self.vault_token:
            self._authenticate_token()
        else:
            raise VaultAuthError("No Vault authentication method available")

        try:
            authenticated = self._client.is_authenticated()
        except (hvac.exceptions.VaultError, OSError) as e:
            raise VaultError(f"Vault initialization failed: {e}") from e
        if not authenticated:
            raise VaultAuthError("Failed to authenticate with Vault")

        self._initialized = True
        logger.info("Successfully connected to Vault")

    def _authenticate_kubernetes(self):
        """Authenticate using Kubernetes service account"""
        try:
            with open(self._k8s_token_path, "r") as f:
                jwt_token = f.read().strip()
            self._client.auth.kubernetes.login(role=self.kubernetes_role, jwt=jwt_token)
        except (hvac.exceptions.VaultError, OSError) as e:
            logger.error(f"Kubernetes authentication failed: {e}")
            raise VaultAuthError(f"Kubernetes auth failed: {e}") from e

        logger.info(
            f"Authenticated with Vault using Kubernetes role: {self.kubernetes_role}"
        )

    def _authenticate_token(self):
        self._client.token = self.vault_token
        logger.info("Authenticated with Vault using direct token")

    def _get_cache_key(self, path: str) -> str:
        return f"{self.mount_path}/{path}"

    def _get_from_cache(self, path: str) -> Optional[Dict[str, Any]]:
        """Get secret from cache if not expired"""
        entry = self._cache.get(self._get_cache_key(path))
        if entry is None:
            return None
        data, expiry = entry
        if datetime.now(timezone.utc) >= expiry:
            return None
        return data

    def _add_to_cache(self, path: str, data: Dict[str, Any]):
        expiry = datetime.now(timezone.utc) + timedelta(seconds=self.cache_ttl)
        self._cache[self._get_cache_key(path)] = (data, expiry)

    def _read_from_backend(self, path: str) -> Dict[str, Any]:
        if not self._initialized:
            self._initialize()

        try:
            response = self._client.secrets.kv.v2.read_secret_version(
                path=path, mount_point=self.mount_path
            )
        except hvac.exceptions.InvalidPath as e:
            raise VaultSecretNotFoundError(f"Secret not found: {path}") from e
        except (hvac.exceptions.VaultError, OSError) as e:
            logger.error(f"Failed to read secret {path}: {e}")
            raise VaultError(f"Failed to read secret: {e}") from e

        if not response or "data" not in response:
            raise VaultSecretNotFoundError(f"Secret not found: {path}")
        return response["data"]["data"]

    def read_secret(self, path: str) -> Dict[str, Any]:
        """
        Read secret from Vault

        Args:
            path: Secret path (relative to mount_path)

        Returns:
            Secret data dictionary

        Raises:
            VaultSecretNotFoundError: Secret not found
            VaultError: Other Vault errors
        """
        cached = self._get_from_cache(path)
        if cached is not None:
            logger.debug(f"Secret retrieved from cache: {path}")
            return cached

        data = self._read_from_backend(path)
        self._add_to_cache(path, data)
        logger.info(f"Secret retrieved from Vault: {path}")
        return data

    def read_channel_defaults(self, channel: str) -> Dict[str, Any]:
        """
        Read channel-wide default credentials

        Args:
            channel: Channel key (e.g., "booking_com", "goibibo")

        Returns:
            Credential dictionary with channel-specific fields
        """
        return self.read_secret(f"channels/{channel}/defaults")

    def clear_cache(self):
        """Clear the secret cache"""
        self._cache.clear()
        logger.info("Vault cache cleared")


# Singleton instance
_vault_client: Optional[VaultClient] = None


def get_vault_client() -> VaultClient:
    """Get or create the default Vault client instance"""
    global _vault_client
    if _vault_client is None:
        _vault_client = VaultClient()
    return _vault_client


class DevelopmentVaultClient(VaultClient):
    """
    Development/testing Vault client that uses local files

    Secrets live in <secrets_dir>/<path>.json.
    WARNING: This is for development only! Never use in production!
    """

    def __init__(self, secrets_dir: str = ".secrets", cache_ttl: int = 300):
        super().__init__(cache_ttl=cache_ttl)
        self.secrets_dir = Path(secrets_dir)
        logger.warning("Using DevelopmentVaultClient - NOT FOR PRODUCTION USE!")

    def _read_from_backend(self, path: str) -> Dict[str, Any]:
        file_path = self.secrets_dir / f"{path}.json"

        if not file_path.exists():
            raise VaultSecretNotFoundError(f"Secret file not found: {file_path}")

        try:
            with open(file_path, "r") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise VaultError(f"Failed to read secret file: {e}") from e


class AsyncVaultClient:
    """Async wrapper for VaultClient; hvac is blocking"""

    def __init__(self, vault_client: Optional[VaultClient] = None):
        self._client = vault_client or get_vault_client()
        self._executor = None

    async def read_secret(self, path: str) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor, self._client.read_secret, path
        )

    async def read_channel_defaults(self, channel: str) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor, self._client.read_channel_defaults, channel
        )
