# blogmedia/services/storage/factory.py
from __future__ import annotations

"""
Blog Media • storage client factory
-----------------------------------
Hands out a `StorageClient` bound to the manager's *current* credential.

The cached client is reused only while it is bound to the identical
`ResolvedCredential` object; any swap in the manager (refresh, reinitialize)
makes the next `get_client()` build a new one. `build_fresh()` forces a
credential refresh and returns an uncached client for one-off retries.
"""

import logging
from typing import Any, Callable, Optional

from blogmedia.core.exceptions import ConfigurationIncomplete
from blogmedia.schemas.credentials import ResolvedCredential, StorageLocation
from blogmedia.services.credentials.manager import CredentialLifecycleManager
from blogmedia.services.storage.client import StorageClient

logger = logging.getLogger(__name__)

ClientBuilder = Callable[..., StorageClient]


class StorageClientFactory:
    def __init__(
        self,
        manager: CredentialLifecycleManager,
        *,
        client_builder: ClientBuilder = StorageClient,
    ) -> None:
        self._manager = manager
        self._client_builder = client_builder
        self._client: Optional[StorageClient] = None
        manager.add_listener(self._on_credential_swap)

    @property
    def location(self) -> StorageLocation:
        location = self._manager.location
        if location is None or not location.bucket_name or not location.region:
            strategy = self._manager.strategy.value if self._manager.strategy else None
            raise ConfigurationIncomplete(strategy, missing=["aws_storage"])
        return location

    @property
    def bucket(self) -> str:
        return self.location.bucket_name

    async def resolve_bucket(self) -> str:
        """Configured bucket, initializing the manager first when needed."""
        await self._manager.get_credentials()
        return self.bucket

    async def get_client(self) -> StorageClient:
        credential = await self._manager.get_credentials()
        client = self._client
        if client is not None and client.bound_to(credential):
            return client
        client = self._build(credential)
        self._client = client
        logger.debug("Storage client rebuilt for key=%s", credential.key_hint)
        return client

    async def build_fresh(self) -> StorageClient:
        """Refresh credentials now and return an independent client."""
        credential = await self._manager.refresh_now()
        return self._build(credential)

    def _build(self, credential: ResolvedCredential) -> StorageClient:
        location = self.location
        return self._client_builder(
            credential,
            bucket=location.bucket_name,
            region_name=location.region,
            endpoint_url=location.endpoint_url,
        )

    def _on_credential_swap(self, credential: Any) -> None:
        client = self._client
        if client is not None and not client.bound_to(credential):
            self._client = None


__all__ = ["StorageClientFactory"]
