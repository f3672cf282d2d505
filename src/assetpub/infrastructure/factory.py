"""Factory for creating blob stores and asset registries from configuration"""

import logging
from typing import Dict, Optional

from assetpub.domain.config import AppConfig, BlobEndpointConfig, ClientCredentials
from assetpub.domain.errors import MissingEnvironmentError
from assetpub.infrastructure.auth import ClientSecretTokenProvider
from assetpub.infrastructure.registry.base import AssetRegistry
from assetpub.infrastructure.registry.http import HttpAssetRegistry
from assetpub.infrastructure.registry.memory import MemoryAssetRegistry
from assetpub.infrastructure.storage.base import BlobStore
from assetpub.infrastructure.storage.http import HttpBlobStore
from assetpub.infrastructure.storage.memory import MemoryBlobStore

logger = logging.getLogger(__name__)


class BackendFactory:
    """Creates storage and registry backends for one publish run"""

    KINDS = ("http", "memory")

    def __init__(self, config: AppConfig):
        self.config = config
        self._token_providers: Dict[str, ClientSecretTokenProvider] = {}

    @classmethod
    def _check_kind(cls, kind: str, what: str) -> str:
        kind_lower = kind.lower()
        if kind_lower not in cls.KINDS:
            available = ", ".join(cls.KINDS)
            raise ValueError(f"Unknown {what} kind: {kind}. Available kinds: {available}")
        return kind_lower

    def _token_provider(self, key: str, credentials: ClientCredentials, authority: str) -> ClientSecretTokenProvider:
        if key not in self._token_providers:
            self._token_providers[key] = ClientSecretTokenProvider(credentials, authority=authority)
        return self._token_providers[key]

    def _create_blob_store(
        self, name: str, endpoint: BlobEndpointConfig, credentials: ClientCredentials
    ) -> BlobStore:
        kind = self._check_kind(self.config.storage.kind, "storage")
        logger.info(f"Creating {kind} blob store for {name}")
        if kind == "memory":
            return MemoryBlobStore(name=name)
        return HttpBlobStore(
            endpoint.url,
            self._token_provider(name, credentials, endpoint.authority),
            timeout=self.config.storage.timeout,
            name=name,
        )

    def create_primary_store(self) -> BlobStore:
        return self._create_blob_store(
            "primary", self.config.storage.primary, self.config.credentials.primary
        )

    def create_mirror_store(self) -> Optional[BlobStore]:
        """Mirror store, or None when mirror publishing is disabled"""
        if not self.config.storage.publish_to_mirror:
            return None
        return self._create_blob_store(
            "mirror", self.config.storage.mirror, self.config.credentials.mirror
        )

    def create_registry(self) -> AssetRegistry:
        kind = self._check_kind(self.config.database.kind, "database")
        logger.info(f"Creating {kind} asset registry")
        if kind == "memory":
            return MemoryAssetRegistry()

        database = self.config.database
        if not database.endpoint:
            raise MissingEnvironmentError("DOCUMENTDB_ENDPOINT")
        if not self.config.build.quality:
            raise MissingEnvironmentError("RELEASE_QUALITY")
        # The database shares the primary cloud's service principal
        token_provider = self._token_provider(
            "primary", self.config.credentials.primary, self.config.storage.primary.authority
        )
        return HttpAssetRegistry(
            database.endpoint,
            self.config.build.quality,
            token_provider,
            database=database.database,
            procedure=database.procedure,
            timeout=database.timeout,
        )
