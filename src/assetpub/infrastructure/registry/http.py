"""Asset registry executing a stored procedure over the document database REST API"""

import logging
from email.utils import formatdate
from typing import Optional
from urllib.parse import quote

import requests

from assetpub.domain.errors import RegistryError
from assetpub.domain.models.asset import Asset
from assetpub.infrastructure.auth import ClientSecretTokenProvider
from assetpub.infrastructure.registry.base import AssetRegistry

logger = logging.getLogger(__name__)


class HttpAssetRegistry(AssetRegistry):
    """Registers assets by running ``<procedure>`` in the quality's collection"""

    API_VERSION = "2018-12-31"

    def __init__(
        self,
        endpoint: str,
        collection: str,
        token_provider: ClientSecretTokenProvider,
        database: str = "builds",
        procedure: str = "createAsset",
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.collection = collection
        self.token_provider = token_provider
        self.database = database
        self.procedure = procedure
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def procedure_url(self) -> str:
        return f"{self.endpoint}/dbs/{self.database}/colls/{self.collection}/sprocs/{self.procedure}"

    @property
    def scope(self) -> str:
        return f"{self.endpoint}/.default"

    def create_asset(self, commit: str, asset: Asset) -> None:
        token = self.token_provider.get_token(self.scope)
        headers = {
            "Authorization": quote(f"type=aad&ver=1.0&sig={token}", safe=""),
            "x-ms-date": formatdate(usegmt=True),
            "x-ms-version": self.API_VERSION,
            # Stored procedures run against the empty partition key
            "x-ms-documentdb-partitionkey": '[""]',
            "Content-Type": "application/json",
        }
        logger.debug(f"HTTP POST {self.procedure_url}")
        resp = self.session.post(
            self.procedure_url,
            json=[commit, asset.to_document(), True],
            headers=headers,
            timeout=self.timeout,
        )
        if not resp.ok:
            raise RegistryError(
                f"Stored procedure {self.procedure} failed: HTTP {resp.status_code} {resp.text[:200]}",
                status_code=resp.status_code,
            )
