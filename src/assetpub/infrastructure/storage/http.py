"""Blob store talking to the storage REST API with requests"""

import logging
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote

import requests

from assetpub.domain.errors import StorageError
from assetpub.infrastructure.auth import ClientSecretTokenProvider
from assetpub.infrastructure.storage.base import BlobHeaders, BlobStore

logger = logging.getLogger(__name__)

STORAGE_SCOPE = "https://storage.azure.com/.default"


class HttpBlobStore(BlobStore):
    """Blob store backed by a storage account's REST endpoint"""

    API_VERSION = "2021-08-06"

    def __init__(
        self,
        account_url: str,
        token_provider: ClientSecretTokenProvider,
        timeout: float = 600.0,
        session: Optional[requests.Session] = None,
        name: str = "blob",
    ):
        self.account_url = account_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self.session = session or requests.Session()
        self.name = name

    def blob_url(self, container: str, blob_name: str) -> str:
        return f"{self.account_url}/{quote(container)}/{quote(blob_name)}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token_provider.get_token(STORAGE_SCOPE)}",
            "x-ms-version": self.API_VERSION,
        }

    def exists(self, container: str, blob_name: str) -> bool:
        url = self.blob_url(container, blob_name)
        logger.debug(f"HTTP HEAD {url}")
        resp = self.session.head(url, headers=self._headers(), timeout=self.timeout)
        if resp.status_code == 404:
            return False
        if not resp.ok:
            raise StorageError(
                f"Failed to check blob {container}/{blob_name} on {self.name}: HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return True

    def upload_file(self, container: str, blob_name: str, file_path: Path, headers: BlobHeaders) -> None:
        url = self.blob_url(container, blob_name)
        request_headers = self._headers()
        request_headers.update(
            {
                "x-ms-blob-type": "BlockBlob",
                "x-ms-blob-content-type": headers.content_type,
                "x-ms-blob-content-disposition": headers.content_disposition,
                "x-ms-blob-cache-control": headers.cache_control,
            }
        )
        logger.debug(f"HTTP PUT {url}")
        with open(file_path, "rb") as f:
            resp = self.session.put(url, data=f, headers=request_headers, timeout=self.timeout)
        if not resp.ok:
            raise StorageError(
                f"Failed to upload {container}/{blob_name} to {self.name}: HTTP {resp.status_code} {resp.text[:200]}",
                status_code=resp.status_code,
            )
