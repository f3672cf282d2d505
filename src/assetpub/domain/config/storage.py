"""Blob storage configuration model."""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class BlobEndpointConfig(BaseModel):
    """One blob storage account.

    Attributes:
        url: Account endpoint, e.g. https://account.blob.core.windows.net
        authority: OAuth2 authority used to obtain tokens for this account
        cdn_url: Public CDN prefix the uploaded blobs are served from
    """

    url: str
    authority: str = "https://login.microsoftonline.com"
    cdn_url: Optional[str] = None


class StorageConfig(BaseModel):
    """Configuration for artifact uploads.

    Attributes:
        kind: Store implementation (http, memory)
        primary: Main storage account
        mirror: Mirror storage account
        publish_to_mirror: Whether blobs are also uploaded to the mirror
        timeout: Per-request timeout in seconds
    """

    kind: Literal["http", "memory"] = "http"
    primary: BlobEndpointConfig = Field(
        default_factory=lambda: BlobEndpointConfig(url="https://vscode.blob.core.windows.net")
    )
    mirror: BlobEndpointConfig = Field(
        default_factory=lambda: BlobEndpointConfig(
            url="https://vscode.blob.core.chinacloudapi.cn",
            authority="https://login.chinacloudapi.cn",
        )
    )
    publish_to_mirror: bool = True
    timeout: float = Field(600.0, gt=0.0)
