"""Configuration models with Pydantic validation."""

from assetpub.domain.config.app import AppConfig
from assetpub.domain.config.build import BuildConfig
from assetpub.domain.config.credentials import ClientCredentials, CredentialsConfig
from assetpub.domain.config.database import DatabaseConfig
from assetpub.domain.config.retry import RetryPolicy
from assetpub.domain.config.storage import BlobEndpointConfig, StorageConfig

__all__ = [
    "AppConfig",
    "BuildConfig",
    "ClientCredentials",
    "CredentialsConfig",
    "DatabaseConfig",
    "RetryPolicy",
    "BlobEndpointConfig",
    "StorageConfig",
]
