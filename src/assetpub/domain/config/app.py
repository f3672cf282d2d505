"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from assetpub.domain.config.build import BuildConfig
from assetpub.domain.config.credentials import CredentialsConfig
from assetpub.domain.config.database import DatabaseConfig
from assetpub.domain.config.retry import RetryPolicy
from assetpub.domain.config.storage import StorageConfig


class AppConfig(BaseModel):
    """Main application configuration.

    This is the root configuration model that aggregates all configuration sections.
    Validation is performed at load time to fail fast on configuration errors.

    Attributes:
        build: Quality and commit of the build being published
        storage: Blob storage accounts and upload settings
        database: Asset database settings
        credentials: Service principal credentials
        retry: Retry policy for every outbound call
    """

    build: BuildConfig = Field(default_factory=BuildConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    model_config = ConfigDict(
        validate_assignment=True,  # Validate on attribute assignment
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "build": {"quality": "insider", "commit": "0123456789abcdef"},
                "storage": {
                    "kind": "http",
                    "primary": {
                        "url": "https://vscode.blob.core.windows.net",
                        "cdn_url": "https://vscode.download.prss.microsoft.com",
                    },
                    "mirror": {
                        "url": "https://vscode.blob.core.chinacloudapi.cn",
                        "authority": "https://login.chinacloudapi.cn",
                        "cdn_url": "https://vscode.cdn.azure.cn",
                    },
                    "publish_to_mirror": True,
                },
                "database": {
                    "endpoint": "https://builds.documents.azure.com",
                    "database": "builds",
                    "procedure": "createAsset",
                },
                "retry": {
                    "max_attempts": 5,
                    "base_delay": 1.0,
                    "backoff_factor": 2.0,
                },
            }
        },
    )
