"""Service principal credentials model."""

from typing import Optional

from pydantic import BaseModel, Field, SecretStr


class ClientCredentials(BaseModel):
    """OAuth2 client-credentials triple."""

    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[SecretStr] = None

    @property
    def complete(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)


class CredentialsConfig(BaseModel):
    """Credentials for the primary and mirror clouds.

    Attributes:
        primary: Used for the primary storage account and the asset database
        mirror: Used for the mirror storage account
    """

    primary: ClientCredentials = Field(default_factory=ClientCredentials)
    mirror: ClientCredentials = Field(default_factory=ClientCredentials)
