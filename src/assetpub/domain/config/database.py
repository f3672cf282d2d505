"""Asset database configuration model."""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class DatabaseConfig(BaseModel):
    """Configuration for asset registration.

    Attributes:
        kind: Registry implementation (http, memory)
        endpoint: Document database account endpoint
        database: Database holding one collection per quality
        procedure: Stored procedure that records an asset
        timeout: Per-request timeout in seconds
    """

    kind: Literal["http", "memory"] = "http"
    endpoint: Optional[str] = None
    database: str = "builds"
    procedure: str = "createAsset"
    timeout: float = Field(60.0, gt=0.0)
