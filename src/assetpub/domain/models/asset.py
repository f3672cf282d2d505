"""Asset model - the metadata record registered for a published artifact"""

import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Asset(BaseModel):
    """Published build artifact as stored in the asset database.

    Field names follow the database document shape when serialized
    with ``to_document()``.
    """

    platform: str
    type: str
    url: str
    hash: str  # sha1, kept under this name for existing update clients
    mooncake_url: str = Field(serialization_alias="mooncakeUrl")
    sha256hash: str
    size: int = Field(ge=0)
    supports_fast_update: Optional[bool] = Field(None, serialization_alias="supportsFastUpdate")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def for_platform(cls, platform: str, **fields: Any) -> "Asset":
        # Remove this if we ever need to rollback fast updates for windows
        if re.search(r"win32", platform):
            fields.setdefault("supports_fast_update", True)
        return cls(platform=platform, **fields)

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the database document (unset optional flags omitted)"""
        return self.model_dump(by_alias=True, exclude_none=True)
