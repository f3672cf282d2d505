"""Base blob store interface"""

import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class BlobHeaders:
    """HTTP headers stored with an uploaded blob"""

    content_type: str
    content_disposition: str
    cache_control: str = "max-age=31536000, public"

    @classmethod
    def for_file(cls, file_path: Path, file_name: str) -> "BlobHeaders":
        content_type, _ = mimetypes.guess_type(str(file_path))
        return cls(
            content_type=content_type or "application/octet-stream",
            content_disposition=f'attachment; filename="{file_name}"',
        )


class BlobStore(ABC):
    """Abstract base class for blob storage accounts"""

    name: str = "blob"

    @abstractmethod
    def exists(self, container: str, blob_name: str) -> bool:
        """Check whether a blob is already present

        Raises:
            StorageError: If the check fails
        """
        pass

    @abstractmethod
    def upload_file(self, container: str, blob_name: str, file_path: Path, headers: BlobHeaders) -> None:
        """Upload a local file as a block blob, replacing any existing blob

        Raises:
            StorageError: If the upload fails
        """
        pass
