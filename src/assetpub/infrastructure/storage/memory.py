"""In-memory blob store for dry runs and testing"""

import threading
from pathlib import Path
from typing import Dict, Optional, Tuple

from assetpub.infrastructure.storage.base import BlobHeaders, BlobStore


class MemoryBlobStore(BlobStore):
    """Blob store keeping uploaded blobs in a dictionary"""

    def __init__(self, name: str = "memory", blobs: Optional[Dict[Tuple[str, str], bytes]] = None):
        self.name = name
        self.blobs: Dict[Tuple[str, str], bytes] = dict(blobs or {})
        self.headers: Dict[Tuple[str, str], BlobHeaders] = {}
        self._lock = threading.Lock()

    def exists(self, container: str, blob_name: str) -> bool:
        with self._lock:
            return (container, blob_name) in self.blobs

    def upload_file(self, container: str, blob_name: str, file_path: Path, headers: BlobHeaders) -> None:
        data = Path(file_path).read_bytes()
        with self._lock:
            self.blobs[(container, blob_name)] = data
            self.headers[(container, blob_name)] = headers
