"""In-memory asset registry for dry runs and testing"""

import threading
from typing import List, Tuple

from assetpub.domain.models.asset import Asset
from assetpub.infrastructure.registry.base import AssetRegistry


class MemoryAssetRegistry(AssetRegistry):
    """Registry recording (commit, asset) pairs in a list"""

    def __init__(self):
        self.assets: List[Tuple[str, Asset]] = []
        self._lock = threading.Lock()

    def create_asset(self, commit: str, asset: Asset) -> None:
        with self._lock:
            self.assets.append((commit, asset))
