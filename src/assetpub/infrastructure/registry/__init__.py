"""Asset registries"""

from assetpub.infrastructure.registry.base import AssetRegistry
from assetpub.infrastructure.registry.http import HttpAssetRegistry
from assetpub.infrastructure.registry.memory import MemoryAssetRegistry

__all__ = ["AssetRegistry", "HttpAssetRegistry", "MemoryAssetRegistry"]
