"""Base asset registry interface"""

from abc import ABC, abstractmethod

from assetpub.domain.models.asset import Asset


class AssetRegistry(ABC):
    """Abstract base class for the asset metadata database"""

    @abstractmethod
    def create_asset(self, commit: str, asset: Asset) -> None:
        """Record an asset for a build commit

        Args:
            commit: Build commit the asset belongs to
            asset: Asset metadata

        Raises:
            RegistryError: If the database rejects the request
        """
        pass
