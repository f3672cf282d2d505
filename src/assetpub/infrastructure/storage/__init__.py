"""Blob stores"""

from assetpub.infrastructure.storage.base import BlobHeaders, BlobStore
from assetpub.infrastructure.storage.http import HttpBlobStore
from assetpub.infrastructure.storage.memory import MemoryBlobStore

__all__ = ["BlobHeaders", "BlobStore", "HttpBlobStore", "MemoryBlobStore"]
