"""Checksums for published artifacts"""

import hashlib
from pathlib import Path
from typing import BinaryIO, Union

from assetpub.domain.models.file_digest import FileDigest

CHUNK_SIZE = 1024 * 1024


def hash_stream(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> FileDigest:
    """Compute size, sha1 and sha256 of a binary stream in a single pass"""
    sha1 = hashlib.sha1()
    sha256 = hashlib.sha256()
    size = 0
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        sha1.update(chunk)
        sha256.update(chunk)
        size += len(chunk)
    return FileDigest(size=size, sha1=sha1.hexdigest(), sha256=sha256.hexdigest())


def hash_file(path: Union[str, Path]) -> FileDigest:
    """Compute size, sha1 and sha256 of a file

    Args:
        path: File to hash

    Returns:
        FileDigest with lowercase hex digests

    Raises:
        FileNotFoundError: If the file does not exist
    """
    with open(path, "rb") as f:
        return hash_stream(f)
