"""FileDigest model - size and checksums of an artifact"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FileDigest:
    """Size and hex digests of a file"""

    size: int
    sha1: str
    sha256: str
