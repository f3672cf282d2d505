"""PublishRequest model - one artifact to publish"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class PublishRequest:
    """Describes one artifact produced by a build job"""

    product: str  # client, server, web, cli
    os: str  # win32, alpine, linux, darwin
    arch: str  # x64, arm64, ia32, armhf, standalone, ...
    type: str  # unprocessed type: archive, setup, user-setup, deb-package, ...
    file_name: str  # name the artifact is published under
    file_path: Path  # local path of the artifact
