"""Build identity configuration model."""

from typing import Optional

from pydantic import BaseModel


class BuildConfig(BaseModel):
    """Identity of the build being published.

    Attributes:
        quality: Release channel (stable, insider, ...); also the container name
        commit: Source commit the artifacts were built from
    """

    quality: Optional[str] = None
    commit: Optional[str] = None
