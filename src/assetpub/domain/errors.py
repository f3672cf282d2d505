"""Error types shared across assetpub"""

from __future__ import annotations


class ConfigurationError(Exception):
    """Configuration validation error."""

    pass


class RetryCancelledError(Exception):
    """Raised when a pending retry delay is aborted by a cancel signal."""

    def __init__(self, attempt: int):
        super().__init__(f"Retry cancelled after attempt {attempt}")
        self.attempt = attempt


class UnrecognizedPlatformError(ValueError):
    """Raised when a (product, os, arch, type) tuple has no platform name."""

    def __init__(self, product: str, os: str, arch: str, type: str):
        super().__init__(f"Unrecognized: {product} {os} {arch} {type}")
        self.product = product
        self.os = os
        self.arch = arch
        self.type = type


class MissingEnvironmentError(ConfigurationError):
    """Raised when a required setting was not provided."""

    def __init__(self, name: str):
        super().__init__(f"Missing env: {name}")
        self.name = name


class StorageError(RuntimeError):
    """Blob storage request failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RegistryError(RuntimeError):
    """Asset registration request failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
