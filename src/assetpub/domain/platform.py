"""Mapping of build tuples to the platform and type names used in the asset database"""

from assetpub.domain.errors import UnrecognizedPlatformError


def _win32_platform(product: str, arch: str, type: str) -> str:
    if product == "client":
        asset = "win32" if arch == "ia32" else f"win32-{arch}"
        if type == "archive":
            return f"{asset}-archive"
        if type == "setup":
            return asset
        if type == "user-setup":
            return f"{asset}-user"
    elif product == "server" and arch != "arm64":
        return "server-win32" if arch == "ia32" else f"server-win32-{arch}"
    elif product == "web" and arch != "arm64":
        return "server-win32-web" if arch == "ia32" else f"server-win32-{arch}-web"
    elif product == "cli":
        return f"cli-win32-{arch}"
    raise UnrecognizedPlatformError(product, "win32", arch, type)


def _alpine_platform(product: str, arch: str, type: str) -> str:
    if product == "server":
        return f"server-alpine-{arch}"
    if product == "web":
        return f"server-alpine-{arch}-web"
    if product == "cli":
        return f"cli-alpine-{arch}"
    raise UnrecognizedPlatformError(product, "alpine", arch, type)


def _linux_platform(product: str, arch: str, type: str) -> str:
    # Linux is keyed on the package type first
    if type == "snap":
        return f"linux-snap-{arch}"
    if type == "archive-unsigned":
        if product == "client":
            return f"linux-{arch}"
        if product == "server":
            return f"server-linux-{arch}"
        if product == "web":
            return "web-standalone" if arch == "standalone" else f"server-linux-{arch}-web"
    elif type == "deb-package":
        return f"linux-deb-{arch}"
    elif type == "rpm-package":
        return f"linux-rpm-{arch}"
    elif type == "cli":
        return f"cli-linux-{arch}"
    raise UnrecognizedPlatformError(product, "linux", arch, type)


def _darwin_platform(product: str, arch: str, type: str) -> str:
    prefixes = {"client": "darwin", "server": "server-darwin"}
    if product in prefixes:
        prefix = prefixes[product]
        return prefix if arch == "x64" else f"{prefix}-{arch}"
    if product == "web":
        return "server-darwin-web" if arch == "x64" else f"server-darwin-{arch}-web"
    if product == "cli":
        return f"cli-darwin-{arch}"
    raise UnrecognizedPlatformError(product, "darwin", arch, type)


_PLATFORM_RESOLVERS = {
    "win32": _win32_platform,
    "alpine": _alpine_platform,
    "linux": _linux_platform,
    "darwin": _darwin_platform,
}


def get_platform(product: str, os: str, arch: str, type: str) -> str:
    """Resolve the database platform name for a build artifact

    Args:
        product: client, server, web or cli
        os: win32, alpine, linux or darwin
        arch: Target architecture
        type: Unprocessed artifact type (e.g. user-setup, not setup)

    Returns:
        Platform identifier, e.g. "win32-x64-user"

    Raises:
        UnrecognizedPlatformError: If the combination is not published
    """
    resolver = _PLATFORM_RESOLVERS.get(os)
    if resolver is None:
        raise UnrecognizedPlatformError(product, os, arch, type)
    return resolver(product, arch, type)


def get_real_type(type: str) -> str:
    """Collapse artifact types onto the types stored in the database"""
    if type == "user-setup":
        return "setup"
    if type in ("deb-package", "rpm-package"):
        return "package"
    return type
