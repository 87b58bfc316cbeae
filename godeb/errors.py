"""Exception types raised by godeb."""


class GodebError(RuntimeError):
    """Base class for every error godeb reports to the user."""


class CatalogFetchError(GodebError):
    """Raised when the release listing or a source archive cannot be fetched."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class CatalogDecodeError(GodebError):
    """Raised when the release listing is not in the expected shape."""


class VersionNotFoundError(GodebError):
    def __init__(self, version: str):
        super().__init__(f"Go version {version} is not available for this platform")
        self.version = version


class UnsupportedArchitectureError(GodebError):
    def __init__(self, arch: str):
        super().__init__(f"Unsupported architecture: {arch}")
        self.arch = arch


class SourceDecodeError(GodebError):
    """Raised when the source archive is corrupt, truncated or has invalid entries."""


class OutputWriteError(GodebError):
    """Raised when the package file cannot be written."""


class InstallerExecutionError(GodebError):
    """Raised when dpkg fails. ``package_path`` is set once a built package is left behind."""

    package_path = None


class AlreadyInstalledError(GodebError):
    def __init__(self, version: str):
        super().__init__(f"Go version {version} is already installed")
        self.version = version
