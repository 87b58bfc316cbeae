"""
Platform identifiers and architecture tables.

Architectures are named the way Go names them (GOARCH). The download listing
and Debian each use their own spelling for some of them.
"""

import platform as _platform
from dataclasses import dataclass

from .errors import UnsupportedArchitectureError

# GOARCH -> Debian architecture
DEB_ARCHITECTURES: dict[str, str] = {
    "amd64": "amd64",
    "386": "i386",
    "arm": "armhf",
    "arm64": "arm64",
    "ppc64le": "ppc64el",
    "s390x": "s390x",
    "riscv64": "riscv64",
    "loong64": "loong64",
}

# GOARCH -> arch field in the download listing, where they differ
DOWNLOAD_ARCHITECTURES: dict[str, str] = {
    "arm": "armv6l",
}

# platform.machine() -> GOARCH
MACHINE_ARCHITECTURES: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i486": "386",
    "i586": "386",
    "i686": "386",
    "armv6l": "arm",
    "armv7l": "arm",
    "aarch64": "arm64",
    "arm64": "arm64",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
    "riscv64": "riscv64",
    "loongarch64": "loong64",
}


@dataclass(frozen=True)
class Platform:
    os: str
    arch: str

    @property
    def deb_arch(self) -> str:
        return deb_architecture(self.arch)

    @property
    def download_arch(self) -> str:
        return DOWNLOAD_ARCHITECTURES.get(self.arch, self.arch)

    def __str__(self) -> str:
        return f"{self.os}/{self.arch}"


def deb_architecture(arch: str) -> str:
    """Map a GOARCH value to the Debian architecture name."""
    try:
        return DEB_ARCHITECTURES[arch]
    except KeyError:
        raise UnsupportedArchitectureError(arch) from None


def get_current_platform() -> Platform:
    """
    Detect the platform of the running host.

    Returns:
        Platform with Go naming. Unknown machines keep their raw name so the
        error surfaces when the architecture is actually mapped.
    """
    system = _platform.system().lower()
    machine = _platform.machine().lower()
    return Platform(os=system, arch=MACHINE_ARCHITECTURES.get(machine, machine))
