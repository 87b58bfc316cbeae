"""
godeb: translate upstream Go tarballs into Debian packages.

This package provides:
- Fetching the Go release listing and picking a release
- Ordering Go release versions (final > rc > beta > alpha)
- Streaming a release tarball into a .deb without unpacking it to disk
- Installing and removing the package through dpkg

Main modules:
- catalog: release listing and version selection
- version: release version parsing and comparison
- deb: tarball to .deb transcoding
- installer: dpkg integration
- cli: command line entry point
"""

from .catalog import Tarball, select, tarballs
from .deb import BuildOptions, ControlMetadata, build_package, write_package
from .platforms import Platform
from .version import ReleaseVersion, compare, parse

__all__ = [
    "BuildOptions",
    "ControlMetadata",
    "Platform",
    "ReleaseVersion",
    "Tarball",
    "build_package",
    "compare",
    "parse",
    "select",
    "tarballs",
    "write_package",
]
