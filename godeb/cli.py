"""
Command line interface.

Usage:
    godeb list [--all]
    godeb download [VERSION]
    godeb install [VERSION]
    godeb remove
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from . import catalog
from .deb import COMPRESSION_SUFFIXES, DEFAULT_COMPRESSION, DEFAULT_ZSTD_LEVEL, BuildOptions, write_package
from .errors import AlreadyInstalledError, GodebError, InstallerExecutionError, OutputWriteError
from .installer import DpkgInstaller
from .platforms import Platform, get_current_platform
from .version import debian_version

EXIT_ERROR = 1
EXIT_INSTALL_FAILED = 2
EXIT_INTERRUPTED = 130


def print_section(title: str) -> None:
    """Print a formatted section header."""
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)


def resolve_platform(args: argparse.Namespace) -> Platform:
    current = get_current_platform()
    return Platform(os=args.os or current.os, arch=args.arch or current.arch)


def cmd_list(args: argparse.Namespace) -> None:
    platform = resolve_platform(args)
    for tb in catalog.tarballs(platform, include_all=args.all, url=args.listing_url):
        print(tb.version)


def cmd_remove(args: argparse.Namespace, installer: DpkgInstaller) -> None:
    installer.remove()
    print(f"✓ Removed {installer.package_name} package")


def action_command(args: argparse.Namespace, install: bool, installer: DpkgInstaller) -> Path:
    """Download a release, build the .deb and optionally install it."""
    platform = resolve_platform(args)
    options = BuildOptions(compression=args.compression, zstd_level=args.zstd_level)

    tbs = catalog.tarballs(platform, include_all=True, url=args.listing_url)
    tb = catalog.select(tbs, args.version)

    if install:
        installed = installer.installed_version()
        if installed is not None and installed == debian_version(tb.version):
            raise AlreadyInstalledError(tb.version)

    print_section(f"BUILDING GO {tb.version} FOR {platform}")
    print(f"Downloading from: {tb.url}")

    output_dir = args.output_dir
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputWriteError(f"Cannot create {output_dir}: {e}") from e
    with catalog.open_url(tb.url) as response:
        deb_path = write_package(response, tb.version, platform, output_dir, options, expected_sha256=tb.sha256)

    print(f"✓ Package ready: {deb_path}")
    print(f"Size: {deb_path.stat().st_size / (1024*1024):.2f} MB")

    if install:
        print_section("INSTALLING")
        try:
            installer.install(deb_path)
        except InstallerExecutionError as e:
            e.package_path = deb_path
            raise
        print(f"✓ Installed {deb_path.name}")

    return deb_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="godeb",
        description="godeb translates stock upstream Go tarballs into deb packages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  godeb list
  godeb download 1.21.0
  godeb install
  godeb remove
        """,
    )
    parser.add_argument("--os", default=None, help="Target OS as Go names it (default: current host)")
    parser.add_argument("--arch", default=None, help="Target GOARCH, e.g. amd64, arm64 (default: current host)")
    parser.add_argument(
        "--listing-url", default=catalog.LISTING_URL, help=f"Release listing URL (default: {catalog.LISTING_URL})"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    list_parser = subparsers.add_parser("list", help="List available Go versions")
    list_parser.add_argument("-a", "--all", action="store_true", help="Include all versions")

    for name, help_text in (
        ("download", "Download the Go package and transform it into a deb package"),
        ("install", "Download the Go package, transform it into a deb package, and install it"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("version", nargs="?", default=None, help="Exact Go version (default: latest)")
        sub.add_argument(
            "--output-dir", type=Path, default=Path("."), help="Directory for the .deb (default: current directory)"
        )
        sub.add_argument(
            "--compression",
            choices=list(COMPRESSION_SUFFIXES),
            default=DEFAULT_COMPRESSION,
            help=f"Compression for the package members (default: {DEFAULT_COMPRESSION})",
        )
        sub.add_argument(
            "--zstd-level", type=int, default=DEFAULT_ZSTD_LEVEL, help=f"Zstd level (default: {DEFAULT_ZSTD_LEVEL})"
        )

    subparsers.add_parser("remove", help="Remove the installed Go package")
    return parser


def main(argv: list[str] | None = None, installer: DpkgInstaller | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    installer = installer or DpkgInstaller()

    if args.command is None:
        parser.print_help()
        return 0

    try:
        if args.command == "list":
            cmd_list(args)
        elif args.command == "remove":
            cmd_remove(args, installer)
        else:
            action_command(args, install=args.command == "install", installer=installer)

    except KeyboardInterrupt:
        print("\n❌ Interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED

    except InstallerExecutionError as e:
        print(f"\n✗ Installation failed: {e}", file=sys.stderr)
        if e.package_path is not None:
            print(f"The built package was left in place: {e.package_path}", file=sys.stderr)
        return EXIT_INSTALL_FAILED

    except GodebError as e:
        print(f"\n✗ Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    return 0
