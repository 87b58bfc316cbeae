"""
Go release catalog.

Fetches the JSON listing published at go.dev/dl and turns it into Tarball
entries for one platform, newest first.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, BinaryIO

from . import version as versions
from .errors import CatalogDecodeError, CatalogFetchError, VersionNotFoundError
from .platforms import Platform

# REST API described in https://github.com/golang/website/blob/master/internal/dl/dl.go
LISTING_URL = "https://go.dev/dl/?mode=json"
DOWNLOAD_BASE_URL = "https://dl.google.com/go/"

USER_AGENT = "godeb (+https://go.dev/dl/)"
TIMEOUT_SECONDS = 60


@dataclass(frozen=True)
class Tarball:
    version: str
    url: str
    filename: str = ""
    sha256: str | None = None
    stable: bool = True


def open_url(url: str) -> BinaryIO:
    """
    Open a URL for streaming reads.

    Raises:
        CatalogFetchError: On network errors or any status other than 200.
    """
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        response = urllib.request.urlopen(request, timeout=TIMEOUT_SECONDS)
    except urllib.error.HTTPError as e:
        raise CatalogFetchError(url, f"got status code {e.code}") from e
    except (urllib.error.URLError, OSError) as e:
        raise CatalogFetchError(url, str(e)) from e

    status = getattr(response, "status", 200)
    if status != 200:
        response.close()
        raise CatalogFetchError(url, f"got status code {status}")
    return response


def fetch_listing(include_all: bool = False, url: str = LISTING_URL) -> list[dict[str, Any]]:
    """Download and decode the raw release listing."""
    if include_all:
        url += ("&" if urllib.parse.urlsplit(url).query else "?") + "include=all"

    with open_url(url) as response:
        try:
            payload = response.read()
        except OSError as e:
            raise CatalogFetchError(url, str(e)) from e

    try:
        listing = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CatalogDecodeError(f"Invalid release listing from {url}: {e}") from e

    if not isinstance(listing, list):
        raise CatalogDecodeError(f"Invalid release listing from {url}: expected a list of releases")
    return listing


def tarballs_from_listing(
    listing: Iterable[Any], platform: Platform, base_url: str = DOWNLOAD_BASE_URL
) -> list[Tarball]:
    """Pick the archive for ``platform`` out of every release, newest first."""
    found = []
    for release in listing:
        if not isinstance(release, dict) or not isinstance(release.get("files"), list):
            raise CatalogDecodeError(f"Invalid release entry in listing: {release!r}")

        for entry in release["files"]:
            if not isinstance(entry, dict):
                raise CatalogDecodeError(f"Invalid file entry in listing: {entry!r}")
            if entry.get("os") != platform.os or entry.get("arch") != platform.download_arch:
                continue
            if entry.get("kind", "archive") != "archive":
                continue

            filename = entry.get("filename")
            file_version = entry.get("version") or release.get("version")
            if not isinstance(filename, str) or not isinstance(file_version, str):
                raise CatalogDecodeError(f"Missing filename or version in listing entry: {entry!r}")

            found.append(
                Tarball(
                    version=file_version.removeprefix("go"),
                    url=base_url + filename,
                    filename=filename,
                    sha256=entry.get("sha256") or None,
                    stable=bool(release.get("stable", True)),
                )
            )
            break

    return sort_tarballs(found)


def tarballs(platform: Platform, include_all: bool = False, url: str = LISTING_URL) -> list[Tarball]:
    """Return the releases available for ``platform``, newest first."""
    return tarballs_from_listing(fetch_listing(include_all, url=url), platform)


def sort_tarballs(entries: Iterable[Tarball]) -> list[Tarball]:
    """Sort newest first. The sort is stable, so equal versions keep their order."""
    return sorted(entries, key=lambda tb: versions.sort_key(tb.version), reverse=True)


def select(catalog: Sequence[Tarball], requested: str | None = None) -> Tarball:
    """
    Pick a release from the catalog.

    Args:
        catalog: Entries for the current platform, in any order
        requested: Exact version string, or None for the newest release

    Raises:
        VersionNotFoundError: If ``requested`` is not in the catalog, or the
            catalog is empty.
    """
    if requested is None:
        if not catalog:
            raise VersionNotFoundError("latest")
        return sort_tarballs(catalog)[0]

    for tb in catalog:
        if tb.version == requested:
            return tb
    raise VersionNotFoundError(requested)
