"""Tests for the release listing and version selection."""

import io
import json
import urllib.error

import pytest

from godeb import catalog
from godeb.catalog import Tarball, select, sort_tarballs, tarballs_from_listing
from godeb.errors import CatalogDecodeError, CatalogFetchError, VersionNotFoundError
from godeb.platforms import Platform


def release(version: str, *files: dict, stable: bool = True) -> dict:
    return {"version": f"go{version}", "stable": stable, "files": list(files)}


def archive(version: str, os: str = "linux", arch: str = "amd64", kind: str = "archive") -> dict:
    return {
        "filename": f"go{version}.{os}-{arch}.tar.gz",
        "os": os,
        "arch": arch,
        "version": f"go{version}",
        "sha256": "ab" * 32,
        "size": 1234,
        "kind": kind,
    }


LISTING = [
    release("1.21.1", archive("1.21.1", kind="source"), archive("1.21.1", os="darwin"), archive("1.21.1")),
    release("1.22rc1", archive("1.22rc1"), stable=False),
    release("1.21.0", archive("1.21.0"), archive("1.21.0", arch="armv6l")),
    release("1.21rc2", archive("1.21rc2"), stable=False),
    release("1.9", archive("1.9")),
]


class FakeResponse(io.BytesIO):
    def __init__(self, payload: bytes, status: int = 200):
        super().__init__(payload)
        self.status = status


@pytest.fixture
def fake_urlopen(monkeypatch):
    requests = []

    def install(payload: bytes, status: int = 200):
        def urlopen(request, timeout=None):
            requests.append(request.full_url)
            return FakeResponse(payload, status)

        monkeypatch.setattr(catalog.urllib.request, "urlopen", urlopen)
        return requests

    return install


class TestTarballsFromListing:
    def test_filters_platform_and_sorts_newest_first(self, linux_amd64):
        tbs = tarballs_from_listing(LISTING, linux_amd64)
        assert [tb.version for tb in tbs] == ["1.22rc1", "1.21.1", "1.21.0", "1.21rc2", "1.9"]

    def test_urls_and_checksums(self, linux_amd64):
        tb = tarballs_from_listing(LISTING, linux_amd64)[1]
        assert tb.url == "https://dl.google.com/go/go1.21.1.linux-amd64.tar.gz"
        assert tb.filename == "go1.21.1.linux-amd64.tar.gz"
        assert tb.sha256 == "ab" * 32
        assert tb.stable

    def test_arm_uses_armv6l_downloads(self):
        tbs = tarballs_from_listing(LISTING, Platform(os="linux", arch="arm"))
        assert [tb.version for tb in tbs] == ["1.21.0"]

    def test_skips_non_archive_files(self):
        tbs = tarballs_from_listing([release("1.21.1", archive("1.21.1", kind="source"))], Platform("linux", "amd64"))
        assert tbs == []

    def test_malformed_release(self, linux_amd64):
        with pytest.raises(CatalogDecodeError):
            tarballs_from_listing([{"version": "go1.2"}], linux_amd64)

    def test_malformed_file(self, linux_amd64):
        broken = {"os": "linux", "arch": "amd64"}
        with pytest.raises(CatalogDecodeError):
            tarballs_from_listing([release("1.2", broken)], linux_amd64)


class TestFetch:
    def test_tarballs(self, fake_urlopen, linux_amd64):
        requests = fake_urlopen(json.dumps(LISTING).encode())
        tbs = catalog.tarballs(linux_amd64, include_all=True)
        assert tbs[0].version == "1.22rc1"
        assert requests == [catalog.LISTING_URL + "&include=all"]

    def test_include_all_on_url_without_query(self, fake_urlopen):
        requests = fake_urlopen(b"[]")
        catalog.fetch_listing(include_all=True, url="https://mirror.example/go/releases.json")
        assert requests == ["https://mirror.example/go/releases.json?include=all"]

    def test_invalid_json(self, fake_urlopen, linux_amd64):
        fake_urlopen(b"<html>not json</html>")
        with pytest.raises(CatalogDecodeError):
            catalog.tarballs(linux_amd64)

    def test_not_a_list(self, fake_urlopen, linux_amd64):
        fake_urlopen(b'{"version": "go1.2"}')
        with pytest.raises(CatalogDecodeError):
            catalog.tarballs(linux_amd64)

    def test_non_200_status(self, fake_urlopen):
        fake_urlopen(b"", status=204)
        with pytest.raises(CatalogFetchError, match="204"):
            catalog.open_url("https://example.invalid/listing")

    def test_http_error(self, monkeypatch):
        def urlopen(request, timeout=None):
            raise urllib.error.HTTPError(request.full_url, 404, "Not Found", {}, None)

        monkeypatch.setattr(catalog.urllib.request, "urlopen", urlopen)
        with pytest.raises(CatalogFetchError, match="404") as excinfo:
            catalog.open_url("https://example.invalid/go.tar.gz")
        assert excinfo.value.url == "https://example.invalid/go.tar.gz"

    def test_network_error(self, monkeypatch):
        def urlopen(request, timeout=None):
            raise urllib.error.URLError("connection refused")

        monkeypatch.setattr(catalog.urllib.request, "urlopen", urlopen)
        with pytest.raises(CatalogFetchError, match="connection refused"):
            catalog.open_url("https://example.invalid/")


class TestSelect:
    CATALOG = [
        Tarball(version="1.1rc1", url="u/1.1rc1"),
        Tarball(version="1.1.2", url="u/1.1.2"),
        Tarball(version="1.1", url="u/1.1"),
        Tarball(version="1.0.3", url="u/1.0.3"),
    ]

    def test_exact_match(self):
        assert select(self.CATALOG, "1.1").url == "u/1.1"

    def test_latest_when_not_requested(self):
        assert select(self.CATALOG).version == "1.1.2"

    def test_not_found(self):
        with pytest.raises(VersionNotFoundError) as excinfo:
            select(self.CATALOG, "1.1.0")
        assert excinfo.value.version == "1.1.0"

    def test_empty_catalog(self):
        with pytest.raises(VersionNotFoundError):
            select([])

    def test_does_not_reorder_input(self):
        entries = list(self.CATALOG)
        select(entries)
        assert entries == self.CATALOG

    def test_sort_tarballs(self):
        assert [tb.version for tb in sort_tarballs(self.CATALOG)] == ["1.1.2", "1.1", "1.1rc1", "1.0.3"]
