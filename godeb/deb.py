"""
Translate an upstream Go tarball into a Debian binary package.

The tarball is streamed: entries are read one at a time, re-rooted under
/usr/local/go, and written into the compressed data member. Nothing larger
than a copy buffer is held in memory; the data member is spooled to a
temporary file because the control member, which depends on it, comes first
in the .deb container.

Container layout (an ar archive):
    debian-binary        "2.0\\n"
    control.tar.<ext>    ./control, ./md5sums
    data.tar.<ext>       the re-rooted tree
"""

from __future__ import annotations

import bz2
import gzip
import hashlib
import http.client
import io
import lzma
import math
import os
import posixpath
import tarfile
import tempfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

import zstandard as zstd

from .ar import ArWriter
from .errors import OutputWriteError, SourceDecodeError
from .platforms import Platform, deb_architecture
from .version import debian_version

# ============================================================================
# Configuration
# ============================================================================

PACKAGE_NAME = "go"
INSTALL_ROOT = "usr/local/go"
BIN_LINK_DIR = "usr/bin"
MAINTAINER = "godeb <godeb@localhost>"
HOMEPAGE = "https://go.dev"
DESCRIPTION = """Go programming language compiler, linker, compiled stdlib
The Go programming language is an open source project to make programmers
more productive. Go is expressive, concise, clean, and efficient.

This package was built by godeb from the upstream binary distribution."""

FORMAT_VERSION = b"2.0\n"

COMPRESSION_SUFFIXES = {
    "gzip": ".gz",
    "xz": ".xz",
    "zstd": ".zst",
}
DEFAULT_COMPRESSION = "gzip"
DEFAULT_ZSTD_LEVEL = 19

# Data members larger than this spill from memory to a temporary file.
SPOOL_MAX_SIZE = 8 * 1024 * 1024
CHUNK_SIZE = 1024 * 1024

_SOURCE_MAGIC = (
    (b"\x1f\x8b", "gzip"),
    (b"\xfd7zXZ\x00", "xz"),
    (b"BZh", "bzip2"),
    (b"\x28\xb5\x2f\xfd", "zstd"),
)

# Errors a decompressor or the underlying download can raise mid-stream.
_SOURCE_ERRORS = (OSError, EOFError, zlib.error, lzma.LZMAError, zstd.ZstdError, http.client.HTTPException)


@dataclass
class BuildOptions:
    package_name: str = PACKAGE_NAME
    install_root: str = INSTALL_ROOT
    maintainer: str = MAINTAINER
    description: str = DESCRIPTION
    section: str = "devel"
    priority: str = "optional"
    homepage: str = HOMEPAGE
    provides: tuple[str, ...] = ("go",)
    conflicts: tuple[str, ...] = ("golang-go",)
    replaces: tuple[str, ...] = ()
    compression: str = DEFAULT_COMPRESSION
    zstd_level: int = DEFAULT_ZSTD_LEVEL
    link_binaries: bool = True


@dataclass
class ControlMetadata:
    """Fields of the control file plus the md5sums of every installed file."""

    package: str
    version: str
    architecture: str
    installed_size: int
    maintainer: str
    description: str
    section: str = "devel"
    priority: str = "optional"
    homepage: str = ""
    provides: tuple[str, ...] = ()
    conflicts: tuple[str, ...] = ()
    replaces: tuple[str, ...] = ()
    md5sums: list[tuple[str, str]] = field(default_factory=list)

    def control_text(self) -> str:
        fields = [
            ("Package", self.package),
            ("Version", self.version),
            ("Architecture", self.architecture),
            ("Maintainer", self.maintainer),
            ("Installed-Size", str(self.installed_size)),
            ("Section", self.section),
            ("Priority", self.priority),
            ("Homepage", self.homepage),
            ("Provides", ", ".join(self.provides)),
            ("Conflicts", ", ".join(self.conflicts)),
            ("Replaces", ", ".join(self.replaces)),
        ]
        lines = [f"{name}: {value}" for name, value in fields if value]

        synopsis, _, body = self.description.strip().partition("\n")
        lines.append(f"Description: {synopsis}")
        for line in body.splitlines():
            lines.append(f" {line}" if line.strip() else " .")
        return "\n".join(lines) + "\n"

    def md5sums_text(self) -> str:
        return "".join(f"{digest}  {path}\n" for path, digest in self.md5sums)


def package_filename(version: str, platform: Platform, options: BuildOptions | None = None) -> str:
    """Return ``<package>_<debversion>_<arch>.deb``. Raises for unmapped architectures."""
    options = options or BuildOptions()
    return f"{options.package_name}_{debian_version(version)}_{deb_architecture(platform.arch)}.deb"


# ============================================================================
# Source stream handling
# ============================================================================


class _HashingReader:
    """Pass reads through while computing a digest of everything read."""

    def __init__(self, fileobj: BinaryIO, algorithm: str = "sha256"):
        self.fileobj = fileobj
        self.hash = hashlib.new(algorithm)

    def read(self, size: int = -1) -> bytes:
        data = self.fileobj.read(size)
        self.hash.update(data)
        return data

    def hexdigest(self) -> str:
        return self.hash.hexdigest()


class _PrefixedReader:
    """Replay bytes already consumed for format sniffing before the rest of the stream."""

    def __init__(self, prefix: bytes, fileobj: BinaryIO | _HashingReader):
        self.prefix = prefix
        self.fileobj = fileobj

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            data = self.prefix + self.fileobj.read()
            self.prefix = b""
            return data
        if self.prefix:
            data = self.prefix[:size]
            self.prefix = self.prefix[size:]
            return data
        return self.fileobj.read(size)


class _SourceReader:
    """
    Decompressed view of the source archive.

    Any failure while reading (bad compression, truncation, a dropped
    connection) surfaces as SourceDecodeError, so it cannot be confused with
    errors writing the package.
    """

    def __init__(self, source: BinaryIO):
        self.raw = _HashingReader(source)
        try:
            head = self.raw.read(6)
        except _SOURCE_ERRORS as e:
            raise SourceDecodeError(f"Cannot read source archive: {e}") from e

        self.compression = "tar"
        for magic, name in _SOURCE_MAGIC:
            if head.startswith(magic):
                self.compression = name
                break

        stream = _PrefixedReader(head, self.raw)
        if self.compression == "gzip":
            self.stream = gzip.GzipFile(filename="", mode="rb", fileobj=stream)
        elif self.compression == "xz":
            self.stream = lzma.LZMAFile(stream, "rb")
        elif self.compression == "bzip2":
            self.stream = bz2.BZ2File(stream, "rb")
        elif self.compression == "zstd":
            self.stream = zstd.ZstdDecompressor().stream_reader(stream, read_across_frames=True, closefd=False)
        else:
            self.stream = stream

    def read(self, size: int = -1) -> bytes:
        try:
            return self.stream.read(size)
        except _SOURCE_ERRORS as e:
            raise SourceDecodeError(f"Corrupt {self.compression} source archive: {e}") from e

    def finish(self, expected_sha256: str | None = None) -> None:
        """Consume the rest of the stream so trailers and checksums get verified."""
        while self.read(CHUNK_SIZE):
            pass
        try:
            while self.raw.read(CHUNK_SIZE):
                pass
        except _SOURCE_ERRORS as e:
            raise SourceDecodeError(f"Cannot read source archive: {e}") from e

        if expected_sha256 is not None:
            actual = self.raw.hexdigest()
            if actual.lower() != expected_sha256.lower():
                raise SourceDecodeError(
                    f"Checksum mismatch for source archive!\n" f"Expected: {expected_sha256}\n" f"Actual:   {actual}"
                )


# ============================================================================
# Compressed tar members
# ============================================================================


def _open_compressor(fileobj: BinaryIO, compression: str, zstd_level: int = DEFAULT_ZSTD_LEVEL):
    """Return a writable stream that compresses into ``fileobj`` without closing it."""
    if compression == "gzip":
        # mtime=0 keeps the gzip header reproducible
        return gzip.GzipFile(filename="", mode="wb", fileobj=fileobj, mtime=0)
    if compression == "xz":
        return lzma.LZMAFile(fileobj, "wb", format=lzma.FORMAT_XZ, check=lzma.CHECK_CRC64)
    if compression == "zstd":
        cctx = zstd.ZstdCompressor(level=zstd_level, threads=-1)
        return cctx.stream_writer(fileobj, closefd=False)
    raise ValueError(f"Unknown compression: {compression} (choose from {', '.join(COMPRESSION_SUFFIXES)})")


def _dir_info(name: str, mode: int = 0o755, mtime: int = 0) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.type = tarfile.DIRTYPE
    info.mode = mode
    info.mtime = mtime
    _force_root_owner(info)
    return info


def _force_root_owner(info: tarfile.TarInfo) -> None:
    info.uid = 0
    info.gid = 0
    info.uname = "root"
    info.gname = "root"


def _leading_dirs(path: str) -> list[str]:
    """``usr/local/go`` -> ``./``, ``./usr/``, ``./usr/local/``, ``./usr/local/go/``"""
    dirs = ["./"]
    current = "."
    for part in path.strip("/").split("/"):
        current = f"{current}/{part}"
        dirs.append(current + "/")
    return dirs


def _control_archive(metadata: ControlMetadata, compression: str, zstd_level: int) -> bytes:
    buffer = io.BytesIO()
    compressor = _open_compressor(buffer, compression, zstd_level)
    with tarfile.open(fileobj=compressor, mode="w|", format=tarfile.GNU_FORMAT) as tar:
        tar.addfile(_dir_info("./"))
        for name, text in (("./control", metadata.control_text()), ("./md5sums", metadata.md5sums_text())):
            data = text.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            info.mtime = 0
            _force_root_owner(info)
            tar.addfile(info, io.BytesIO(data))
    compressor.close()
    return buffer.getvalue()


# ============================================================================
# Payload transcoding
# ============================================================================


@dataclass
class _Payload:
    installed_bytes: int = 0
    md5sums: list[tuple[str, str]] = field(default_factory=list)
    binaries: list[str] = field(default_factory=list)


class _Rerooter:
    """Map source entry names onto the install root, checking they are safe."""

    def __init__(self, install_root: str):
        self.install_root = install_root.strip("/")
        self.top_level: str | None = None

    def relative(self, name: str) -> list[str]:
        """Return the path components below the tarball's top-level directory."""
        if name.startswith("/"):
            raise SourceDecodeError(f"Invalid entry name in source archive (absolute path): {name}")
        parts = [part for part in name.split("/") if part not in ("", ".")]
        if not parts:
            raise SourceDecodeError(f"Invalid entry name in source archive: {name!r}")
        if ".." in parts:
            raise SourceDecodeError(f"Invalid entry name in source archive (parent reference): {name}")

        if self.top_level is None:
            self.top_level = parts[0]
        elif parts[0] != self.top_level:
            raise SourceDecodeError(
                f"Source archive has more than one top-level directory: {self.top_level}/ and {parts[0]}/"
            )
        return parts[1:]

    def target(self, rest: list[str]) -> str:
        """Package path without the leading ``./``."""
        return "/".join([self.install_root, *rest])


def _transcode_entries(src: tarfile.TarFile, out: tarfile.TarFile, rerooter: _Rerooter) -> _Payload:
    payload = _Payload()
    digests: dict[str, str] = {}

    for member in src:
        rest = rerooter.relative(member.name)
        if not rest:
            # the top-level directory itself; the install root is already in place
            continue
        target = rerooter.target(rest)

        info = tarfile.TarInfo(f"./{target}")
        info.mode = member.mode
        info.mtime = member.mtime
        _force_root_owner(info)

        if member.isdir():
            info.type = tarfile.DIRTYPE
            out.addfile(info)

        elif member.issym():
            info.type = tarfile.SYMTYPE
            info.linkname = member.linkname
            out.addfile(info)

        elif member.islnk():
            link_target = rerooter.target(rerooter.relative(member.linkname))
            if link_target not in digests:
                raise SourceDecodeError(f"Hard link {member.name} points at unknown file {member.linkname}")
            info.type = tarfile.LNKTYPE
            info.linkname = f"./{link_target}"
            out.addfile(info)
            payload.md5sums.append((target, digests[link_target]))

        elif member.isreg():
            info.type = tarfile.REGTYPE
            info.size = member.size
            fileobj = src.extractfile(member)
            hashing = _HashingReader(fileobj, "md5")
            out.addfile(info, hashing)
            digests[target] = hashing.hexdigest()
            payload.md5sums.append((target, digests[target]))
            payload.installed_bytes += member.size
            if len(rest) == 2 and rest[0] == "bin" and member.mode & 0o111:
                payload.binaries.append(rest[1])

        else:
            raise SourceDecodeError(f"Unsupported entry type in source archive: {member.name}")

    return payload


def _check_end_of_archive(src: tarfile.TarFile) -> None:
    """
    Make sure iteration stopped on the end-of-archive marker.

    In stream mode tarfile ends iteration quietly when a later header is cut
    short or cannot be parsed. Only a full zero block leaves the stream
    exactly one block past the last header offset, and everything after that
    block must be zero padding.
    """
    stream = src.fileobj
    if stream.tell() != src.offset + tarfile.BLOCKSIZE:
        raise SourceDecodeError(f"Source archive is truncated at offset {src.offset}")

    while True:
        chunk = stream.read(CHUNK_SIZE)
        if not chunk:
            break
        if chunk.strip(b"\0"):
            raise SourceDecodeError(f"Corrupt source archive: unreadable entry header at offset {src.offset}")


def _write_payload(
    source: BinaryIO,
    fileobj: BinaryIO,
    options: BuildOptions,
    expected_sha256: str | None = None,
) -> _Payload:
    reader = _SourceReader(source)
    rerooter = _Rerooter(options.install_root)
    compressor = _open_compressor(fileobj, options.compression, options.zstd_level)

    with tarfile.open(fileobj=compressor, mode="w|", format=tarfile.GNU_FORMAT) as out:
        emitted = set()
        for name in _leading_dirs(rerooter.install_root):
            out.addfile(_dir_info(name))
            emitted.add(name)

        try:
            with tarfile.open(fileobj=reader, mode="r|") as src:
                payload = _transcode_entries(src, out, rerooter)
                _check_end_of_archive(src)
        except tarfile.TarError as e:
            raise SourceDecodeError(f"Corrupt source archive: {e}") from e

        if rerooter.top_level is None:
            raise SourceDecodeError("Source archive is empty")
        reader.finish(expected_sha256)

        if options.link_binaries and payload.binaries:
            for name in _leading_dirs(BIN_LINK_DIR):
                if name not in emitted:
                    out.addfile(_dir_info(name))
            for binary in sorted(payload.binaries):
                link = tarfile.TarInfo(f"./{BIN_LINK_DIR}/{binary}")
                link.type = tarfile.SYMTYPE
                link.mode = 0o777
                link.linkname = posixpath.relpath(f"/{rerooter.install_root}/bin/{binary}", f"/{BIN_LINK_DIR}")
                _force_root_owner(link)
                out.addfile(link)

    compressor.close()
    return payload


# ============================================================================
# Container assembly
# ============================================================================


def build_package(
    source: BinaryIO,
    output: BinaryIO,
    version: str,
    platform: Platform,
    options: BuildOptions | None = None,
    expected_sha256: str | None = None,
) -> ControlMetadata:
    """
    Transcode a Go tarball into a .deb written to ``output``.

    Args:
        source: Readable stream of the upstream archive (compressed or plain tar)
        output: Writable binary stream for the package
        version: Upstream Go version, e.g. "1.21.0"
        platform: Target platform; only the architecture matters here
        options: Package fields and compression settings
        expected_sha256: If given, the raw source bytes must hash to this

    Returns:
        The control metadata written into the package

    Raises:
        UnsupportedArchitectureError: Before any stream is touched
        SourceDecodeError: Corrupt, truncated or unsafe source archive
        OutputWriteError: Writing the package or its scratch data failed
    """
    options = options or BuildOptions()
    architecture = deb_architecture(platform.arch)
    if options.compression not in COMPRESSION_SUFFIXES:
        raise ValueError(f"Unknown compression: {options.compression}")
    suffix = COMPRESSION_SUFFIXES[options.compression]

    try:
        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as data_spool:
            payload = _write_payload(source, data_spool, options, expected_sha256)

            metadata = ControlMetadata(
                package=options.package_name,
                version=debian_version(version),
                architecture=architecture,
                # round up: dpkg should never see less space than the files need
                installed_size=math.ceil(payload.installed_bytes / 1024),
                maintainer=options.maintainer,
                description=options.description,
                section=options.section,
                priority=options.priority,
                homepage=options.homepage,
                provides=options.provides,
                conflicts=options.conflicts,
                replaces=options.replaces,
                md5sums=payload.md5sums,
            )
            control = _control_archive(metadata, options.compression, options.zstd_level)

            data_size = data_spool.tell()
            data_spool.seek(0)

            ar = ArWriter(output)
            ar.add_bytes("debian-binary", FORMAT_VERSION)
            ar.add_bytes(f"control.tar{suffix}", control)
            ar.add_stream(f"data.tar{suffix}", data_spool, data_size)
            output.flush()
    except OSError as e:
        raise OutputWriteError(f"Cannot write package: {e}") from e

    return metadata


def write_package(
    source: BinaryIO,
    version: str,
    platform: Platform,
    directory: Path | str = ".",
    options: BuildOptions | None = None,
    expected_sha256: str | None = None,
) -> Path:
    """
    Build the package into ``directory`` atomically.

    The package is written to a temporary file next to its final name and
    renamed only after it is complete and synced. On any failure, including
    KeyboardInterrupt, the temporary file is removed and nothing appears at
    the final name.

    Returns:
        Path of the finished .deb
    """
    options = options or BuildOptions()
    final_path = Path(directory) / package_filename(version, platform, options)

    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{final_path.name}.", suffix=".inprogress", dir=final_path.parent)
    except OSError as e:
        raise OutputWriteError(f"Cannot create temporary file in {final_path.parent}: {e}") from e
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "wb") as out:
            build_package(source, out, version, platform, options, expected_sha256)
            os.fsync(out.fileno())
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, final_path)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise OutputWriteError(f"Cannot write {final_path}: {e}") from e
    except (KeyboardInterrupt, Exception):
        tmp_path.unlink(missing_ok=True)
        raise

    return final_path
