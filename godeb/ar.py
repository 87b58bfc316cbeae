"""
Minimal Unix ``ar`` archive support, as used by the .deb container.

Layout: the 8-byte global magic, then for every member a 60-byte header
followed by the member data, padded with a newline to an even length.

    name      16 bytes, space padded
    mtime     12 bytes, decimal
    uid        6 bytes, decimal
    gid        6 bytes, decimal
    mode       8 bytes, octal
    size      10 bytes, decimal
    fmag       2 bytes, "`\\n"
"""

from __future__ import annotations

import io
from collections.abc import Iterator
from dataclasses import dataclass
from typing import BinaryIO

MAGIC = b"!<arch>\n"
HEADER_SIZE = 60
HEADER_END = b"`\n"
DEFAULT_MODE = 0o100644
COPY_BUFSIZE = 1024 * 1024


@dataclass(frozen=True)
class ArchiveMember:
    name: str
    size: int
    mode: int = DEFAULT_MODE
    timestamp: int = 0
    uid: int = 0
    gid: int = 0
    payload: bytes = b""


def format_header(name: str, size: int, mode: int = DEFAULT_MODE, timestamp: int = 0, uid: int = 0, gid: int = 0) -> bytes:
    """Build a 60-byte member header. Names longer than 16 bytes are truncated."""
    if size < 0 or size >= 10**10:
        raise ValueError(f"ar member size out of range: {size}")
    header = (
        f"{name[:16]:<16}"
        f"{timestamp:<12d}"
        f"{uid:<6d}"
        f"{gid:<6d}"
        f"{mode:<8o}"
        f"{size:<10d}"
    ).encode("ascii") + HEADER_END
    if len(header) != HEADER_SIZE:
        raise ValueError(f"ar header fields for {name} do not fit in {HEADER_SIZE} bytes")
    return header


class ArWriter:
    """Write ar members to a binary stream in order."""

    def __init__(self, fileobj: BinaryIO):
        self.fileobj = fileobj
        self.fileobj.write(MAGIC)

    def add_bytes(self, name: str, data: bytes, mode: int = DEFAULT_MODE) -> None:
        self.add_stream(name, io.BytesIO(data), len(data), mode=mode)

    def add_stream(self, name: str, stream: BinaryIO, size: int, mode: int = DEFAULT_MODE) -> None:
        """Copy exactly ``size`` bytes from ``stream`` as one member."""
        self.fileobj.write(format_header(name, size, mode=mode))
        remaining = size
        while remaining > 0:
            chunk = stream.read(min(COPY_BUFSIZE, remaining))
            if not chunk:
                raise OSError(f"short read while writing ar member {name}: {remaining} bytes missing")
            self.fileobj.write(chunk)
            remaining -= len(chunk)
        if size % 2:
            self.fileobj.write(b"\n")


def _parse_int(field: bytes, base: int = 10) -> int:
    text = field.decode("ascii").strip()
    return int(text, base) if text else 0


def iter_members(fileobj: BinaryIO) -> Iterator[ArchiveMember]:
    """
    Read every member of an ar archive.

    Member data is loaded into memory, which is fine for inspecting packages
    but not meant for large archives.
    """
    if fileobj.read(len(MAGIC)) != MAGIC:
        raise ValueError("Not an ar archive: bad magic")

    while True:
        header = fileobj.read(HEADER_SIZE)
        if not header:
            return
        if len(header) != HEADER_SIZE or header[58:60] != HEADER_END:
            raise ValueError("Truncated or corrupt ar member header")

        size = _parse_int(header[48:58])
        payload = fileobj.read(size)
        if len(payload) != size:
            raise ValueError("Truncated ar member data")
        if size % 2:
            fileobj.read(1)

        yield ArchiveMember(
            name=header[0:16].decode("ascii").rstrip(" ").rstrip("/"),
            timestamp=_parse_int(header[16:28]),
            uid=_parse_int(header[28:34]),
            gid=_parse_int(header[34:40]),
            mode=_parse_int(header[40:48], 8),
            size=size,
            payload=payload,
        )


def read_members(fileobj: BinaryIO) -> list[ArchiveMember]:
    return list(iter_members(fileobj))
