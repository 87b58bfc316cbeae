"""
Go release version parsing and ordering.

Upstream Go releases are named like ``1.21.0``, ``1.21rc2`` or ``1.1beta1``.
Plain string comparison orders these wrongly (``1.10`` < ``1.9``, ``1.2rc1`` >
``1.2``), so versions are parsed into a tagged structure and compared on that.
"""

from __future__ import annotations

import enum
import functools
import re
from dataclasses import dataclass


class PreRelease(enum.IntEnum):
    """Pre-release tiers. Higher value ranks newer."""

    ALPHA = 1
    BETA = 2
    RC = 3


_TAGS = {"alpha": PreRelease.ALPHA, "beta": PreRelease.BETA, "rc": PreRelease.RC}

_VERSION_RE = re.compile(r"^(?P<segments>\d+(?:\.\d+)*)(?:(?P<tag>rc|beta|alpha)(?P<number>\d+)?)?$")


@dataclass(frozen=True, eq=False)
class ReleaseVersion:
    segments: tuple[int, ...]
    pre_release_kind: PreRelease | None = None
    pre_release_number: int = 0

    @property
    def is_final(self) -> bool:
        return self.pre_release_kind is None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReleaseVersion):
            return NotImplemented
        return compare(self, other) == 0

    def __lt__(self, other: ReleaseVersion) -> bool:
        return compare(self, other) < 0

    def __le__(self, other: ReleaseVersion) -> bool:
        return compare(self, other) <= 0

    def __gt__(self, other: ReleaseVersion) -> bool:
        return compare(self, other) > 0

    def __ge__(self, other: ReleaseVersion) -> bool:
        return compare(self, other) >= 0

    def __hash__(self) -> int:
        segments = list(self.segments)
        while len(segments) > 1 and segments[-1] == 0:
            segments.pop()
        number = self.pre_release_number if self.pre_release_kind is not None else 0
        return hash((tuple(segments), self.pre_release_kind, number))


# Unparseable versions sort below everything real.
LOWEST = ReleaseVersion(segments=(0,), pre_release_kind=PreRelease.ALPHA, pre_release_number=0)


def parse(version: str) -> ReleaseVersion:
    """
    Parse a Go release identifier.

    A leading ``go`` is accepted (the download listing uses ``go1.21.0``). A
    pre-release tag without a number counts as number 1. Malformed input
    returns LOWEST instead of raising.
    """
    text = version.strip()
    if text.startswith("go"):
        text = text[2:]

    match = _VERSION_RE.match(text)
    if match is None:
        return LOWEST

    segments = tuple(int(part) for part in match.group("segments").split("."))
    tag = match.group("tag")
    if tag is None:
        return ReleaseVersion(segments=segments)

    number = match.group("number")
    return ReleaseVersion(
        segments=segments,
        pre_release_kind=_TAGS[tag],
        pre_release_number=int(number) if number is not None else 1,
    )


def compare(a: ReleaseVersion, b: ReleaseVersion) -> int:
    """Return -1, 0 or 1 as ``a`` is older than, equal to, or newer than ``b``."""
    width = max(len(a.segments), len(b.segments))
    left = a.segments + (0,) * (width - len(a.segments))
    right = b.segments + (0,) * (width - len(b.segments))
    if left != right:
        return -1 if left < right else 1

    if a.pre_release_kind is None or b.pre_release_kind is None:
        if a.pre_release_kind is b.pre_release_kind:
            return 0
        # A final release outranks any pre-release of the same numbers.
        return 1 if a.pre_release_kind is None else -1

    if a.pre_release_kind != b.pre_release_kind:
        return -1 if a.pre_release_kind < b.pre_release_kind else 1

    if a.pre_release_number != b.pre_release_number:
        return -1 if a.pre_release_number < b.pre_release_number else 1

    return 0


def compare_strings(a: str, b: str) -> int:
    return compare(parse(a), parse(b))


sort_key = functools.cmp_to_key(compare_strings)


def debian_version(version: str) -> str:
    """
    Convert an upstream Go version into a Debian package version.

    dpkg sorts ``~`` before anything, so ``1.2~rc1`` is older than ``1.2`` just
    like upstream. The ``-godeb1`` revision marks packages built by this tool.
    """
    text = version.strip()
    if text.startswith("go"):
        text = text[2:]
    for tag in ("rc", "beta", "alpha"):
        index = text.find(tag)
        if index > 0:
            text = f"{text[:index]}~{text[index:]}"
            break
    return f"{text}-godeb1"
