"""Bootloader version numbers as recorded in the serialized configuration."""

from __future__ import annotations

import re
from dataclasses import dataclass

BOOTLOADER_VERSION = "0.11.10"

_U16_MAX = 0xFFFF

_VERSION_RE = re.compile(
    r"(?P<major>\d+)\.(?P<minor>\d+)\.(?P<patch>\d+)"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?"
)


@dataclass(frozen=True)
class VersionInfo:
    """Major, minor and patch numbers plus a pre-release flag.

    Each number must fit in an unsigned 16-bit integer, because that is how
    the configuration format stores it.
    """

    major: int
    minor: int
    patch: int
    pre_release: bool = False

    def __post_init__(self) -> None:
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if not 0 <= value <= _U16_MAX:
                raise ValueError(f"{name} version {value} does not fit in 16 bits")


def parse_version(version: str) -> VersionInfo:
    """Parse a semantic version string such as ``"0.11.10"`` or ``"1.2.3-alpha"``.

    Build metadata after ``+`` is accepted and ignored. The pre-release flag is
    set when a ``-suffix`` is present.
    """
    match = _VERSION_RE.fullmatch(version.strip())
    if match is None:
        raise ValueError(f"invalid version string: {version!r}")
    return VersionInfo(
        major=int(match["major"]),
        minor=int(match["minor"]),
        patch=int(match["patch"]),
        pre_release=match["pre"] is not None,
    )


CURRENT_VERSION = parse_version(BOOTLOADER_VERSION)