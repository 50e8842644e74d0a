"""Version parsing and bumping utilities.

Handles validation of version strings, conversion to semver objects (with
special handling for incomplete versions such as "1.0"), bumping, and
ordering of versions recovered from git tags.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import semver

VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+(-[\w.]+)?(\+[\w.]+)?$")

BUMP_PARTS = ("major", "minor", "patch")


def is_valid_version(version_str: str) -> bool:
    """Check that a version is major.minor.patch[-pre][+build]."""
    return bool(VERSION_PATTERN.match(version_str))


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Full semantic versions (including prerelease/build) are parsed as-is.
    Incomplete versions are padded with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    """
    try:
        return semver.Version.parse(version_str)
    except ValueError:
        pass
    parts = version_str.split(".")
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append("0")
    return semver.Version.parse(".".join(parts[:3]))


def bump_version(version_str: str, part: str) -> str:
    """Bump the major, minor or patch component of a version.

    Lower components reset to zero and prerelease/build metadata is dropped.

    Examples:
        bump_version("1.2.3", "major") → "2.0.0"
        bump_version("1.2.3", "minor") → "1.3.0"

    Raises:
        ValueError: If part is not one of major, minor, patch.
    """
    if part not in BUMP_PARTS:
        raise ValueError(
            f"Invalid bump type: {part}. Valid types: {', '.join(BUMP_PARTS)}"
        )
    version = parse_version(version_str)
    return str(getattr(version, f"bump_{part}")())


def latest_version(versions: Iterable[str]) -> str | None:
    """Return the highest version by semver precedence, ignoring junk."""
    parsed = [
        (semver.Version.parse(v), v) for v in versions if semver.Version.is_valid(v)
    ]
    if not parsed:
        return None
    return max(parsed, key=lambda item: item[0])[1]
