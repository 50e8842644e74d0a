"""Tests for apply_versions.versions."""

from __future__ import annotations

import pytest

from apply_versions.versions import (
    bump_version,
    is_valid_version,
    latest_version,
    parse_version,
)


class TestIsValidVersion:
    """Tests for is_valid_version()."""

    @pytest.mark.parametrize(
        "version", ["0.0.0", "1.2.3", "10.20.30", "1.0.0-beta.1", "1.0.0+build.5", "1.0.0-rc.1+sha.abc"]
    )
    def test_accepts_semver(self, version: str) -> None:
        assert is_valid_version(version)

    @pytest.mark.parametrize("version", ["", "1", "1.2", "v1.2.3", "1.2.3.4", "latest"])
    def test_rejects_other_strings(self, version: str) -> None:
        assert not is_valid_version(version)


class TestParseVersion:
    """Tests for parse_version()."""

    def test_full_semver(self) -> None:
        v = parse_version("1.2.3")
        assert (v.major, v.minor, v.patch) == (1, 2, 3)

    def test_prerelease_is_kept(self) -> None:
        assert parse_version("2.0.0-rc.1").prerelease == "rc.1"

    def test_two_part_version(self) -> None:
        v = parse_version("1.2")
        assert (v.major, v.minor, v.patch) == (1, 2, 0)

    def test_single_part_version(self) -> None:
        v = parse_version("5")
        assert (v.major, v.minor, v.patch) == (5, 0, 0)


class TestBumpVersion:
    """Tests for bump_version()."""

    def test_major_resets_lower_parts(self) -> None:
        assert bump_version("1.2.3", "major") == "2.0.0"

    def test_minor_resets_patch(self) -> None:
        assert bump_version("1.2.3", "minor") == "1.3.0"

    def test_patch(self) -> None:
        assert bump_version("0.9.9", "patch") == "0.9.10"

    def test_pads_short_version(self) -> None:
        assert bump_version("1.2", "patch") == "1.2.1"

    def test_drops_prerelease(self) -> None:
        assert bump_version("1.2.3-beta.1", "minor") == "1.3.0"

    def test_rejects_unknown_part(self) -> None:
        with pytest.raises(ValueError, match="Invalid bump type"):
            bump_version("1.2.3", "huge")


class TestLatestVersion:
    """Tests for latest_version()."""

    def test_semver_precedence(self) -> None:
        assert latest_version(["1.9.0", "1.10.0", "1.2.0"]) == "1.10.0"

    def test_release_beats_prerelease(self) -> None:
        assert latest_version(["2.0.0-rc.1", "2.0.0", "1.0.0"]) == "2.0.0"

    def test_ignores_invalid_entries(self) -> None:
        assert latest_version(["nightly", "0.3.0", "v0.4.0"]) == "0.3.0"

    def test_empty_returns_none(self) -> None:
        assert latest_version([]) is None
