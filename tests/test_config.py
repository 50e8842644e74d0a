"""Tests for apply_versions.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from apply_versions.config import (
    auto_filter,
    filter_by_path,
    find_config_file,
    load_package_entries,
    packages_for_directory,
    resolve_config_path,
    to_descriptor_entries,
    update_config_version,
)
from apply_versions.errors import ConfigurationError

from conftest import write


def paths(entries: list[dict]) -> list[str]:
    return [e["path"] for e in entries]


class TestFindConfigFile:
    """Tests for find_config_file()."""

    def test_in_start_directory(self, versions_toml: Path) -> None:
        assert find_config_file(versions_toml.parent) == versions_toml.resolve()

    def test_searches_upwards(self, versions_toml: Path) -> None:
        start = versions_toml.parent / "packages" / "service-a"
        assert find_config_file(start) == versions_toml.resolve()

    def test_not_found(self, tmp_path: Path) -> None:
        assert find_config_file(tmp_path) is None


class TestResolveConfigPath:
    """Tests for resolve_config_path()."""

    def test_explicit_option_wins(self, versions_toml: Path, tmp_path: Path) -> None:
        other = write(tmp_path / "elsewhere" / "custom.toml", "")
        assert resolve_config_path(str(other), cwd=versions_toml.parent) == other.resolve()

    def test_upward_search(self, versions_toml: Path) -> None:
        cwd = versions_toml.parent / "packages"
        assert resolve_config_path(None, cwd=cwd) == versions_toml.resolve()

    def test_falls_back_to_cwd(self, tmp_path: Path) -> None:
        assert resolve_config_path(None, cwd=tmp_path) == tmp_path.resolve() / "versions.toml"


class TestLoadPackageEntries:
    """Tests for load_package_entries()."""

    def test_reads_entries_in_order(self, versions_toml: Path) -> None:
        entries = load_package_entries(versions_toml)
        assert [e["name"] for e in entries] == ["service-a", "service-b", "tools"]
        assert entries[1]["create_tag"] is True
        assert isinstance(entries[0], dict)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_package_entries(tmp_path / "versions.toml")

    def test_parse_error(self, tmp_path: Path) -> None:
        path = write(tmp_path / "versions.toml", "[[package]\ntype = ")
        with pytest.raises(ConfigurationError, match="Failed to parse"):
            load_package_entries(path)

    def test_missing_package_array(self, tmp_path: Path) -> None:
        path = write(tmp_path / "versions.toml", 'title = "nothing here"\n')
        with pytest.raises(ConfigurationError, match='"package" array'):
            load_package_entries(path)

    def test_package_must_be_array(self, tmp_path: Path) -> None:
        path = write(tmp_path / "versions.toml", '[package]\nname = "x"\n')
        with pytest.raises(ConfigurationError):
            load_package_entries(path)


class TestToDescriptorEntries:
    """Tests for to_descriptor_entries()."""

    def test_maps_fields(self, tmp_path: Path) -> None:
        entries = [
            {
                "type": "cargo",
                "path": "./crates/core/",
                "name": "core",
                "version": "2.0.0",
                "create_tag": False,
                "update_workspace_deps": False,
            }
        ]

        (descriptor,) = to_descriptor_entries(entries, tmp_path)

        assert descriptor == {
            "name": "core",
            "version": "2.0.0",
            "ecosystem": "cargo",
            "relative_path": "crates/core",
            "path": (tmp_path / "crates" / "core").resolve(),
            "flags": {"create_tag": False, "update_workspace_deps": False},
        }

    def test_root_package(self, tmp_path: Path) -> None:
        (descriptor,) = to_descriptor_entries(
            [{"type": "npm", "path": ".", "name": "root", "version": "1.0.0"}], tmp_path
        )
        assert descriptor["path"] == tmp_path
        assert descriptor["relative_path"] == "."

    def test_missing_fields_left_for_validation(self, tmp_path: Path) -> None:
        (descriptor,) = to_descriptor_entries([{"type": "npm"}], tmp_path)
        assert descriptor == {"ecosystem": "npm"}


class TestFiltering:
    """Tests for filter_by_path(), auto_filter() and packages_for_directory()."""

    ENTRIES = [
        {"path": "."},
        {"path": "packages/service-a"},
        {"path": "packages/service-b"},
        {"path": "tools"},
    ]

    def test_filter_by_exact_path(self, tmp_path: Path) -> None:
        result = filter_by_path(self.ENTRIES, tmp_path, "packages/service-a", cwd=tmp_path)
        assert paths(result) == ["packages/service-a"]

    def test_filter_by_prefix(self, tmp_path: Path) -> None:
        result = filter_by_path(self.ENTRIES, tmp_path, "packages", cwd=tmp_path)
        assert paths(result) == ["packages/service-a", "packages/service-b"]

    def test_filter_relative_to_cwd(self, tmp_path: Path) -> None:
        cwd = tmp_path / "packages"
        result = filter_by_path(self.ENTRIES, tmp_path, "service-b", cwd=cwd)
        assert paths(result) == ["packages/service-b"]

    def test_filter_root_keeps_everything(self, tmp_path: Path) -> None:
        assert filter_by_path(self.ENTRIES, tmp_path, ".", cwd=tmp_path) == self.ENTRIES

    def test_filter_unknown_path(self, tmp_path: Path) -> None:
        assert filter_by_path(self.ENTRIES[1:], tmp_path, "docs", cwd=tmp_path) == []

    def test_auto_filter_at_root(self, tmp_path: Path) -> None:
        assert auto_filter(self.ENTRIES, tmp_path, cwd=tmp_path) == self.ENTRIES

    def test_auto_filter_in_subdirectory(self, tmp_path: Path) -> None:
        result = auto_filter(self.ENTRIES[1:], tmp_path, cwd=tmp_path / "packages")
        assert paths(result) == ["packages/service-a", "packages/service-b"]

    def test_auto_filter_nested_directory(self, tmp_path: Path) -> None:
        cwd = tmp_path / "packages" / "service-a" / "src"
        result = auto_filter(self.ENTRIES[1:], tmp_path, cwd=cwd)
        assert paths(result) == ["packages/service-a"]

    def test_auto_filter_outside_config_dir(self, tmp_path: Path) -> None:
        config_dir = tmp_path / "repo"
        assert auto_filter(self.ENTRIES, config_dir, cwd=tmp_path) == self.ENTRIES

    def test_packages_for_directory_at_root(self, tmp_path: Path) -> None:
        assert paths(packages_for_directory(self.ENTRIES, tmp_path, cwd=tmp_path)) == ["."]
        assert packages_for_directory(self.ENTRIES[1:], tmp_path, cwd=tmp_path) == []

    def test_packages_for_directory_in_package(self, tmp_path: Path) -> None:
        cwd = tmp_path / "packages" / "service-b"
        result = packages_for_directory(self.ENTRIES[1:], tmp_path, cwd=cwd)
        assert paths(result) == ["packages/service-b"]


class TestUpdateConfigVersion:
    """Tests for update_config_version()."""

    def test_updates_matching_entry_only(self, versions_toml: Path) -> None:
        assert update_config_version(versions_toml, "packages/service-a", "1.0.1")

        text = versions_toml.read_text()
        entries = load_package_entries(versions_toml)
        assert text.startswith("# Project versions\n")
        assert [e["version"] for e in entries] == ["1.0.1", "2.0.0", "0.1.0"]

    def test_path_spelling_is_normalized(self, versions_toml: Path) -> None:
        assert update_config_version(versions_toml, "./tools/", "0.2.0")
        assert load_package_entries(versions_toml)[2]["version"] == "0.2.0"

    def test_no_match(self, versions_toml: Path) -> None:
        before = versions_toml.read_text()
        assert not update_config_version(versions_toml, "docs", "9.9.9")
        assert versions_toml.read_text() == before
