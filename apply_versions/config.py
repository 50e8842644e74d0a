"""versions.toml handling.

The manifest is an array of ``[[package]]`` tables::

    [[package]]
    type = "cargo"
    path = "crates/core"
    name = "core"
    version = "2.0.0"
    create_tag = true              # optional
    update_workspace_deps = true   # optional, cargo only

Entries are only checked for shape here. Field-level validation happens
per package during analysis, so one bad entry does not stop the others.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from tomlkit.exceptions import ParseError

from .errors import ConfigurationError, ManifestNotFoundError
from .toml import load_toml, save_toml

CONFIG_FILENAME = "versions.toml"
FLAG_KEYS = ("create_tag", "update_workspace_deps")


def find_config_file(start: Path | None = None) -> Path | None:
    """Search upward from start for versions.toml.

    Returns:
        Path to the nearest versions.toml, or None if the filesystem root is
        reached without finding one.
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def resolve_config_path(config_option: str | None, cwd: Path | None = None) -> Path:
    """Pick the manifest: explicit option, upward search, then ./versions.toml."""
    if config_option:
        return Path(config_option).resolve()
    cwd = (cwd or Path.cwd()).resolve()
    return find_config_file(cwd) or cwd / CONFIG_FILENAME


def load_package_entries(path: Path) -> list[dict[str, Any]]:
    """Read the [[package]] entries of a versions.toml.

    Raises:
        ConfigurationError: If the file is missing, unparsable, or has no
            package array.
    """
    try:
        doc = load_toml(path)
    except ManifestNotFoundError as exc:
        raise ConfigurationError(f"Configuration file not found: {path}") from exc
    except ParseError as exc:
        raise ConfigurationError(f"Failed to parse configuration: {exc}") from exc

    packages = doc.unwrap().get("package")
    if not isinstance(packages, list):
        raise ConfigurationError(
            'Invalid configuration: missing or invalid "package" array'
        )
    for entry in packages:
        if not isinstance(entry, dict):
            raise ConfigurationError(
                f"Invalid configuration: package entries must be tables, got {entry!r}"
            )
    return packages


def _clean(path: Any) -> str:
    """Normalize a manifest path: "." and "" mean the manifest directory."""
    path = str(path or "").strip().replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    path = path.rstrip("/")
    return "" if path in ("", ".") else path


def to_descriptor_entries(
    entries: list[dict[str, Any]], config_dir: Path
) -> list[dict[str, Any]]:
    """Map raw versions.toml entries onto the PackageDescriptor shape.

    Paths become absolute (relative to the manifest's directory) while the
    original spelling is kept as relative_path for tags and messages.
    """
    descriptors: list[dict[str, Any]] = []
    for entry in entries:
        descriptor: dict[str, Any] = {
            key: entry[key] for key in ("name", "version") if key in entry
        }
        if "type" in entry:
            descriptor["ecosystem"] = entry["type"]
        raw_path = entry.get("path")
        if isinstance(raw_path, str) and raw_path:
            relative = _clean(raw_path)
            descriptor["relative_path"] = relative or "."
            descriptor["path"] = (config_dir / relative).resolve() if relative else config_dir
        flags = {key: entry[key] for key in FLAG_KEYS if key in entry}
        if flags:
            descriptor["flags"] = flags
        descriptors.append(descriptor)
    return descriptors


def _relative_to_config(directory: Path, config_dir: Path) -> str:
    relative = os.path.relpath(directory.resolve(), config_dir.resolve())
    return _clean(Path(relative).as_posix())


def _contains(package_path: str, relative: str) -> bool:
    """Package path equals, encloses, or lies under the relative directory."""
    return (
        package_path == relative
        or relative.startswith(package_path + "/")
        or package_path.startswith(relative + "/")
    )


def filter_by_path(
    entries: list[dict[str, Any]],
    config_dir: Path,
    target: str,
    cwd: Path | None = None,
) -> list[dict[str, Any]]:
    """Keep packages related to a target directory (the --path option).

    The target is resolved against cwd and compared with package paths
    relative to the manifest. Targeting the manifest directory keeps
    everything.
    """
    relative = _relative_to_config((cwd or Path.cwd()) / target, config_dir)
    if relative == "":
        return list(entries)
    return [e for e in entries if _contains(_clean(e.get("path")), relative)]


def auto_filter(
    entries: list[dict[str, Any]], config_dir: Path, cwd: Path | None = None
) -> list[dict[str, Any]]:
    """Keep packages related to the current directory.

    Running from the manifest directory (or outside it) keeps everything.
    """
    relative = _relative_to_config(cwd or Path.cwd(), config_dir)
    if relative == "" or relative.startswith(".."):
        return list(entries)
    return [e for e in entries if _contains(_clean(e.get("path")), relative)]


def packages_for_directory(
    entries: list[dict[str, Any]], config_dir: Path, cwd: Path | None = None
) -> list[dict[str, Any]]:
    """Packages the bump command acts on from the current directory.

    At the manifest directory only a package declared at "." qualifies.
    """
    relative = _relative_to_config(cwd or Path.cwd(), config_dir)
    return [e for e in entries if _contains(_clean(e.get("path")), relative)]


def update_config_version(path: Path, package_path: str, new_version: str) -> bool:
    """Set the target version of one [[package]] entry in versions.toml.

    Uses tomlkit so comments and formatting elsewhere in the file survive.

    Returns:
        True if a matching entry was found and updated.
    """
    doc = load_toml(path)
    wanted = _clean(package_path)
    for table in doc.get("package", []):
        if _clean(table.get("path")) == wanted:
            table["version"] = new_version
            save_toml(path, doc)
            return True
    return False
