"""TOML reading utilities.

Uses tomlkit to read Cargo.toml and versions.toml files. Reads go through
the parsed document; writes to Cargo manifests go through the bounded-region
patchers so unrelated bytes never move, while versions.toml is rewritten
through tomlkit to keep its formatting and comments.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

import tomlkit

from .errors import ManifestNotFoundError


def load_toml(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a TOML file.

    Returns a TOMLDocument that preserves formatting when modified and saved.

    Raises:
        ManifestNotFoundError: If the file does not exist.
    """
    try:
        return tomlkit.parse(path.read_text())
    except FileNotFoundError as exc:
        raise ManifestNotFoundError(f"File not found: {path}") from exc


def save_toml(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc))


def get_package_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the crate name from [package].name."""
    return str(doc.get("package", {}).get("name", fallback))


def is_version_inherited(doc: tomlkit.TOMLDocument) -> bool:
    """Check whether [package].version defers to the workspace.

    Both spellings of the marker are recognized:
    ``version.workspace = true`` and ``version = { workspace = true }``.
    """
    version = doc.get("package", {}).get("version")
    return isinstance(version, Mapping) and bool(version.get("workspace"))


def get_package_version(doc: tomlkit.TOMLDocument) -> str | None:
    """Extract a literal [package].version, or None if absent or inherited."""
    version = doc.get("package", {}).get("version")
    if version is None or isinstance(version, Mapping):
        return None
    return str(version)


def declares_workspace(doc: tomlkit.TOMLDocument) -> bool:
    """Check whether a Cargo.toml declares a [workspace] table."""
    return "workspace" in doc


def get_workspace_members(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract member patterns from [workspace].members, in order.

    These patterns (e.g., "crates/*", "tools/cli") define which directories
    contain workspace crates.
    """
    members = doc.get("workspace", {}).get("members", [])
    return [str(m) for m in members]


def get_workspace_version(doc: tomlkit.TOMLDocument) -> str | None:
    """Extract the shared version from [workspace.package].version."""
    version = doc.get("workspace", {}).get("package", {}).get("version")
    return str(version) if version is not None else None
