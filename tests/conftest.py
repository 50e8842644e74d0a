"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from apply_versions.ecosystems import (
    CargoStrategy,
    GoStrategy,
    NpmStrategy,
    Strategies,
)
from apply_versions.vcs import GitRepository
from apply_versions.workspace import WorkspaceResolver


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def cargo_workspace(tmp_path: Path) -> Path:
    """A Cargo workspace with a shared version.

    - crates/core inherits the shared version
    - crates/cli pins its own version and depends on core
    - crates/macros pins a version that differs from the shared one
    """
    root = tmp_path / "ws"
    write(
        root / "Cargo.toml",
        """\
[workspace]
members = ["crates/*"]
resolver = "2"

[workspace.package]
version = "1.0.0"
edition = "2021"

[workspace.dependencies]
core = { version = "1.0.0", path = "crates/core" }
macros = "0.9.0"
serde = "1.0"
""",
    )
    write(
        root / "crates" / "core" / "Cargo.toml",
        """\
[package]
name = "core"
version.workspace = true
edition.workspace = true

[dependencies]
serde = { workspace = true }
""",
    )
    write(
        root / "crates" / "cli" / "Cargo.toml",
        """\
[package]
name = "cli"
version = "1.0.0"
edition = "2021"

[dependencies]
core = { version = "^1.0.0", path = "../core" }
clap = "4.0"

[dev-dependencies]
core = "1.0.0"
""",
    )
    write(
        root / "crates" / "macros" / "Cargo.toml",
        """\
[package]
name = "macros"
version = "0.9.0"
""",
    )
    return root


@pytest.fixture
def explicit_workspace(tmp_path: Path) -> Path:
    """A workspace without a shared version: every member pins its own."""
    root = tmp_path / "explicit"
    write(
        root / "Cargo.toml",
        """\
[workspace]
members = ["crates/*"]

[workspace.dependencies]
core = "1.0.0"
""",
    )
    write(
        root / "crates" / "core" / "Cargo.toml",
        '[package]\nname = "core"\nversion = "1.0.0"\n',
    )
    write(
        root / "crates" / "app" / "Cargo.toml",
        '[package]\nname = "app"\nversion = "0.1.0"\n\n'
        '[dependencies]\ncore = "1.0.0"\n',
    )
    return root


@pytest.fixture
def standalone_crate(tmp_path: Path) -> Path:
    crate = tmp_path / "solo"
    write(
        crate / "Cargo.toml",
        """\
# A crate on its own
[package]
name = "solo"
version = "0.3.0" # keep in sync with CHANGELOG

[dependencies]
anyhow = { version = "1.0.0" }
""",
    )
    return crate


@pytest.fixture
def npm_package(tmp_path: Path) -> Path:
    pkg = tmp_path / "web"
    write(
        pkg / "package.json",
        json.dumps({"name": "web", "version": "1.0.0", "private": True}, indent=2)
        + "\n",
    )
    return pkg


@pytest.fixture
def go_module(tmp_path: Path) -> Path:
    module = tmp_path / "services" / "api"
    write(module / "go.mod", "module example.com/services/api\n\ngo 1.22\n")
    return module


@pytest.fixture
def mock_git() -> MagicMock:
    """A Git collaborator that succeeds and knows no tags."""
    git = MagicMock(spec=GitRepository)
    git.list_tags.return_value = []
    git.stage_and_commit.return_value = "abc123def4567890"
    return git


@pytest.fixture
def strategies(mock_git: MagicMock) -> Strategies:
    return Strategies(
        npm=NpmStrategy(),
        go=GoStrategy(mock_git),
        cargo=CargoStrategy(WorkspaceResolver()),
    )


@pytest.fixture
def versions_toml(tmp_path: Path) -> Path:
    """A versions.toml next to two npm packages and a nested Go module."""
    write(
        tmp_path / "packages" / "service-a" / "package.json",
        '{\n  "name": "service-a",\n  "version": "1.0.0"\n}\n',
    )
    write(
        tmp_path / "packages" / "service-b" / "package.json",
        '{\n  "name": "service-b",\n  "version": "2.0.0"\n}\n',
    )
    write(tmp_path / "tools" / "go.mod", "module example.com/tools\n")
    return write(
        tmp_path / "versions.toml",
        """\
# Project versions
[[package]]
type = "npm"
path = "packages/service-a"
name = "service-a"
version = "1.0.0"

[[package]]
type = "npm"
path = "packages/service-b"
name = "service-b"
version = "2.0.0"
create_tag = true

[[package]]
type = "go"
path = "tools"
name = "tools"
version = "0.1.0"
""",
    )
