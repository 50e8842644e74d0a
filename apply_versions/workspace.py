"""Cargo workspace resolution and version propagation.

A crate's version can live in three places: its own [package] table, the
workspace root's [workspace.package] table (when the crate declares
``version.workspace = true``), or nowhere (an error). This module finds the
enclosing workspace, decides which of those applies, and when a version
changes, carries the change to every file that records it:

1. the authoritative version field (crate or workspace root),
2. sibling members that pin their own version to the shared one,
3. dependency pins on the changed crates, in the root's
   [workspace.dependencies] and in members' dependency tables.

The resolver only edits files. Staging and committing what it touched is up
to the caller, via the returned additional_files.
"""

from __future__ import annotations

import glob
import logging
import re
from collections.abc import Callable
from functools import lru_cache
from pathlib import Path
from typing import NamedTuple

import tomlkit

from .errors import PatchNotApplicableError
from .models import VersionSource, WorkspaceContext, WorkspaceRole
from .patchers import (
    PatchResult,
    patch_dependency_versions,
    patch_section_version,
    read_manifest,
    write_manifest,
)
from .toml import (
    declares_workspace,
    get_package_name,
    get_package_version,
    get_workspace_members,
    get_workspace_version,
    is_version_inherited,
)

logger = logging.getLogger(__name__)

MANIFEST = "Cargo.toml"
WORKSPACE_DEPENDENCIES = "workspace.dependencies"
MEMBER_DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")


class WorkspaceUpdate(NamedTuple):
    """Result of writing a new version through the workspace.

    Attributes:
        old_version: Effective version before the update.
        additional_files: Files changed besides the crate's own manifest,
            in the order they were first touched.
        files_changed: Whether any file, the crate's own manifest included,
            was (or in a dry run would be) rewritten.
    """

    old_version: str
    additional_files: list[Path]
    files_changed: bool = True


def _normalize(path: str) -> str:
    path = path.strip()
    while path.startswith("./"):
        path = path[2:]
    return path.rstrip("/") or "."


@lru_cache(maxsize=None)
def _glob_regex(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts))


def matches_member_pattern(rel_path: str, pattern: str) -> bool:
    """Check a root-relative crate path against one member pattern.

    A pattern matches on exact string equality, or as a glob where ``**``
    matches any run of characters including "/", ``*`` matches any run
    except "/", and every other character is literal.

    Examples:
        matches_member_pattern("crates/core", "crates/*") → True
        matches_member_pattern("crates/core/nested", "crates/*") → False
        matches_member_pattern("crates/core/nested", "crates/**") → True
    """
    rel_path, pattern = _normalize(rel_path), _normalize(pattern)
    return rel_path == pattern or bool(_glob_regex(pattern).fullmatch(rel_path))


def first_matching_pattern(rel_path: str, patterns: list[str]) -> str | None:
    """Return the first pattern (in declaration order) matching rel_path."""
    for pattern in patterns:
        if matches_member_pattern(rel_path, pattern):
            return pattern
    return None


class WorkspaceResolver:
    """Resolves and updates Cargo workspace state.

    Manifests read while searching for a workspace root are cached for the
    lifetime of the resolver (one run), so each root is parsed at most once.
    Writes made through the resolver evict the written file from the cache.
    """

    def __init__(self) -> None:
        self._docs: dict[Path, tomlkit.TOMLDocument | None] = {}

    def invalidate(self, manifest: Path) -> None:
        """Drop a cached manifest after it has been rewritten."""
        self._docs.pop(manifest.resolve(), None)

    def _load(self, manifest: Path) -> tomlkit.TOMLDocument | None:
        key = manifest.resolve()
        if key not in self._docs:
            self._docs[key] = (
                tomlkit.parse(read_manifest(key)) if key.is_file() else None
            )
        return self._docs[key]

    def find_root(self, package_dir: Path) -> Path | None:
        """Walk upward from package_dir to the first [workspace] declaration.

        The package's own directory is checked first. The walk stops at the
        filesystem root.
        """
        start = package_dir.resolve()
        for directory in (start, *start.parents):
            doc = self._load(directory / MANIFEST)
            if doc is not None and declares_workspace(doc):
                return directory
        return None

    def resolve(self, package_dir: Path) -> WorkspaceContext:
        """Decide where a crate's authoritative version lives.

        Raises:
            ManifestNotFoundError: If the crate has no Cargo.toml.
        """
        package_dir = package_dir.resolve()
        doc = tomlkit.parse(read_manifest(package_dir / MANIFEST))
        root = self.find_root(package_dir)
        if root is None:
            return WorkspaceContext()

        root_doc = self._load(root / MANIFEST)
        members = get_workspace_members(root_doc)
        shared = get_workspace_version(root_doc)

        if root == package_dir:
            # A virtual manifest (no [package] version) speaks for the
            # shared version
            inherited = is_version_inherited(doc) or (
                get_package_version(doc) is None and shared is not None
            )
            role = WorkspaceRole.ROOT
        else:
            rel_path = package_dir.relative_to(root).as_posix()
            if members and first_matching_pattern(rel_path, members) is None:
                logger.debug(
                    "%s is not a member of the workspace at %s", rel_path, root
                )
                return WorkspaceContext()
            inherited = is_version_inherited(doc)
            role = (
                WorkspaceRole.MEMBER_INHERITED
                if inherited
                else WorkspaceRole.MEMBER_EXPLICIT
            )

        return WorkspaceContext(
            root_path=root,
            members=members,
            version_source=(
                VersionSource.INHERITED if inherited else VersionSource.LOCAL
            ),
            role=role,
            shared_version=shared,
        )

    def effective_version(self, package_dir: Path, context: WorkspaceContext) -> str:
        """Read the version that currently applies to a crate.

        Raises:
            PatchNotApplicableError: If the authoritative field is missing.
        """
        if context.version_source is VersionSource.INHERITED:
            if context.shared_version is None:
                raise PatchNotApplicableError(
                    "No version field found in [workspace.package] section of "
                    f"{context.root_path / MANIFEST}"
                )
            return context.shared_version

        manifest = package_dir / MANIFEST
        version = get_package_version(tomlkit.parse(read_manifest(manifest)))
        if version is None:
            raise PatchNotApplicableError(
                f"No version field found in [package] section of {manifest}"
            )
        return version

    def member_dirs(self, context: WorkspaceContext) -> list[Path]:
        """Resolve member patterns to crate directories on disk.

        Patterns are expanded in declaration order. A directory matched by
        several patterns is listed once, under the first. Directories
        without a Cargo.toml are skipped: members may be listed before they
        exist or after they are withdrawn.
        """
        if context.root_path is None:
            return []
        root = context.root_path
        seen: set[Path] = set()
        dirs: list[Path] = []
        for pattern in context.members:
            pattern = _normalize(pattern)
            if "*" in pattern:
                candidates = sorted(
                    Path(m) for m in glob.glob(str(root / pattern), recursive=True)
                )
            else:
                candidates = [root / pattern]
            for candidate in candidates:
                candidate = candidate.resolve()
                if candidate in seen:
                    continue
                seen.add(candidate)
                if not (candidate / MANIFEST).is_file():
                    logger.debug("Skipping member without manifest: %s", candidate)
                    continue
                dirs.append(candidate)
        return dirs

    def _patch_file(
        self,
        manifest: Path,
        patcher: Callable[[str], PatchResult],
        dry_run: bool,
    ) -> bool:
        result = patcher(read_manifest(manifest))
        if result.changed and not dry_run:
            write_manifest(manifest, result.content)
            self.invalidate(manifest)
        return result.changed

    def update(
        self,
        package_dir: Path,
        new_version: str,
        *,
        update_deps: bool = True,
        dry_run: bool = False,
    ) -> WorkspaceUpdate:
        """Write a new version for a crate and propagate it.

        With an inherited version the shared [workspace.package] version is
        patched; otherwise the crate's own [package] version is. When
        update_deps is set and the crate lives in a workspace, members that
        pin their own version are synced to a changed shared version, and
        every dependency pin on the changed crates is rewritten.

        Args:
            package_dir: Crate directory.
            new_version: Version to write.
            update_deps: Propagate to members and dependency pins.
            dry_run: Compute the touched files without writing them.

        Raises:
            ManifestNotFoundError: If the crate or root manifest is missing.
            PatchNotApplicableError: If the authoritative version field is
                missing.
        """
        package_dir = package_dir.resolve()
        manifest = package_dir / MANIFEST
        context = self.resolve(package_dir)
        old_version = self.effective_version(package_dir, context)

        touched: list[Path] = []
        own_changed = False
        pinned: dict[str, str] = {}
        propagate = update_deps and context.root_path is not None

        if propagate:
            own_doc = tomlkit.parse(read_manifest(manifest))
            if "package" in own_doc:
                pinned[get_package_name(own_doc, package_dir.name)] = new_version

        if context.version_source is VersionSource.INHERITED:
            root_manifest = context.root_path / MANIFEST
            if self._patch_file(
                root_manifest,
                lambda c: patch_section_version(c, "workspace.package", new_version),
                dry_run,
            ):
                touched.append(root_manifest)
            if propagate:
                touched.extend(self._sync_members(context, new_version, pinned, dry_run))
        else:
            own_changed = self._patch_file(
                manifest,
                lambda c: patch_section_version(c, "package", new_version),
                dry_run,
            )

        if propagate and pinned:
            touched.extend(self._rewrite_pins(context, pinned, dry_run))

        additional: list[Path] = []
        for path in touched:
            if path != manifest and path not in additional:
                additional.append(path)
        return WorkspaceUpdate(old_version, additional, own_changed or bool(touched))

    def _sync_members(
        self,
        context: WorkspaceContext,
        new_version: str,
        pinned: dict[str, str],
        dry_run: bool,
    ) -> list[Path]:
        """Bring members onto a changed shared version.

        Inheriting members follow the root automatically and are only
        recorded in pinned. Members with their own differing version are
        patched.
        """
        touched: list[Path] = []
        for member_dir in self.member_dirs(context):
            member_manifest = member_dir / MANIFEST
            doc = tomlkit.parse(read_manifest(member_manifest))
            if "package" not in doc:
                continue
            name = get_package_name(doc, member_dir.name)
            if is_version_inherited(doc):
                pinned[name] = new_version
                continue
            version = get_package_version(doc)
            if version is None:
                continue
            if version != new_version and self._patch_file(
                member_manifest,
                lambda c: patch_section_version(c, "package", new_version),
                dry_run,
            ):
                logger.debug("Synced %s from %s to %s", name, version, new_version)
                touched.append(member_manifest)
            pinned[name] = new_version
        return touched

    def _rewrite_pins(
        self, context: WorkspaceContext, pinned: dict[str, str], dry_run: bool
    ) -> list[Path]:
        """Rewrite dependency pins on the crates in pinned."""
        touched: list[Path] = []

        root_manifest = context.root_path / MANIFEST
        if self._patch_file(
            root_manifest,
            lambda c: patch_dependency_versions(c, WORKSPACE_DEPENDENCIES, pinned),
            dry_run,
        ):
            touched.append(root_manifest)

        def pin_member(content: str) -> PatchResult:
            changed = False
            for table in MEMBER_DEPENDENCY_TABLES:
                result = patch_dependency_versions(content, table, pinned)
                content = result.content
                changed = changed or result.changed
            return PatchResult(content, changed)

        for member_dir in self.member_dirs(context):
            member_manifest = member_dir / MANIFEST
            if self._patch_file(member_manifest, pin_member, dry_run):
                logger.debug("Rewrote dependency pins in %s", member_manifest)
                touched.append(member_manifest)
        return touched
