"""Per-ecosystem version strategies.

Each strategy knows where a package's manifest lives, how to read the
version that currently applies, how to write a new one, and whether the
release gets a tag:

- npm: structured JSON patch of package.json (and package-lock.json).
- go: versions live in git tags; go.mod is never edited.
- cargo: bounded-region patch of Cargo.toml, routed through the workspace
  resolver so shared versions and dependency pins stay consistent.

Strategies are stateless over file content and are built once per run by
build_strategies().
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import GitOperationError, PatchNotApplicableError, UnsupportedEcosystemError
from .models import (
    Ecosystem,
    PackageDescriptor,
    TagDecision,
    UpdateSuccess,
    WorkspaceContext,
)
from .patchers import (
    patch_json_lockfile,
    patch_json_version,
    read_json_version,
    read_manifest,
    write_manifest,
)
from .vcs import GitRepository
from .versions import latest_version
from .workspace import MANIFEST as CARGO_MANIFEST
from .workspace import WorkspaceResolver

logger = logging.getLogger(__name__)


class PackageStrategy(ABC):
    """Common behavior of the ecosystem strategies.

    Attributes:
        ecosystem: The ecosystem handled.
        manifest_name: File name of the primary manifest.
        writes_files: False when versions live outside files, so updates
            produce no commit.
    """

    ecosystem: Ecosystem
    manifest_name: str
    writes_files: bool = True

    def manifest_path(self, descriptor: PackageDescriptor) -> Path:
        return descriptor.path / self.manifest_name

    @abstractmethod
    def read_version(self, descriptor: PackageDescriptor) -> str:
        """Return the version that currently applies to the package."""

    @abstractmethod
    def apply(self, descriptor: PackageDescriptor, *, dry_run: bool = False) -> UpdateSuccess:
        """Write descriptor.version; with dry_run, report without writing."""

    @abstractmethod
    def tag_decision(self, descriptor: PackageDescriptor) -> TagDecision:
        """Decide whether and how the release is tagged."""


class NpmStrategy(PackageStrategy):
    """package.json versions. Tagging is opt-in via create_tag."""

    ecosystem = Ecosystem.NPM
    manifest_name = "package.json"
    lockfile_name = "package-lock.json"

    def read_version(self, descriptor: PackageDescriptor) -> str:
        manifest = self.manifest_path(descriptor)
        version = read_json_version(read_manifest(manifest))
        if version is None:
            raise PatchNotApplicableError(f"No version field found in {manifest}")
        return version

    def apply(self, descriptor: PackageDescriptor, *, dry_run: bool = False) -> UpdateSuccess:
        manifest = self.manifest_path(descriptor)
        content = read_manifest(manifest)
        old_version = read_json_version(content)
        result = patch_json_version(content, descriptor.version)
        if result.changed and not dry_run:
            write_manifest(manifest, result.content)

        # The lockfile records the package's own version too.
        additional_files: list[Path] = []
        lockfile = descriptor.path / self.lockfile_name
        if lockfile.is_file():
            lock_result = patch_json_lockfile(read_manifest(lockfile), descriptor.version)
            if lock_result.changed:
                additional_files.append(lockfile)
                if not dry_run:
                    write_manifest(lockfile, lock_result.content)

        return UpdateSuccess(
            old_version=old_version,
            new_version=descriptor.version,
            additional_files=additional_files,
        )

    def tag_decision(self, descriptor: PackageDescriptor) -> TagDecision:
        if descriptor.flags.create_tag is True:
            return TagDecision(create=True, name=f"v{descriptor.version}")
        return TagDecision()


def go_tag_prefix(relative_path: str) -> str:
    """Tag prefix for a Go module: "v" at the root, "path/v" when nested."""
    path = relative_path.strip().rstrip("/")
    if path in ("", "."):
        return "v"
    return f"{path.removeprefix('./')}/v"


class GoStrategy(PackageStrategy):
    """Go modules, versioned purely through git tags.

    The current version is the highest semver among the module's tags (or
    0.0.0 without any). Applying a version changes no file; the tag is the
    release.
    """

    ecosystem = Ecosystem.GO
    manifest_name = "go.mod"
    writes_files = False

    _MODULE = re.compile(r"^module\s+\S+", re.MULTILINE)

    def __init__(self, git: GitRepository) -> None:
        self.git = git

    def read_version(self, descriptor: PackageDescriptor) -> str:
        manifest = self.manifest_path(descriptor)
        if not self._MODULE.search(read_manifest(manifest)):
            raise PatchNotApplicableError(f"No module directive found in {manifest}")

        prefix = go_tag_prefix(descriptor.relative_path)
        try:
            tags = self.git.list_tags(f"{prefix}*")
        except GitOperationError as exc:
            logger.warning("Failed to read git tags for %s: %s", descriptor.path, exc)
            return "0.0.0"
        versions = [tag[len(prefix) :] for tag in tags if tag.startswith(prefix)]
        return latest_version(versions) or "0.0.0"

    def apply(self, descriptor: PackageDescriptor, *, dry_run: bool = False) -> UpdateSuccess:
        return UpdateSuccess(
            old_version=self.read_version(descriptor),
            new_version=descriptor.version,
            files_changed=False,
        )

    def tag_decision(self, descriptor: PackageDescriptor) -> TagDecision:
        if descriptor.flags.create_tag is False:
            return TagDecision()
        prefix = go_tag_prefix(descriptor.relative_path)
        return TagDecision(create=True, name=f"{prefix}{descriptor.version}")


class CargoStrategy(PackageStrategy):
    """Cargo crates, standalone or inside a workspace."""

    ecosystem = Ecosystem.CARGO
    manifest_name = CARGO_MANIFEST

    def __init__(self, resolver: WorkspaceResolver) -> None:
        self.resolver = resolver

    def workspace_context(self, descriptor: PackageDescriptor) -> WorkspaceContext:
        return self.resolver.resolve(descriptor.path)

    def read_version(self, descriptor: PackageDescriptor) -> str:
        context = self.workspace_context(descriptor)
        return self.resolver.effective_version(descriptor.path.resolve(), context)

    def apply(self, descriptor: PackageDescriptor, *, dry_run: bool = False) -> UpdateSuccess:
        update = self.resolver.update(
            descriptor.path,
            descriptor.version,
            update_deps=descriptor.flags.update_workspace_deps,
            dry_run=dry_run,
        )
        return UpdateSuccess(
            old_version=update.old_version,
            new_version=descriptor.version,
            additional_files=update.additional_files,
            files_changed=update.files_changed,
        )

    def tag_decision(self, descriptor: PackageDescriptor) -> TagDecision:
        if descriptor.flags.create_tag is False:
            return TagDecision()
        return TagDecision(create=True, name=f"v{descriptor.version}")


class Strategies:
    """The strategy for each ecosystem, constructed once per run."""

    def __init__(self, npm: NpmStrategy, go: GoStrategy, cargo: CargoStrategy) -> None:
        self.npm = npm
        self.go = go
        self.cargo = cargo

    def for_ecosystem(self, ecosystem: Ecosystem) -> PackageStrategy:
        """Return the strategy for an ecosystem.

        Raises:
            UnsupportedEcosystemError: For a value outside Ecosystem.
        """
        if ecosystem is Ecosystem.NPM:
            return self.npm
        if ecosystem is Ecosystem.GO:
            return self.go
        if ecosystem is Ecosystem.CARGO:
            return self.cargo
        valid = ", ".join(e.value for e in Ecosystem)
        raise UnsupportedEcosystemError(
            f"Unknown package type: {ecosystem}. Valid types are: {valid}"
        )


def build_strategies(git: GitRepository) -> Strategies:
    """Construct the strategies for one run."""
    return Strategies(
        npm=NpmStrategy(),
        go=GoStrategy(git),
        cargo=CargoStrategy(WorkspaceResolver()),
    )
