"""Data models for apply-versions.

These Pydantic models represent the core data structures passed between the
analyzer, the ecosystem strategies and the pipeline.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .versions import is_valid_version


class Ecosystem(str, Enum):
    """Package ecosystems with a version strategy."""

    NPM = "npm"
    GO = "go"
    CARGO = "cargo"


# Accepted spellings in versions.toml that map onto an Ecosystem.
ECOSYSTEM_ALIASES = {"rust": Ecosystem.CARGO}


class EcosystemFlags(BaseModel):
    """Ecosystem-specific toggles from a versions.toml entry.

    Attributes:
        create_tag: Force tagging on or off. None means the ecosystem default.
        update_workspace_deps: For Cargo workspaces, also rewrite sibling
            manifests and workspace dependency pins that reference the crate.
    """

    model_config = ConfigDict(frozen=True)

    create_tag: bool | None = None
    update_workspace_deps: bool = True


class PackageDescriptor(BaseModel):
    """One declared package from versions.toml.

    Attributes:
        path: Filesystem path of the package directory.
        name: Display name of the package.
        ecosystem: Which strategy handles the package.
        version: Target version the package should end up at.
        relative_path: Path as written in versions.toml, relative to the
            manifest's directory ("." for the directory itself).
        flags: Ecosystem-specific toggles.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    name: str = Field(min_length=1)
    ecosystem: Ecosystem
    version: str
    relative_path: str = "."
    flags: EcosystemFlags = Field(default_factory=EcosystemFlags)

    @field_validator("ecosystem", mode="before")
    @classmethod
    def _known_ecosystem(cls, value: object) -> object:
        if isinstance(value, str) and not isinstance(value, Ecosystem):
            value = ECOSYSTEM_ALIASES.get(value, value)
            valid = [e.value for e in Ecosystem]
            if value not in valid:
                raise ValueError(
                    f"invalid package type '{value}'. "
                    f"Valid types are: {', '.join(valid)}"
                )
        return value

    @field_validator("version")
    @classmethod
    def _semver(cls, value: str) -> str:
        if not is_valid_version(value):
            raise ValueError(
                f"invalid version format '{value}'. Version must follow "
                "semantic versioning: major.minor.patch (e.g., 1.2.3)"
            )
        return value


class TagDecision(BaseModel):
    """Whether a tag will be created for a package, and under which name."""

    model_config = ConfigDict(frozen=True)

    create: bool = False
    name: str | None = None


class PackageChange(BaseModel):
    """Analysis result for one package: where it is and where it should be."""

    model_config = ConfigDict(frozen=True)

    descriptor: PackageDescriptor
    current_version: str
    needs_update: bool
    tag: TagDecision = Field(default_factory=TagDecision)


class VersionSource(str, Enum):
    """Where a crate's effective version is declared."""

    LOCAL = "local"
    INHERITED = "inherited"


class WorkspaceRole(str, Enum):
    """A crate's relationship to its enclosing Cargo workspace."""

    STANDALONE = "standalone"
    ROOT = "root"
    MEMBER_INHERITED = "member_inherited"
    MEMBER_EXPLICIT = "member_explicit"


class WorkspaceContext(BaseModel):
    """Resolved workspace facts for one crate.

    Attributes:
        root_path: Directory holding the workspace root Cargo.toml, or None
            when the crate is standalone.
        members: Member patterns declared by the root, in declaration order.
        version_source: Whether the crate's version is local or inherited.
        role: The crate's relationship to the workspace.
        shared_version: Value of [workspace.package].version, if declared.
    """

    model_config = ConfigDict(frozen=True)

    root_path: Path | None = None
    members: list[str] = Field(default_factory=list)
    version_source: VersionSource = VersionSource.LOCAL
    role: WorkspaceRole = WorkspaceRole.STANDALONE
    shared_version: str | None = None


class UpdateSuccess(BaseModel):
    """A strategy applied the new version.

    Attributes:
        old_version: Version before the update.
        new_version: Version after the update.
        additional_files: Files touched besides the primary manifest. These
            are staged into the same commit.
        files_changed: False when the ecosystem keeps versions outside files
            (Go modules), so there is nothing to commit.
    """

    success: Literal[True] = True
    old_version: str
    new_version: str
    additional_files: list[Path] = Field(default_factory=list)
    files_changed: bool = True


class UpdateFailure(BaseModel):
    """A strategy could not apply the new version."""

    success: Literal[False] = False
    reason: str


UpdateOutcome = Union[UpdateSuccess, UpdateFailure]


class ChangeSummary(BaseModel):
    """The plan presented at the confirmation gate."""

    to_update: int
    to_skip: int
    commits: int
    tags: list[str] = Field(default_factory=list)


class PackageStatus(str, Enum):
    """Terminal state of one package in the execute phase."""

    UPDATED = "updated"
    UNCOMMITTED = "uncommitted"
    SKIPPED = "skipped"
    FAILED = "failed"


class PackageResult(BaseModel):
    """What happened to one package during execution."""

    descriptor: PackageDescriptor
    status: PackageStatus
    outcome: UpdateSuccess | UpdateFailure | None = None
    commit_id: str | None = None
    commit_error: str | None = None
    tag: str | None = None
    tag_error: str | None = None


class RunSummary(BaseModel):
    """Totals for one run.

    Attributes:
        total: Packages that reached the execute phase.
        updated: Packages patched and committed (or needing no commit).
        uncommitted: Packages patched whose commit failed.
        skipped: Packages already at their target version.
        failed: Packages whose patch failed.
        invalid: Descriptors rejected during analysis.
        commits: Commits created.
        tags: Tags created.
        tag_failures: Tags that could not be created.
        cancelled: True when the confirmation gate was declined.
    """

    model_config = ConfigDict(frozen=True)

    total: int = 0
    updated: int = 0
    uncommitted: int = 0
    skipped: int = 0
    failed: int = 0
    invalid: int = 0
    commits: int = 0
    tags: int = 0
    tag_failures: int = 0
    cancelled: bool = False
