"""Version pipeline: analyze → confirm → execute → summarize.

This module orchestrates a run:
1. Analyze every package entry (read-only) into a PackageChange
2. Present the plan and wait for approval (automatic for dry runs and --yes)
3. Apply each change in turn: patch files, commit, tag
4. Tally the outcome

Execution is strictly sequential. Each package is patched, committed and
tagged before the next one starts, so every commit contains exactly one
package's files and the working tree never holds two packages' uncommitted
edits at once. A failure in one package is recorded and the run moves on.

Edits are not transactional: if the process dies between patching a
package's files and committing them, those edits stay in the working tree.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Union

from .analyzer import analyze_package
from .ecosystems import Strategies, build_strategies
from .errors import (
    ApplyVersionsError,
    ConfigurationError,
    GitOperationError,
    TagConflictError,
)
from .models import (
    ChangeSummary,
    PackageChange,
    PackageDescriptor,
    PackageResult,
    PackageStatus,
    RunSummary,
    UpdateFailure,
)
from .observers import Phase, ProgressObserver
from .vcs import GitRepository

logger = logging.getLogger(__name__)

Entry = Union[PackageDescriptor, Mapping[str, Any]]


def commit_message(descriptor: PackageDescriptor, old_version: str, new_version: str) -> str:
    """Build the commit message for one package's version change."""
    return (
        f"chore({descriptor.name}): bump version to {new_version}\n"
        "\n"
        f"- Updated {descriptor.ecosystem.value} package at {descriptor.relative_path}\n"
        f"- Previous version: {old_version}\n"
        f"- New version: {new_version}"
    )


def analyze_changes(
    entries: Sequence[Entry],
    strategies: Strategies,
    observer: ProgressObserver,
) -> tuple[list[PackageChange], int]:
    """Analyze every entry, excluding the ones that fail.

    Returns:
        Tuple of (changes in input order, number of rejected entries).
    """
    observer.on_phase_start(Phase.ANALYZE, len(entries))

    changes: list[PackageChange] = []
    invalid = 0
    for entry in entries:
        try:
            changes.append(analyze_package(entry, strategies))
        except (ApplyVersionsError, OSError, ValueError) as exc:
            name = entry.name if isinstance(entry, PackageDescriptor) else entry.get("name")
            observer.on_error(f"Failed to analyze {name or 'package'}: {exc}")
            invalid += 1

    observer.on_phase_complete(Phase.ANALYZE, changes)
    return changes, invalid


def create_change_summary(
    changes: Sequence[PackageChange], strategies: Strategies
) -> ChangeSummary:
    """Summarize the plan for the confirmation gate."""
    to_update = [c for c in changes if c.needs_update]
    return ChangeSummary(
        to_update=len(to_update),
        to_skip=len(changes) - len(to_update),
        commits=sum(
            1
            for c in to_update
            if strategies.for_ecosystem(c.descriptor.ecosystem).writes_files
        ),
        tags=[c.tag.name for c in to_update if c.tag.create and c.tag.name],
    )


def confirm_changes(
    summary: ChangeSummary,
    observer: ProgressObserver,
    *,
    auto_approve: bool,
) -> bool:
    """Present the plan and return whether execution may proceed."""
    observer.on_phase_start(Phase.CONFIRM, summary.to_update)
    observer.on_plan(summary)
    if auto_approve:
        return True
    return observer.confirm(summary)


def process_change(
    change: PackageChange,
    strategies: Strategies,
    git: GitRepository,
    observer: ProgressObserver,
    *,
    dry_run: bool = False,
) -> PackageResult:
    """Patch, commit and tag one package.

    A patch failure yields FAILED. A commit failure after a successful patch
    yields UNCOMMITTED and the edited files are left in place. A tag failure
    is recorded on an otherwise UPDATED result; the commit stands.
    """
    descriptor = change.descriptor
    observer.on_package_start(descriptor)
    strategy = strategies.for_ecosystem(descriptor.ecosystem)

    try:
        outcome = strategy.apply(descriptor, dry_run=dry_run)
    except (ApplyVersionsError, OSError, ValueError) as exc:
        logger.debug("Update of %s failed", descriptor.name, exc_info=True)
        outcome = UpdateFailure(reason=str(exc))
    observer.on_package_complete(descriptor, outcome)

    if isinstance(outcome, UpdateFailure):
        return PackageResult(
            descriptor=descriptor, status=PackageStatus.FAILED, outcome=outcome
        )

    commit_id = None
    if outcome.files_changed:
        message = commit_message(descriptor, outcome.old_version, outcome.new_version)
        try:
            commit_id = git.stage_and_commit(
                strategy.manifest_path(descriptor), outcome.additional_files, message
            )
        except GitOperationError as exc:
            observer.on_error(f"Failed to commit changes for {descriptor.name}: {exc}")
            return PackageResult(
                descriptor=descriptor,
                status=PackageStatus.UNCOMMITTED,
                outcome=outcome,
                commit_error=str(exc),
            )
        observer.on_commit(descriptor, commit_id)

    tag = None
    tag_error = None
    if change.tag.create and change.tag.name:
        try:
            git.create_tag(change.tag.name)
        except TagConflictError as exc:
            observer.on_error(f"Failed to create tag for {descriptor.name}: {exc}")
            tag_error = str(exc)
        else:
            observer.on_tag(descriptor, change.tag.name)
            tag = change.tag.name

    return PackageResult(
        descriptor=descriptor,
        status=PackageStatus.UPDATED,
        outcome=outcome,
        commit_id=commit_id,
        tag=tag,
        tag_error=tag_error,
    )


def execute_changes(
    changes: Sequence[PackageChange],
    strategies: Strategies,
    git: GitRepository,
    observer: ProgressObserver,
    *,
    dry_run: bool = False,
) -> list[PackageResult]:
    """Process every change, one package at a time, in input order."""
    observer.on_phase_start(Phase.EXECUTE, sum(1 for c in changes if c.needs_update))

    results: list[PackageResult] = []
    for change in changes:
        if not change.needs_update:
            observer.on_package_skipped(
                change.descriptor,
                f"Already at target version: {change.current_version}",
            )
            results.append(
                PackageResult(descriptor=change.descriptor, status=PackageStatus.SKIPPED)
            )
            continue
        results.append(
            process_change(change, strategies, git, observer, dry_run=dry_run)
        )

    observer.on_phase_complete(Phase.EXECUTE, list(changes))
    return results


def summarize(results: Sequence[PackageResult], invalid: int = 0) -> RunSummary:
    """Tally results into a RunSummary."""

    def count(status: PackageStatus) -> int:
        return sum(1 for r in results if r.status is status)

    return RunSummary(
        total=len(results),
        updated=count(PackageStatus.UPDATED),
        uncommitted=count(PackageStatus.UNCOMMITTED),
        skipped=count(PackageStatus.SKIPPED),
        failed=count(PackageStatus.FAILED),
        invalid=invalid,
        commits=sum(1 for r in results if r.commit_id),
        tags=sum(1 for r in results if r.tag),
        tag_failures=sum(1 for r in results if r.tag_error),
    )


def run_apply(
    entries: Sequence[Entry],
    *,
    git: GitRepository,
    observer: ProgressObserver,
    strategies: Strategies | None = None,
    dry_run: bool = False,
    auto_approve: bool = False,
) -> RunSummary:
    """Execute the full version pipeline.

    Args:
        entries: Package descriptors (or raw entries of the same shape), in
                 the order they should be processed.
        git: Git collaborator used for commits, tags and tag lookups.
        observer: Receives progress events and answers the confirmation.
        strategies: Ecosystem strategies; built from git when omitted.
        dry_run: Compute everything but write nothing. Implies approval.
        auto_approve: Skip the confirmation prompt.

    Returns:
        The run's summary. A declined confirmation returns a cancelled
        summary with nothing written.

    Raises:
        ConfigurationError: If entries is not a list of package entries.
    """
    if isinstance(entries, (str, bytes)) or not isinstance(entries, Sequence):
        raise ConfigurationError("Package entries must be a list")
    for entry in entries:
        if not isinstance(entry, (PackageDescriptor, Mapping)):
            raise ConfigurationError(f"Invalid package entry: {entry!r}")

    strategies = strategies or build_strategies(git)

    # Phase 1: Analysis
    changes, invalid = analyze_changes(entries, strategies, observer)
    if not changes:
        observer.on_error("No valid packages found to process")
        summary = RunSummary(invalid=invalid)
        observer.on_complete(summary)
        return summary

    # Phase 2: Confirmation
    plan = create_change_summary(changes, strategies)
    if not confirm_changes(plan, observer, auto_approve=auto_approve or dry_run):
        summary = RunSummary(invalid=invalid, cancelled=True)
        observer.on_complete(summary)
        return summary

    # Phase 3: Execution
    results = execute_changes(changes, strategies, git, observer, dry_run=dry_run)

    # Phase 4: Summary
    observer.on_phase_start(Phase.SUMMARIZE, len(results))
    summary = summarize(results, invalid)
    observer.on_complete(summary)
    return summary
