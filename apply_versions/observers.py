"""Progress observers.

The pipeline reports every phase and package event to an observer.
ProgressObserver is a silent base; ConsoleObserver renders the events for a
terminal and asks the user to confirm the plan.
"""

from __future__ import annotations

from enum import Enum

import click

from .models import (
    ChangeSummary,
    PackageChange,
    PackageDescriptor,
    RunSummary,
    UpdateFailure,
    UpdateSuccess,
)
from .shell import step


class Phase(str, Enum):
    """Pipeline phases, in order."""

    ANALYZE = "analyze"
    CONFIRM = "confirm"
    EXECUTE = "execute"
    SUMMARIZE = "summarize"


class ProgressObserver:
    """Receives pipeline events. Every hook is a no-op by default.

    confirm() declines unless overridden, so an observer that cannot ask
    never approves changes by accident.
    """

    def on_phase_start(self, phase: Phase, count: int) -> None:
        pass

    def on_phase_complete(self, phase: Phase, changes: list[PackageChange]) -> None:
        pass

    def on_plan(self, summary: ChangeSummary) -> None:
        pass

    def confirm(self, summary: ChangeSummary) -> bool:
        return False

    def on_package_start(self, descriptor: PackageDescriptor) -> None:
        pass

    def on_package_complete(
        self, descriptor: PackageDescriptor, outcome: UpdateSuccess | UpdateFailure
    ) -> None:
        pass

    def on_package_skipped(self, descriptor: PackageDescriptor, reason: str) -> None:
        pass

    def on_commit(self, descriptor: PackageDescriptor, commit_id: str) -> None:
        pass

    def on_tag(self, descriptor: PackageDescriptor, tag: str) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass

    def on_complete(self, summary: RunSummary) -> None:
        pass


class ConsoleObserver(ProgressObserver):
    """Terminal output for a run.

    Args:
        dry_run: Prefix output to make clear nothing is written.
        auto_confirm: Skip the prompt (the pipeline approves on its own).
    """

    def __init__(self, dry_run: bool = False, auto_confirm: bool = False) -> None:
        self.dry_run = dry_run
        self.auto_confirm = auto_confirm

    @property
    def _prefix(self) -> str:
        return "[DRY RUN] " if self.dry_run else ""

    def on_phase_start(self, phase: Phase, count: int) -> None:
        if phase is Phase.ANALYZE:
            step(f"{self._prefix}Analyzing {count} packages")
        elif phase is Phase.EXECUTE:
            step(f"{self._prefix}Applying {count} version changes")

    def on_phase_complete(self, phase: Phase, changes: list[PackageChange]) -> None:
        if phase is not Phase.ANALYZE:
            return
        to_update = [c for c in changes if c.needs_update]
        to_skip = [c for c in changes if not c.needs_update]

        if to_update:
            click.echo("\nThe following packages will be updated:\n")
            click.echo(
                f"  {'Package':<32} {'Type':<6} {'Current':<14} {'New':<14} Tag"
            )
            for change in to_update:
                d = change.descriptor
                click.echo(
                    f"  {d.name:<32} {d.ecosystem.value:<6} "
                    f"{change.current_version:<14} {d.version:<14} "
                    f"{change.tag.name if change.tag.create else '-'}"
                )

        if to_skip:
            click.echo("\nThe following packages are already at target version:\n")
            for change in to_skip:
                d = change.descriptor
                click.echo(f"  • {d.name} ({d.ecosystem.value}) - {change.current_version}")

    def on_plan(self, summary: ChangeSummary) -> None:
        click.echo("\nSummary:")
        click.echo(f"  • {summary.to_update} packages will be updated")
        if summary.to_skip:
            click.echo(f"  • {summary.to_skip} packages will be skipped")
        click.echo(f"  • {summary.commits} commits will be created")
        if summary.tags:
            click.echo(
                f"  • {len(summary.tags)} Git tags will be created "
                f"({', '.join(summary.tags)})"
            )

    def confirm(self, summary: ChangeSummary) -> bool:
        if self.auto_confirm:
            return True
        return click.confirm("\nDo you want to proceed?", default=False)

    def on_package_start(self, descriptor: PackageDescriptor) -> None:
        click.echo(
            f"\n📦 {self._prefix}Processing {descriptor.name} ({descriptor.ecosystem.value})"
        )

    def on_package_complete(
        self, descriptor: PackageDescriptor, outcome: UpdateSuccess | UpdateFailure
    ) -> None:
        if isinstance(outcome, UpdateFailure):
            click.echo(f"  ✗ Failed: {outcome.reason}")
            return
        click.echo(f"  Current version: {outcome.old_version}")
        click.echo(f"  Target version:  {outcome.new_version}")
        verb = "Would update" if self.dry_run else "Updated"
        click.echo(f"  ✓ {verb} {descriptor.ecosystem.value} package")
        for path in outcome.additional_files:
            click.echo(f"    + {path}")

    def on_package_skipped(self, descriptor: PackageDescriptor, reason: str) -> None:
        click.echo(f"\n⊘ Skipping {descriptor.name} ({descriptor.ecosystem.value})")
        click.echo(f"  {reason}")

    def on_commit(self, descriptor: PackageDescriptor, commit_id: str) -> None:
        verb = "Would create" if self.dry_run else "Created"
        click.echo(f"  ✓ {verb} commit {commit_id[:12]}")

    def on_tag(self, descriptor: PackageDescriptor, tag: str) -> None:
        verb = "Would create" if self.dry_run else "Created"
        click.echo(f"  ✓ {verb} tag: {tag}")

    def on_error(self, message: str) -> None:
        click.echo(f"\n❌ Error: {message}", err=True)

    def on_complete(self, summary: RunSummary) -> None:
        if summary.cancelled:
            click.echo("\nOperation cancelled by user.")
            return
        step(f"{self._prefix}Summary")
        click.echo(f"  - {summary.updated} packages updated")
        if summary.uncommitted:
            click.echo(f"  - {summary.uncommitted} packages updated but not committed")
        if summary.skipped:
            click.echo(f"  - {summary.skipped} packages skipped")
        if summary.failed:
            click.echo(f"  - {summary.failed} packages failed")
        if summary.invalid:
            click.echo(f"  - {summary.invalid} packages could not be analyzed")
        click.echo(f"  - {summary.commits} commits created")
        if summary.tags:
            click.echo(f"  - {summary.tags} tags created")
        if summary.tag_failures:
            click.echo(f"  - {summary.tag_failures} tags failed")
        if self.dry_run:
            click.echo("\nNo changes were made.")
