"""CLI entry point for apply-versions."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from .config import (
    auto_filter,
    filter_by_path,
    load_package_entries,
    packages_for_directory,
    resolve_config_path,
    to_descriptor_entries,
    update_config_version,
)
from .errors import ApplyVersionsError
from .models import RunSummary
from .observers import ConsoleObserver
from .pipeline import run_apply
from .shell import fatal, step
from .vcs import GitRepository, PreviewGitRepository
from .versions import BUMP_PARTS, bump_version, is_valid_version

logger = logging.getLogger(__name__)

CONFIG_HELP = (
    "Path to versions.toml (default: search upwards from the current directory)."
)


class DefaultCommandGroup(click.Group):
    """A group that runs `apply` when no subcommand is named."""

    default_command = "apply"
    group_options = ("--help", "--version")

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        if not args or (
            args[0] not in self.commands and args[0] not in self.group_options
        ):
            args = [self.default_command, *args]
        return super().parse_args(ctx, args)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )


@contextmanager
def errors_as_exit() -> Iterator[None]:
    """Turn errors raised outside per-package isolation into exit code 2.

    The traceback is logged at DEBUG, so --verbose shows it.
    """
    try:
        yield
    except ApplyVersionsError as exc:
        logger.debug("Run aborted", exc_info=True)
        fatal(str(exc), code=2)


def exit_code(summary: RunSummary) -> int:
    """Map a run summary to the process exit code.

    0 when everything went through (or the user cancelled), 1 when some
    packages failed, could not be analyzed or were left uncommitted, 2 when
    nothing was processed at all.
    """
    if summary.cancelled:
        return 0
    if summary.failed or summary.uncommitted:
        return 1
    if summary.updated == 0 and summary.skipped == 0:
        return 2
    if summary.invalid:
        return 1
    return 0


def require_repository(git: GitRepository) -> None:
    if not git.is_repository():
        fatal(f"Not a git repository: {git.root}", code=2)


@click.group(cls=DefaultCommandGroup)
@click.version_option(package_name="apply-versions")
def cli() -> None:
    """Apply the versions declared in versions.toml across a polyglot monorepo."""


@cli.command()
@click.option("-c", "--config", type=click.Path(dir_okay=False), help=CONFIG_HELP)
@click.option("-d", "--dry-run", is_flag=True, help="Preview changes without applying them.")
@click.option("-y", "--yes", is_flag=True, help="Skip the confirmation prompt.")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output.")
@click.option(
    "-p",
    "--path",
    "target",
    help="Only process packages under this path.",
)
def apply(
    config: str | None, dry_run: bool, yes: bool, verbose: bool, target: str | None
) -> None:
    """Apply version changes from versions.toml (the default command)."""
    configure_logging(verbose)

    with errors_as_exit():
        config_path = resolve_config_path(config)
        config_dir = config_path.parent
        logger.debug("Configuration file: %s", config_path)

        entries = load_package_entries(config_path)
        if target:
            entries = filter_by_path(entries, config_dir, target)
            if not entries:
                fatal(f"No packages found under path: {target}", code=2)
        elif not config:
            entries = auto_filter(entries, config_dir)
        logger.debug("Found %d packages in configuration", len(entries))

        git_cls = PreviewGitRepository if dry_run else GitRepository
        git = git_cls(config_dir)
        if not dry_run:
            require_repository(git)

        summary = run_apply(
            to_descriptor_entries(entries, config_dir),
            git=git,
            observer=ConsoleObserver(dry_run=dry_run, auto_confirm=yes),
            dry_run=dry_run,
            auto_approve=yes,
        )

    sys.exit(exit_code(summary))


@cli.command()
@click.argument("part", type=click.Choice(BUMP_PARTS))
@click.option("-c", "--config", type=click.Path(dir_okay=False), help=CONFIG_HELP)
@click.option("-y", "--yes", is_flag=True, help="Skip the confirmation prompt.")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output.")
def bump(part: str, config: str | None, yes: bool, verbose: bool) -> None:
    """Bump the version of the package(s) in the current directory.

    The new version is written to versions.toml and then applied.
    """
    configure_logging(verbose)

    with errors_as_exit():
        config_path = resolve_config_path(config)
        config_dir = config_path.parent
        entries = load_package_entries(config_path)

        selected = packages_for_directory(entries, config_dir)
        if not selected:
            fatal(f"No package found for current directory: {Path.cwd()}", code=1)

        plan: list[tuple[dict, str]] = []
        for entry in selected:
            current = str(entry.get("version", ""))
            if not is_valid_version(current):
                fatal(f"Invalid version '{current}' for {entry.get('name')}", code=2)
            plan.append((entry, bump_version(current, part)))

        step(f"Packages to bump ({part})")
        for entry, new_version in plan:
            click.echo(f"  {entry.get('name')}")
            click.echo(f"    Path: {entry.get('path')}")
            click.echo(f"    {entry.get('version')} → {new_version}\n")

        if not yes and not click.confirm("Do you want to proceed?", default=False):
            click.echo("\nOperation cancelled by user.")
            return

        git = GitRepository(config_dir)
        require_repository(git)

        for entry, new_version in plan:
            update_config_version(config_path, str(entry.get("path")), new_version)
        click.echo(f"✓ Updated {config_path.name}")

        names = {entry.get("name") for entry, _ in plan}
        updated = [e for e in load_package_entries(config_path) if e.get("name") in names]
        summary = run_apply(
            to_descriptor_entries(updated, config_dir),
            git=git,
            observer=ConsoleObserver(auto_confirm=True),
            auto_approve=True,
        )

    sys.exit(exit_code(summary))


if __name__ == "__main__":
    cli()
