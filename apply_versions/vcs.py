"""Git collaborator: staging, committing and tagging.

Each package's update becomes one commit containing its manifest and every
additional file the update touched. Tags are created on the commit that was
just made.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Iterable
from pathlib import Path

from .errors import GitOperationError, TagConflictError
from .shell import git

logger = logging.getLogger(__name__)


def _stderr(exc: subprocess.CalledProcessError) -> str:
    return (exc.stderr or exc.stdout or str(exc)).strip()


class GitRepository:
    """Git operations against one working tree.

    Args:
        root: Directory git commands run in. Defaults to the current
              directory.
    """

    def __init__(self, root: Path | None = None) -> None:
        self.root = root or Path.cwd()

    def _git(self, *args: str, check: bool = True) -> str:
        return git(*args, cwd=self.root, check=check)

    def is_repository(self) -> bool:
        """Check whether root is inside a git working tree."""
        try:
            return self._git("rev-parse", "--is-inside-work-tree") == "true"
        except (subprocess.CalledProcessError, FileNotFoundError):
            return False

    def fetch_tags(self) -> bool:
        """Fetch tags from all remotes.

        Failure (e.g., no remote configured) is tolerated so local-only
        repositories keep working.
        """
        try:
            self._git("fetch", "--tags", "--force")
        except subprocess.CalledProcessError as exc:
            logger.debug("Tag fetch failed: %s", _stderr(exc))
            return False
        return True

    def list_tags(self, pattern: str = "*") -> list[str]:
        """List local tags matching a glob pattern.

        Raises:
            GitOperationError: If git cannot list tags.
        """
        try:
            output = self._git("tag", "--list", pattern)
        except subprocess.CalledProcessError as exc:
            raise GitOperationError(f"Failed to list tags: {_stderr(exc)}") from exc
        return output.splitlines() if output else []

    def stage_and_commit(
        self, primary: Path, additional: Iterable[Path], message: str
    ) -> str:
        """Stage a package's files and commit them.

        Additional files that do not exist or cannot be staged (such as an
        absent lockfile) are skipped without failing the commit.

        Returns:
            The new commit's hash.

        Raises:
            GitOperationError: If staging the primary file or committing fails.
        """
        try:
            self._git("add", "--", str(primary))
        except subprocess.CalledProcessError as exc:
            raise GitOperationError(
                f"Failed to stage {primary}: {_stderr(exc)}"
            ) from exc

        for path in additional:
            if not Path(path).exists():
                logger.info("Skipping %s (file not found)", path)
                continue
            try:
                self._git("add", "--", str(path))
            except subprocess.CalledProcessError as exc:
                logger.info("Skipping %s (%s)", path, _stderr(exc))

        try:
            self._git("commit", "-m", message)
            return self._git("rev-parse", "HEAD")
        except subprocess.CalledProcessError as exc:
            raise GitOperationError(f"Failed to commit: {_stderr(exc)}") from exc

    def create_tag(self, name: str) -> None:
        """Create a lightweight tag on HEAD.

        Tags are fetched first so a tag that exists only on the remote is
        still detected.

        Raises:
            TagConflictError: If the tag exists or cannot be created.
        """
        self.fetch_tags()
        try:
            existing = self.list_tags(name)
        except GitOperationError as exc:
            raise TagConflictError(name, str(exc)) from exc
        if name in existing:
            raise TagConflictError(
                name, f"Tag {name} already exists", already_exists=True
            )
        try:
            self._git("tag", name)
        except subprocess.CalledProcessError as exc:
            raise TagConflictError(
                name, f"Failed to create tag {name}: {_stderr(exc)}"
            ) from exc


class PreviewGitRepository(GitRepository):
    """Git collaborator for dry runs.

    Reads (tag listing) go to the real repository so version lookups stay
    accurate. Writes are simulated.
    """

    def stage_and_commit(
        self, primary: Path, additional: Iterable[Path], message: str
    ) -> str:
        return "dry-run"

    def create_tag(self, name: str) -> None:
        return None
