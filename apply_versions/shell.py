"""Shell and git utilities.

Provides a thin wrapper around subprocess for git invocations, plus output
formatting helpers.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path


def git(*args: str, cwd: Path | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        cwd: Directory to run git in. Defaults to the current directory.
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., fetch without
               a remote).

    Returns:
        Stripped stdout from the git command.

    Raises:
        subprocess.CalledProcessError: On non-zero exit when check is True.
    """
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=check
    )
    return result.stdout.strip()


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate the phases of a run in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def fatal(msg: str, code: int = 2) -> None:
    """Print an error message and exit.

    Use for unrecoverable errors that should halt the run before any
    package is touched.
    """
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(code)
