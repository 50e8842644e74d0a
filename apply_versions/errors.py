"""Exception types for apply-versions.

Configuration errors abort a run before any package is analyzed. Every other
error is scoped to a single package: the pipeline records it against that
package's result and moves on to the next one.
"""

from __future__ import annotations


class ApplyVersionsError(Exception):
    """Base class for all apply-versions errors."""


class ConfigurationError(ApplyVersionsError):
    """The versions.toml manifest is missing or malformed."""


class ValidationError(ApplyVersionsError):
    """A single package entry has missing or malformed fields."""


class UnsupportedEcosystemError(ValidationError):
    """A package entry names an ecosystem with no registered strategy."""


class ManifestNotFoundError(ApplyVersionsError, FileNotFoundError):
    """A package's manifest file (or its workspace root) is absent."""


class PatchNotApplicableError(ApplyVersionsError):
    """The version field could not be located in its expected region.

    Distinct from the no-op case where the field already holds the target
    version, which is reported as an unchanged patch instead.
    """


class GitOperationError(ApplyVersionsError):
    """Staging or committing failed after the files were patched."""


class TagConflictError(ApplyVersionsError):
    """A tag could not be created.

    Attributes:
        tag: The tag name that was requested.
        already_exists: True when the tag was already present.
    """

    def __init__(self, tag: str, message: str, *, already_exists: bool = False):
        super().__init__(message)
        self.tag = tag
        self.already_exists = already_exists
