"""Change analysis: what each package is at, and what will happen to it.

Analysis is read-only. Each entry is validated, its strategy resolved, and
its current version read. Failures are raised per entry so the pipeline can
exclude that one package and carry on with the rest.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .ecosystems import Strategies
from .errors import ManifestNotFoundError, ValidationError
from .models import PackageChange, PackageDescriptor, TagDecision
from .versions import is_valid_version


def _describe_errors(entry: Mapping[str, Any], exc: PydanticValidationError) -> str:
    where = entry.get("relative_path") or entry.get("path") or "unknown"
    problems: list[str] = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "entry"
        if error["type"] == "missing":
            problems.append(f"missing required field '{field}'")
        else:
            problems.append(f"{field}: {error['msg']}")
    return f"Invalid package at path '{where}': {'; '.join(problems)}"


def validate_descriptor(entry: PackageDescriptor | Mapping[str, Any]) -> PackageDescriptor:
    """Turn a raw entry into a PackageDescriptor and check its path exists.

    Raises:
        ValidationError: If fields are missing or malformed, or the path
            does not exist.
    """
    if isinstance(entry, PackageDescriptor):
        descriptor = entry
    else:
        try:
            descriptor = PackageDescriptor.model_validate(entry)
        except PydanticValidationError as exc:
            raise ValidationError(_describe_errors(entry, exc)) from exc

    if not descriptor.path.exists():
        raise ValidationError(f"Path does not exist: {descriptor.path}")
    return descriptor


def analyze_package(
    entry: PackageDescriptor | Mapping[str, Any], strategies: Strategies
) -> PackageChange:
    """Produce the PackageChange for one entry.

    A tag is only planned when the package actually changes.

    Raises:
        ValidationError: Invalid entry, or the on-disk version is not semver.
        ManifestNotFoundError: The package's manifest is missing.
        PatchNotApplicableError: The manifest has no readable version.
    """
    descriptor = validate_descriptor(entry)
    strategy = strategies.for_ecosystem(descriptor.ecosystem)

    manifest = strategy.manifest_path(descriptor)
    if not manifest.is_file():
        raise ManifestNotFoundError(
            f"Package file not found for {descriptor.name} at {manifest}"
        )

    current = strategy.read_version(descriptor)
    if not is_valid_version(current):
        raise ValidationError(f"Invalid current version '{current}' in {manifest}")

    needs_update = current != descriptor.version
    decision = strategy.tag_decision(descriptor)
    return PackageChange(
        descriptor=descriptor,
        current_version=current,
        needs_update=needs_update,
        tag=decision if needs_update and decision.create else TagDecision(),
    )
