"""Format-preserving version patchers.

Two strategies are provided:

- A structured patch for JSON manifests (package.json, package-lock.json):
  the file is parsed, one field is set, and the document is written back
  with its original key order and indentation.
- A bounded-region text patch for TOML manifests (Cargo.toml): the edit is
  confined to one section window, from a table header to the next header,
  so comments, spacing and unrelated tables stay byte-identical.

Section windows are anchored on the exact header text. A deeper table that
shares a prefix (``[workspace.package.metadata]`` after
``[workspace.package]``) ends the window rather than extending it. Top-level
dotted keys (``package.version = "..."``) and quoted table names are not
recognized.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import NamedTuple

from .errors import ManifestNotFoundError, PatchNotApplicableError

_NEXT_HEADER = re.compile(
    r"^[ \t]*\[\[?[^\[\]\n]+\]\]?[ \t]*(?:#[^\n]*)?\r?$", re.MULTILINE
)
_VERSION_ASSIGNMENT = re.compile(
    r"^(?P<prefix>[ \t]*version[ \t]*=[ \t]*)(?P<quote>[\"'])"
    r"(?P<value>[^\"'\n]*)(?P=quote)",
    re.MULTILINE,
)
_JSON_INDENT = re.compile(r"^\{[ \t]*\r?\n(?P<indent>[ \t]+)\S")

# Dependency entries: `name = "1.0"` and `name = { version = "1.0", ... }`
_DEP_STRING = re.compile(
    r"^(?P<head>[ \t]*(?P<kq>[\"']?)(?P<key>[A-Za-z0-9_.-]+)(?P=kq)[ \t]*=[ \t]*)"
    r"(?P<quote>[\"'])(?P<req>[^\"'\n]*)(?P=quote)"
)
_DEP_TABLE = re.compile(
    r"^(?P<head>[ \t]*(?P<kq>[\"']?)(?P<key>[A-Za-z0-9_.-]+)(?P=kq)[ \t]*=[ \t]*)"
    r"\{(?P<body>[^\n]*)\}"
)
_INLINE_PACKAGE = re.compile(
    r"(?:^|,)[ \t]*package[ \t]*=[ \t]*[\"'](?P<name>[^\"']+)[\"']"
)
_INLINE_VERSION = re.compile(
    r"(?:^|,)[ \t]*(?P<prefix>version[ \t]*=[ \t]*)"
    r"(?P<quote>[\"'])(?P<req>[^\"'\n]*)(?P=quote)"
)
_REQUIREMENT = re.compile(r"^(?P<op>\^|~|==?|>=|<=|>|<)?(?P<space>[ \t]*)\d[\w.+-]*$")


class PatchResult(NamedTuple):
    """Outcome of a patch: the new content and whether anything changed."""

    content: str
    changed: bool


def read_manifest(path: Path) -> str:
    """Read a manifest without newline translation.

    Raises:
        ManifestNotFoundError: If the file does not exist.
    """
    try:
        with open(path, encoding="utf-8", newline="") as fh:
            return fh.read()
    except FileNotFoundError as exc:
        raise ManifestNotFoundError(f"File not found: {path}") from exc


def write_manifest(path: Path, content: str) -> None:
    """Write a manifest exactly as given (no newline translation)."""
    with open(path, "w", encoding="utf-8", newline="") as fh:
        fh.write(content)


def _header_pattern(section: str) -> re.Pattern[str]:
    parts = r"[ \t]*\.[ \t]*".join(re.escape(p) for p in section.split("."))
    return re.compile(
        rf"^[ \t]*\[[ \t]*{parts}[ \t]*\][ \t]*(?:#[^\n]*)?\r?$", re.MULTILINE
    )


def find_section_window(content: str, section: str) -> tuple[int, int] | None:
    """Locate the body of a TOML table.

    The window starts on the line after the ``[section]`` header and ends at
    the next line holding only a table or array-of-tables header, or at end
    of file. Continuation lines of multi-line arrays do not end it.

    Returns:
        (start, end) offsets into content, or None if the header is absent.
    """
    header = _header_pattern(section).search(content)
    if header is None:
        return None
    newline = content.find("\n", header.end())
    start = len(content) if newline == -1 else newline + 1
    nxt = _NEXT_HEADER.search(content, start)
    end = nxt.start() if nxt else len(content)
    return start, end


def read_section_version(content: str, section: str) -> str | None:
    """Read the first ``version = "..."`` inside a section, if any."""
    window = find_section_window(content, section)
    if window is None:
        return None
    match = _VERSION_ASSIGNMENT.search(content, *window)
    return match.group("value") if match else None


def _patch_window_version(
    content: str,
    window: tuple[int, int],
    transform: Callable[[str], str | None],
) -> PatchResult | None:
    """Rewrite the first version assignment in a window via transform.

    Returns None when the window holds no version assignment. transform may
    return None to leave the value alone.
    """
    match = _VERSION_ASSIGNMENT.search(content, *window)
    if match is None:
        return None
    old = match.group("value")
    new = transform(old)
    if new is None or new == old:
        return PatchResult(content, False)
    start, end = match.span("value")
    return PatchResult(content[:start] + new + content[end:], True)


def patch_section_version(content: str, section: str, new_version: str) -> PatchResult:
    """Replace the version value inside one TOML section.

    Args:
        content: Full file content.
        section: Dotted table name, e.g. "package" or "workspace.package".
        new_version: Value to write.

    Returns:
        PatchResult; changed is False when the value already matches.

    Raises:
        PatchNotApplicableError: If the section or its version assignment is
            missing.
    """
    window = find_section_window(content, section)
    if window is None:
        raise PatchNotApplicableError(f"No [{section}] section found")
    result = _patch_window_version(content, window, lambda _old: new_version)
    if result is None:
        raise PatchNotApplicableError(f"No version field found in [{section}] section")
    return result


def rewrite_requirement(requirement: str, new_version: str) -> str | None:
    """Point a single-version requirement at a new version.

    The comparison operator and spacing are kept: "^1.0.0" → "^2.0.0",
    "=1.0.0" → "=2.0.0". Compound requirements such as ">=1, <2" are not
    rewritten and yield None.
    """
    match = _REQUIREMENT.match(requirement.strip())
    if match is None:
        return None
    return f"{match.group('op') or ''}{match.group('space')}{new_version}"


def _patch_dependency_line(line: str, versions: Mapping[str, str]) -> str:
    table = _DEP_TABLE.match(line)
    if table:
        body = table.group("body")
        alias = _INLINE_PACKAGE.search(body)
        name = alias.group("name") if alias else table.group("key")
        if name not in versions:
            return line
        version = _INLINE_VERSION.search(body)
        if version is None:
            return line
        new_req = rewrite_requirement(version.group("req"), versions[name])
        if new_req is None:
            return line
        offset = table.start("body")
        start, end = version.span("req")
        return line[: offset + start] + new_req + line[offset + end :]

    string = _DEP_STRING.match(line)
    if string and string.group("key") in versions:
        new_req = rewrite_requirement(string.group("req"), versions[string.group("key")])
        if new_req is None:
            return line
        start, end = string.span("req")
        return line[:start] + new_req + line[end:]
    return line


def patch_dependency_versions(
    content: str, section: str, versions: Mapping[str, str]
) -> PatchResult:
    """Rewrite dependency pins inside one dependency table.

    Handles three spellings of an entry for a crate in versions:

    - ``core = "1.0.0"``
    - ``core = { version = "1.0.0", path = "crates/core" }`` (also when the
      key is a rename carrying ``package = "core"``)
    - a ``[section.core]`` sub-table with its own ``version`` line

    Only the version value changes; other keys, operators and formatting
    are kept. Entries inheriting from the workspace (``workspace = true``)
    have no version and are left alone. A missing section is not an error.
    """
    if not versions:
        return PatchResult(content, False)

    changed = False
    window = find_section_window(content, section)
    if window is not None:
        start, end = window
        lines = content[start:end].splitlines(keepends=True)
        patched = "".join(_patch_dependency_line(line, versions) for line in lines)
        if patched != content[start:end]:
            content = content[:start] + patched + content[end:]
            changed = True

    for name, new_version in versions.items():
        sub_window = find_section_window(content, f"{section}.{name}")
        if sub_window is None:
            continue
        result = _patch_window_version(
            content, sub_window, lambda old, v=new_version: rewrite_requirement(old, v)
        )
        if result is not None and result.changed:
            content = result.content
            changed = True

    return PatchResult(content, changed)


def read_json_version(content: str) -> str | None:
    """Read the top-level "version" field of a JSON manifest."""
    data = json.loads(content)
    version = data.get("version") if isinstance(data, dict) else None
    return str(version) if version is not None else None


def _json_indent(content: str) -> str | int:
    match = _JSON_INDENT.match(content)
    if match is None:
        return 2
    indent = match.group("indent")
    return indent if "\t" in indent else len(indent)


def patch_json_version(content: str, new_version: str) -> PatchResult:
    """Set the top-level "version" field of a JSON manifest.

    The document is reserialized with its original key order and indent,
    followed by a trailing newline. When the version already matches, the
    original content is returned untouched.

    Raises:
        PatchNotApplicableError: If the document has no "version" field.
    """
    data = json.loads(content)
    if not isinstance(data, dict) or "version" not in data:
        raise PatchNotApplicableError("No version field found")
    if data["version"] == new_version:
        return PatchResult(content, False)
    data["version"] = new_version
    return PatchResult(_dump_json(data, _json_indent(content)), True)


def patch_json_lockfile(content: str, new_version: str) -> PatchResult:
    """Set the package's own version inside a package-lock.json.

    Updates the top-level "version" and, for lockfile v2+, the root entry
    ``packages[""].version``. Dependency entries are not touched.
    """
    data = json.loads(content)
    if not isinstance(data, dict):
        return PatchResult(content, False)
    changed = False
    if "version" in data and data["version"] != new_version:
        data["version"] = new_version
        changed = True
    root_entry = data.get("packages", {}).get("")
    if isinstance(root_entry, dict) and root_entry.get("version") not in (
        None,
        new_version,
    ):
        root_entry["version"] = new_version
        changed = True
    if not changed:
        return PatchResult(content, False)
    return PatchResult(_dump_json(data, _json_indent(content)), True)


def _dump_json(data: object, indent: str | int) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False) + "\n"
