"""Tests for apply_versions.observers."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from apply_versions.models import (
    ChangeSummary,
    PackageChange,
    PackageDescriptor,
    RunSummary,
    TagDecision,
    UpdateFailure,
    UpdateSuccess,
)
from apply_versions.observers import ConsoleObserver, Phase, ProgressObserver


@pytest.fixture
def descriptor(tmp_path: Path) -> PackageDescriptor:
    return PackageDescriptor(path=tmp_path, name="core", ecosystem="cargo", version="2.0.0")


class TestProgressObserver:
    """Tests for the no-op observer."""

    def test_declines_by_default(self) -> None:
        assert ProgressObserver().confirm(ChangeSummary(to_update=1, to_skip=0, commits=1)) is False


class TestConsoleObserver:
    """Tests for ConsoleObserver output."""

    def test_plan_table(
        self, descriptor: PackageDescriptor, capsys: pytest.CaptureFixture[str]
    ) -> None:
        change = PackageChange(
            descriptor=descriptor,
            current_version="1.0.0",
            needs_update=True,
            tag=TagDecision(create=True, name="v2.0.0"),
        )

        ConsoleObserver().on_phase_complete(Phase.ANALYZE, [change])

        out = capsys.readouterr().out
        assert "The following packages will be updated" in out
        assert "core" in out
        assert "v2.0.0" in out

    def test_plan_summary(self, capsys: pytest.CaptureFixture[str]) -> None:
        ConsoleObserver().on_plan(
            ChangeSummary(to_update=2, to_skip=1, commits=1, tags=["v1.0.0"])
        )
        out = capsys.readouterr().out
        assert "2 packages will be updated" in out
        assert "1 packages will be skipped" in out
        assert "1 Git tags will be created (v1.0.0)" in out

    def test_auto_confirm_does_not_prompt(self) -> None:
        with patch("apply_versions.observers.click.confirm") as confirm:
            assert ConsoleObserver(auto_confirm=True).confirm(
                ChangeSummary(to_update=1, to_skip=0, commits=1)
            )
        confirm.assert_not_called()

    def test_prompt_defaults_to_no(self) -> None:
        with patch("apply_versions.observers.click.confirm", return_value=False) as confirm:
            assert not ConsoleObserver().confirm(ChangeSummary(to_update=1, to_skip=0, commits=1))
        assert confirm.call_args.kwargs["default"] is False

    def test_package_outcomes(
        self, descriptor: PackageDescriptor, capsys: pytest.CaptureFixture[str]
    ) -> None:
        observer = ConsoleObserver(dry_run=True)
        observer.on_package_complete(
            descriptor,
            UpdateSuccess(
                old_version="1.0.0", new_version="2.0.0", additional_files=[Path("Cargo.toml")]
            ),
        )
        observer.on_package_complete(descriptor, UpdateFailure(reason="boom"))

        out = capsys.readouterr().out
        assert "Would update cargo package" in out
        assert "+ Cargo.toml" in out
        assert "Failed: boom" in out

    def test_errors_go_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        ConsoleObserver().on_error("Failed to analyze x")
        assert "Failed to analyze x" in capsys.readouterr().err

    def test_summary(self, capsys: pytest.CaptureFixture[str]) -> None:
        ConsoleObserver().on_complete(
            RunSummary(total=3, updated=1, failed=1, uncommitted=1, commits=1, tag_failures=1)
        )
        out = capsys.readouterr().out
        assert "1 packages updated" in out
        assert "1 packages failed" in out
        assert "1 packages updated but not committed" in out
        assert "1 tags failed" in out

    def test_cancelled(self, capsys: pytest.CaptureFixture[str]) -> None:
        ConsoleObserver().on_complete(RunSummary(cancelled=True))
        assert "Operation cancelled by user." in capsys.readouterr().out
