"""Tests for CLI output formatting helpers.

Verifies:
    - Advisory level style mapping.
    - JSON converters for conflict reports and advisories.
    - Output functions produce non-empty output without errors.
"""

from __future__ import annotations

import logging

import pytest

from lockstep.cli.output import (
    advisory_to_json,
    configure_logging,
    level_style,
    print_advisories,
    print_conflict_report,
    print_lock_diff,
    print_resolution_summary,
    report_to_json,
)
from lockstep.core.dependency import ConflictReport, PackageRange, Requirement
from lockstep.core.source import HostedSource
from lockstep.core.version import Version, parse_constraint
from lockstep.validator import Advisory, AdvisoryLevel


@pytest.fixture
def report() -> ConflictReport:
    hosted = HostedSource("https://pub.dev")
    return ConflictReport.build(
        "a",
        [
            Requirement(PackageRange("a", hosted, parse_constraint("^1.0.0")), "app", Version(1, 0, 0)),
            Requirement(PackageRange("a", hosted, parse_constraint("^2.0.0")), "b", Version(1, 0, 0)),
        ],
        root="app",
    )


class TestLevelStyles:
    """Advisory level to Rich style."""

    def test_error_is_bold_red(self) -> None:
        assert level_style(AdvisoryLevel.ERROR) == "bold red"

    def test_warning_is_yellow(self) -> None:
        assert level_style(AdvisoryLevel.WARNING) == "yellow"


class TestJsonConverters:
    """Machine-readable output shapes."""

    def test_report_to_json(self, report: ConflictReport) -> None:
        data = report_to_json(report)
        assert data["package"] == "a"
        assert [c["constraint"] for c in data["causes"]] == ["^1.0.0", "^2.0.0"]
        assert data["causes"][0]["required_by"] == "app"
        assert data["causes"][1]["required_by_version"] == "1.0.0"
        assert data["causes"][0]["source"] == "hosted:https://pub.dev"

    def test_advisory_to_json(self) -> None:
        advisory = Advisory(AdvisoryLevel.WARNING, "no-constraint", "a", "No constraint")
        assert advisory_to_json(advisory) == {
            "level": "WARNING",
            "code": "no-constraint",
            "package": "a",
            "message": "No constraint",
            "suggestion": "",
        }


class TestPrinters:
    """Rich printers write to stdout."""

    def test_success_summary(self, capsys: pytest.CaptureFixture[str]) -> None:
        print_resolution_summary(True, {"http": "1.2.0"}, [])
        out = capsys.readouterr().out
        assert "Resolution successful" in out
        assert "http" in out

    def test_empty_success_summary(self, capsys: pytest.CaptureFixture[str]) -> None:
        print_resolution_summary(True, {}, [])
        assert "No dependencies to resolve." in capsys.readouterr().out

    def test_failure_summary(self, capsys: pytest.CaptureFixture[str]) -> None:
        print_resolution_summary(False, {}, ["Gave up"])
        out = capsys.readouterr().out
        assert "Resolution failed" in out
        assert "Gave up" in out

    def test_conflict_report(
        self, report: ConflictReport, capsys: pytest.CaptureFixture[str]
    ) -> None:
        print_conflict_report(report)
        out = capsys.readouterr().out
        assert "Conflict on a" in out
        assert "b 1.0.0" in out

    def test_advisories(self, capsys: pytest.CaptureFixture[str]) -> None:
        print_advisories([
            Advisory(AdvisoryLevel.ERROR, "sdk-source", "flutter", "Use the SDK"),
            Advisory(AdvisoryLevel.WARNING, "single-version", "a", "Pinned", "dependencies:\n  a: ^1.0.0"),
        ])
        out = capsys.readouterr().out
        assert "sdk-source" in out
        assert "For example" in out
        assert "1" in out and "errors" in out

    def test_no_advisories(self, capsys: pytest.CaptureFixture[str]) -> None:
        print_advisories([])
        assert "No issues found." in capsys.readouterr().out

    def test_lock_diff(self, capsys: pytest.CaptureFixture[str]) -> None:
        print_lock_diff({
            "added": ["new"],
            "removed": [],
            "changed": [{
                "name": "a",
                "field": "source",
                "old": {"kind": "hosted", "url": "https://pub.dev"},
                "new": {"kind": "git", "url": "https://x/a.git", "ref": None},
            }],
        })
        out = capsys.readouterr().out
        assert "new" in out
        assert "kind=git" in out


class TestConfigureLogging:
    """Verbosity maps to the ``lockstep`` logger level."""

    @pytest.mark.parametrize(
        "verbosity, level",
        [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG), (5, logging.DEBUG)],
    )
    def test_levels(self, verbosity: int, level: int) -> None:
        configure_logging(verbosity)
        logger = logging.getLogger("lockstep")
        assert logger.level == level
        assert len(logger.handlers) == 1
        assert logger.propagate is False
