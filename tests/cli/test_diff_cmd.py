"""Tests for ``lockstep diff`` command."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from lockstep.cli.main import cli


@pytest.fixture
def write_lock(tmp_path: Path):
    """Write a minimal lockfile from ``name -> version`` and return its path."""

    def _write(filename: str, **versions: str) -> str:
        path = tmp_path / filename
        document = {
            "packages": {
                name: {"version": version, "source": {"kind": "hosted", "url": "https://pub.dev"}}
                for name, version in versions.items()
            }
        }
        path.write_text(json.dumps(document), encoding="utf-8")
        return str(path)

    return _write


class TestDiffCommand:
    """Comparing two lockfiles."""

    def test_identical(self, runner: CliRunner, write_lock) -> None:
        old = write_lock("old.lock", a="1.0.0")
        new = write_lock("new.lock", a="1.0.0")
        result = runner.invoke(cli, ["diff", old, new])
        assert result.exit_code == 0
        assert "Lockfiles are identical." in result.output

    def test_text_changes(self, runner: CliRunner, write_lock) -> None:
        old = write_lock("old.lock", a="1.0.0", gone="0.1.0")
        new = write_lock("new.lock", a="1.1.0", fresh="2.0.0")
        result = runner.invoke(cli, ["diff", old, new])
        assert result.exit_code == 0
        for text in ("Lockfile Changes", "gone", "fresh", "1.1.0"):
            assert text in result.output

    def test_json(self, runner: CliRunner, write_lock) -> None:
        old = write_lock("old.lock", a="1.0.0", gone="0.1.0")
        new = write_lock("new.lock", a="1.1.0", fresh="2.0.0")
        result = runner.invoke(cli, ["diff", old, new, "--format", "json"])
        data = json.loads(result.output)
        assert data["added"] == ["fresh"]
        assert data["removed"] == ["gone"]
        assert data["changed"] == [
            {"field": "version", "name": "a", "new": "1.1.0", "old": "1.0.0"}
        ]

    def test_unreadable(self, runner: CliRunner, write_lock, tmp_path: Path) -> None:
        bad = tmp_path / "bad.lock"
        bad.write_text("not json", encoding="utf-8")
        result = runner.invoke(cli, ["diff", write_lock("ok.lock", a="1.0.0"), str(bad)])
        assert result.exit_code == 2
        assert "not valid JSON" in result.output

    def test_missing_file(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["diff", str(tmp_path / "a"), str(tmp_path / "b")])
        assert result.exit_code == 2
