"""Tests for ``lockstep lock`` command.

Verifies:
    - A resolvable project writes lockstep.lock and exits 0.
    - Unsatisfiable constraints exit 1 with a conflict report.
    - Invalid manifests, indexes and options exit 2.
    - A prior lockfile is preferred unless upgraded.
"""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from lockstep.cli.main import cli


class TestLockSuccess:
    """Resolvable projects."""

    def test_writes_lockfile(self, runner: CliRunner, make_project, make_index) -> None:
        project = make_project({"a": "^1.0.0"})
        index = make_index({"a": {"1.0.0": {}, "1.2.0": {}, "2.0.0": {}}})
        result = runner.invoke(cli, ["lock", str(project), "--index", index])
        assert result.exit_code == 0, result.output
        assert "Lockfile written to" in result.output
        data = json.loads((project / "lockstep.lock").read_text())
        assert data["packages"]["a"]["version"] == "1.2.0"
        assert data["packages"]["a"]["dependency"] == "direct main"
        assert data["metadata"]["root"] == "app"

    def test_json_output(self, runner: CliRunner, make_project, make_index) -> None:
        project = make_project({"a": "any"})
        index = make_index({"a": {"1.0.0": {"dependencies": {"b": "any"}}}, "b": {"0.1.0": {}}})
        result = runner.invoke(cli, ["lock", str(project), "--index", index, "--format", "json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["success"] is True
        assert data["installed"] == {"a": "1.0.0", "b": "0.1.0"}
        assert data["lockfile"].endswith("lockstep.lock")

    def test_custom_output(
        self, runner: CliRunner, make_project, make_index, tmp_path: Path
    ) -> None:
        project = make_project({"a": "any"})
        index = make_index({"a": {"1.0.0": {}}})
        out = tmp_path / "out" / "custom.lock"
        result = runner.invoke(cli, ["lock", str(project), "--index", index, "-o", str(out)])
        assert result.exit_code == 0
        assert out.exists()
        assert not (project / "lockstep.lock").exists()

    def test_no_dev(self, runner: CliRunner, make_project, make_index) -> None:
        project = make_project({"a": "any"}, dev_dependencies={"t": "any"})
        index = make_index({"a": {"1.0.0": {}}, "t": {"1.0.0": {}}})
        runner.invoke(cli, ["lock", str(project), "--index", index, "--no-dev"])
        data = json.loads((project / "lockstep.lock").read_text())
        assert sorted(data["packages"]) == ["a"]

    def test_sdk_version_filters_candidates(
        self, runner: CliRunner, make_project, make_index
    ) -> None:
        project = make_project({"a": "any"})
        index = make_index({
            "a": {
                "1.0.0": {"environment": {"flutter": ">=2.0.0 <4.0.0"}},
                "2.0.0": {"environment": {"flutter": ">=3.10.0 <4.0.0"}},
            }
        })
        result = runner.invoke(
            cli, ["lock", str(project), "--index", index, "--sdk", "flutter=3.0.0"]
        )
        assert result.exit_code == 0
        data = json.loads((project / "lockstep.lock").read_text())
        assert data["packages"]["a"]["version"] == "1.0.0"

    def test_deterministic_output(self, runner: CliRunner, make_project, make_index) -> None:
        project = make_project({"a": "any", "b": "any"})
        index = make_index({"a": {"1.0.0": {}}, "b": {"2.0.0": {}}})
        runner.invoke(cli, ["lock", str(project), "--index", index])
        first = (project / "lockstep.lock").read_bytes()
        (project / "lockstep.lock").unlink()
        runner.invoke(cli, ["lock", str(project), "--index", index])
        assert (project / "lockstep.lock").read_bytes() == first


class TestLockPreference:
    """Re-locking with an existing lockstep.lock."""

    def _locked_project(self, runner: CliRunner, make_project, make_index) -> tuple[Path, str]:
        project = make_project({"a": "^1.0.0"})
        runner.invoke(cli, ["lock", str(project), "--index", make_index({"a": {"1.0.0": {}}})])
        newer = make_index({"a": {"1.0.0": {}, "1.2.0": {}}})
        return project, newer

    def _locked_version(self, project: Path) -> str:
        return json.loads((project / "lockstep.lock").read_text())["packages"]["a"]["version"]

    def test_keeps_locked_version(self, runner: CliRunner, make_project, make_index) -> None:
        project, newer = self._locked_project(runner, make_project, make_index)
        result = runner.invoke(cli, ["lock", str(project), "--index", newer])
        assert result.exit_code == 0
        assert self._locked_version(project) == "1.0.0"

    def test_upgrade(self, runner: CliRunner, make_project, make_index) -> None:
        project, newer = self._locked_project(runner, make_project, make_index)
        runner.invoke(cli, ["lock", str(project), "--index", newer, "--upgrade", "a"])
        assert self._locked_version(project) == "1.2.0"

    def test_prefer_newest(self, runner: CliRunner, make_project, make_index) -> None:
        project, newer = self._locked_project(runner, make_project, make_index)
        runner.invoke(cli, ["lock", str(project), "--index", newer, "--mode", "prefer-newest"])
        assert self._locked_version(project) == "1.2.0"
        data = json.loads((project / "lockstep.lock").read_text())
        assert data["metadata"]["resolution_mode"] == "prefer-newest"

    def test_corrupt_lock_ignored(self, runner: CliRunner, make_project, make_index) -> None:
        project = make_project({"a": "any"})
        (project / "lockstep.lock").write_text("{broken", encoding="utf-8")
        result = runner.invoke(
            cli, ["lock", str(project), "--index", make_index({"a": {"1.0.0": {}}})]
        )
        assert result.exit_code == 0
        assert self._locked_version(project) == "1.0.0"


class TestLockFailure:
    """Unsatisfiable projects exit 1."""

    def _conflicting(self, make_project, make_index) -> tuple[Path, str]:
        project = make_project({"a": "^1.0.0", "b": "^1.0.0"})
        index = make_index({
            "a": {"1.0.0": {}, "2.0.0": {}},
            "b": {"1.0.0": {"dependencies": {"a": "^2.0.0"}}},
        })
        return project, index

    def test_exit_code_and_report(self, runner: CliRunner, make_project, make_index) -> None:
        project, index = self._conflicting(make_project, make_index)
        result = runner.invoke(cli, ["lock", str(project), "--index", index])
        assert result.exit_code == 1
        assert "Resolution failed" in result.output
        assert "Conflict on" in result.output
        assert not (project / "lockstep.lock").exists()

    def test_json_report(self, runner: CliRunner, make_project, make_index) -> None:
        project, index = self._conflicting(make_project, make_index)
        result = runner.invoke(cli, ["lock", str(project), "--index", index, "--format", "json"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["success"] is False
        constraints = {c["constraint"] for c in data["report"]["causes"] if c["package"] == "a"}
        assert constraints == {"^1.0.0", "^2.0.0"}

    def test_attempt_limit(self, runner: CliRunner, make_project, make_index) -> None:
        project = make_project({"a": "^1.0.0"})
        index = make_index({
            "a": {
                "1.0.0": {"dependencies": {"b": ">=1.0.0 <2.0.0"}},
                "1.1.0": {"dependencies": {"b": ">=2.0.0 <3.0.0"}},
            },
            "b": {"1.5.0": {}},
        })
        result = runner.invoke(
            cli, ["lock", str(project), "--index", index, "--max-attempts", "1", "--format", "json"]
        )
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["report"] is None
        assert "Gave up" in data["error"]


class TestLockInvalidInput:
    """Bad input exits 2."""

    def test_missing_manifest(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["lock", str(tmp_path)])
        assert result.exit_code == 2
        assert "could not load manifest" in result.output

    def test_invalid_manifest(self, runner: CliRunner, tmp_path: Path) -> None:
        (tmp_path / "manifest.yaml").write_text("version: 1.0.0\n", encoding="utf-8")
        assert runner.invoke(cli, ["lock", str(tmp_path)]).exit_code == 2

    def test_invalid_index(self, runner: CliRunner, make_project, tmp_path: Path) -> None:
        project = make_project({"a": "any"})
        bad = tmp_path / "bad.yaml"
        bad.write_text("packages: [nope\n", encoding="utf-8")
        result = runner.invoke(cli, ["lock", str(project), "--index", str(bad)])
        assert result.exit_code == 2
        assert "could not load index" in result.output

    def test_invalid_sdk_option(self, runner: CliRunner, make_project, make_index) -> None:
        project = make_project({"a": "any"})
        result = runner.invoke(
            cli, ["lock", str(project), "--index", make_index({}), "--sdk", "flutter"]
        )
        assert result.exit_code == 2

    def test_invalid_mode(self, runner: CliRunner, make_project) -> None:
        result = runner.invoke(cli, ["lock", str(make_project()), "--mode", "fastest"])
        assert result.exit_code == 2

