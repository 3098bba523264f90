"""Shared fixtures for CLI tests.

Provides a Click runner, a project directory factory and a YAML registry
index factory so commands can resolve offline with ``--index``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest
import yaml
from click.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Create a project directory containing ``manifest.yaml``."""

    def _make(dependencies: dict[str, Any] | None = None, **blocks: Any) -> Path:
        project = tmp_path / "project"
        project.mkdir(exist_ok=True)
        document: dict[str, Any] = {"name": "app", "version": "1.0.0"}
        if dependencies:
            document["dependencies"] = dependencies
        document.update(blocks)
        (project / "manifest.yaml").write_text(yaml.safe_dump(document), encoding="utf-8")
        return project

    return _make


@pytest.fixture
def make_index(tmp_path: Path) -> Callable[..., str]:
    """Write a YAML registry index and return its path.

    *packages* maps package names to ``{version: spec}`` mappings.
    """
    counter = {"n": 0}

    def _make(packages: dict[str, dict[str, Any]]) -> str:
        counter["n"] += 1
        path = tmp_path / f"index{counter['n']}.yaml"
        path.write_text(yaml.safe_dump({"packages": packages}), encoding="utf-8")
        return str(path)

    return _make
