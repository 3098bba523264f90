"""Shared fixtures for lockstep tests."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from lockstep.config import SolverConfig
from lockstep.core.dependency import DependencyResolver, Resolution
from lockstep.core.lockfile import Lockfile
from lockstep.core.manifest import Manifest
from lockstep.core.source.hosted import InMemoryIndex
from lockstep.core.source.registry import SourceRegistry


@pytest.fixture
def index() -> InMemoryIndex:
    """An empty in-memory registry at the default hosted URL."""
    return InMemoryIndex()


@pytest.fixture
def registry(index: InMemoryIndex) -> SourceRegistry:
    """Offline source registry serving hosted packages from ``index``."""
    return SourceRegistry.default(hosted_indexes={index.url: index}, index_factory=None)


@pytest.fixture
def make_root() -> Callable[..., Manifest]:
    """Factory for root manifests named ``app``."""

    def _make(dependencies: dict[str, Any] | None = None, **blocks: Any) -> Manifest:
        document: dict[str, Any] = {"name": "app", "version": "1.0.0"}
        if dependencies:
            document["dependencies"] = dependencies
        document.update(blocks)
        return Manifest.from_dict(document)

    return _make


@pytest.fixture
def resolve(registry: SourceRegistry) -> Callable[..., Resolution]:
    """Resolve a root manifest against ``registry``.

    Keyword arguments are ``SolverConfig`` fields.
    """

    def _resolve(
        root: Manifest, lockfile: Lockfile | None = None, **config: Any
    ) -> Resolution:
        return DependencyResolver(root, registry, lockfile, SolverConfig(**config)).resolve()

    return _resolve
