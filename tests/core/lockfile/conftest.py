"""Shared fixtures for lockfile tests."""

from __future__ import annotations

from typing import Callable

import pytest

from lockstep.core.lockfile import TRANSITIVE, LockedPackage, Lockfile


@pytest.fixture
def make_package() -> Callable[..., LockedPackage]:
    """Factory for hosted LockedPackage instances with a computed fingerprint."""

    def _make(
        name: str = "pkg",
        version: str = "1.0.0",
        content: str = "archive",
        dependency: str = TRANSITIVE,
        features: list[str] | None = None,
        dependencies: dict[str, str] | None = None,
        url: str = "https://pub.dev",
    ) -> LockedPackage:
        return LockedPackage(
            name=name,
            version=version,
            source={"kind": "hosted", "url": url},
            fingerprint=Lockfile.compute_integrity(content),
            dependency=dependency,
            features=features or [],
            dependencies=dependencies or {},
        )

    return _make


@pytest.fixture
def make_lockfile() -> Callable[..., Lockfile]:
    """Build a Lockfile pre-populated with the given packages."""

    def _make(*packages: LockedPackage, root: str = "app") -> Lockfile:
        lf = Lockfile()
        for package in packages:
            lf.add_package(package)
        lf.metadata.root = root
        return lf

    return _make
