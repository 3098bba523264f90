"""Lockfile data models: LockedPackage and LockfileMetadata.

Defines the data structures of the ``lockstep.lock`` format. They are pure
data holders with no business logic, so any module can import them without
pulling in the solver.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Fingerprint format: "sha256:<64-hex-characters>" or a 40-hex git commit
# ---------------------------------------------------------------------------

_FINGERPRINT_RE = re.compile(r"^(sha256:[0-9a-f]{64}|[0-9a-f]{40})$")

# How a locked package entered the graph.
DIRECT_MAIN: str = "direct main"
DIRECT_DEV: str = "direct dev"
DIRECT_OVERRIDDEN: str = "direct overridden"
TRANSITIVE: str = "transitive"

DEPENDENCY_KINDS: frozenset[str] = frozenset(
    {DIRECT_MAIN, DIRECT_DEV, DIRECT_OVERRIDDEN, TRANSITIVE}
)


# ---------------------------------------------------------------------------
# LockedPackage: a single entry in the lockfile
# ---------------------------------------------------------------------------


@dataclass
class LockedPackage:
    """A single package entry in the lockfile.

    Attributes:
        name: Package name (e.g., "http").
        version: Resolved version string (e.g., "1.2.0").
        source: Source descriptor as written by ``Source.to_dict`` (e.g.,
            ``{"kind": "hosted", "url": "https://pub.dev"}``).
        fingerprint: Drift detector: ``sha256:<hex>`` archive or manifest
            checksum, or the resolved git commit.
        dependency: One of "direct main", "direct dev", "direct overridden"
            or "transitive".
        features: Enabled feature names, sorted.
        dependencies: Mapping of dependency name to resolved version.
    """

    name: str
    version: str
    source: dict[str, Any]
    fingerprint: str = ""
    dependency: str = TRANSITIVE
    features: list[str] = field(default_factory=list)
    dependencies: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# LockfileMetadata: top-level metadata section
# ---------------------------------------------------------------------------


@dataclass
class LockfileMetadata:
    """Metadata section of the lockfile.

    Attributes:
        total_packages: Expected number of package entries. Used during
            validation to detect incomplete writes.
        resolution_mode: The ``ResolutionMode`` value the lock was produced
            with, or "manual" for hand-authored lockfiles.
        root: Name of the root project.
    """

    total_packages: int = 0
    resolution_mode: str = "prefer-locked"
    root: str = ""
