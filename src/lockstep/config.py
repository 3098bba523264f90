"""Solver configuration and project-wide defaults.

``SolverConfig`` collects every knob the resolver reads. It is a frozen
dataclass so that a single instance can be shared between resolution runs;
use ``dataclasses.replace`` to derive variants.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from lockstep.core.version import Version

# File names used by the CLI and the path/sdk sources.
MANIFEST_NAME: str = "manifest.yaml"
LOCKFILE_NAME: str = "lockstep.lock"

# Registry used by hosted dependencies that do not name one.
DEFAULT_HOSTED_URL: str = "https://pub.dev"

# Environment variable that overrides DEFAULT_HOSTED_URL in the CLI.
HOSTED_URL_ENVVAR: str = "LOCKSTEP_HOSTED_URL"

DEFAULT_MAX_ATTEMPTS: int = 10_000


class ResolutionMode(Enum):
    """How a prior lockfile influences candidate ordering.

    PREFER_LOCKED tries the locked version first whenever it still satisfies
    every known constraint. PREFER_NEWEST ignores the lockfile and always
    tries the highest version first.
    """

    PREFER_LOCKED = "prefer-locked"
    PREFER_NEWEST = "prefer-newest"


@dataclass(frozen=True)
class SolverConfig:
    """Knobs for a single resolution run.

    Attributes:
        mode: Lock preference policy.
        unlock: Package names whose locked version is not preferred, as for
            an explicit ``upgrade <name>``.
        include_dev: Whether root dev dependencies take part in resolution.
        max_attempts: Upper bound on candidate versions tried before the
            search gives up with ``SearchLimitExceeded``.
        minimize_conflicts: Shrink the root requirement set of a failure
            report to a minimal unsatisfiable core.
        prefetch: Fetch version listings of newly queued packages in
            background threads.
        sdk_versions: Installed SDK versions, checked against each candidate
            manifest's ``environment`` block.
    """

    mode: ResolutionMode = ResolutionMode.PREFER_LOCKED
    unlock: frozenset[str] = frozenset()
    include_dev: bool = True
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    minimize_conflicts: bool = True
    prefetch: bool = False
    sdk_versions: Mapping[str, Version] = field(default_factory=dict)
