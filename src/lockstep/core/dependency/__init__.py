"""Dependency graph model and the backtracking version solver.

All public names are re-exported here so callers can write
``from lockstep.core.dependency import DependencyResolver, PackageRange``.

Problem
-------
Given the root's dependencies, each a ``PackageRange`` (name, source,
constraint, requested features), find a ``PackageId`` per package name such
that every selected package's feature-expanded dependencies are satisfied,
or report the constraints that make this impossible.
"""

from lockstep.core.dependency.models import (
    Feature,
    PackageId,
    PackageRange,
)
from lockstep.core.dependency.graph import DependencyGraph
from lockstep.core.dependency.state import (
    Conflict,
    Decision,
    Frame,
    Requirement,
    SolverState,
)
from lockstep.core.dependency.solution import (
    ConflictReport,
    Resolution,
    Solution,
)
from lockstep.core.dependency.resolver import (
    DependencyResolver,
    VersionSolver,
)

__all__ = [
    "Conflict",
    "ConflictReport",
    "Decision",
    "DependencyGraph",
    "DependencyResolver",
    "Feature",
    "Frame",
    "PackageId",
    "PackageRange",
    "Requirement",
    "Resolution",
    "Solution",
    "SolverState",
    "VersionSolver",
]
