"""Resolution outcomes: the Solution, the conflict report, and Resolution.

A ``Solution`` is the all-or-nothing result of a successful search. A
failed search produces a ``ConflictReport`` instead; no partial decisions
ever escape the solver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from lockstep.core.dependency.models import PackageId, PackageRange
from lockstep.core.dependency.state import Requirement
from lockstep.core.source.models import same_source
from lockstep.exceptions import LockstepError


# ---------------------------------------------------------------------------
# Solution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Solution:
    """A consistent assignment of one version per package name.

    Attributes:
        root: The root project's id. Not part of ``packages``.
        packages: Name -> selected id for the full transitive closure.
        features: Name -> enabled features (root included).
        dependencies: Name -> feature-expanded dependency ranges of each
            selected package (root included).
    """

    root: PackageId
    packages: Mapping[str, PackageId]
    features: Mapping[str, frozenset[str]] = field(default_factory=dict)
    dependencies: Mapping[str, tuple[PackageRange, ...]] = field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return name in self.packages

    def __len__(self) -> int:
        return len(self.packages)

    @property
    def names(self) -> list[str]:
        return sorted(self.packages)

    def get(self, name: str) -> PackageId | None:
        return self.packages.get(name)

    def lookup(self, name: str) -> PackageId | None:
        """Like ``get`` but also answers for the root package."""
        if name == self.root.name:
            return self.root
        return self.packages.get(name)

    @property
    def versions(self) -> dict[str, str]:
        """Name -> version string, sorted by name."""
        return {name: str(self.packages[name].version) for name in self.names}

    def violations(self) -> list[str]:
        """Every dependency edge the assignment fails to satisfy.

        An empty list means the solution is sound: each selected package's
        feature-expanded dependencies are present, from the declared source,
        at an allowed version, with the requested features enabled.
        """
        problems: list[str] = []
        for owner in [self.root.name, *self.names]:
            for dep in self.dependencies.get(owner, ()):
                target = self.lookup(dep.name)
                if target is None:
                    problems.append(f"{owner} requires {dep} but it is not selected")
                    continue
                if dep.name != self.root.name and not same_source(target.source, dep.source):
                    problems.append(
                        f"{owner} requires {dep} but {target} comes from "
                        f"{target.source.describe()}"
                    )
                elif not dep.constraint.allows(target.version):
                    problems.append(f"{owner} requires {dep} but {target} is selected")
                missing = dep.features - self.features.get(dep.name, frozenset())
                if missing:
                    problems.append(
                        f"{owner} requires features {sorted(missing)} of {dep.name}"
                    )
        return problems

    @property
    def is_sound(self) -> bool:
        return not self.violations()


# ---------------------------------------------------------------------------
# Conflict report
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConflictReport:
    """The incompatible constraints behind a failed resolution.

    Attributes:
        package: The package on which the search finally failed.
        causes: The requirements involved, each attributed to its declaring
            package, in a deterministic order.
        root: Name of the root project, used to pick out root constraints.
    """

    package: str
    causes: tuple[Requirement, ...]
    root: str = ""

    @classmethod
    def build(
        cls, package: str, causes: Iterable[Requirement], root: str = ""
    ) -> ConflictReport:
        unique = {req: None for req in causes}
        return cls(package, tuple(sorted(unique, key=lambda r: r.sort_key)), root)

    @property
    def packages(self) -> list[str]:
        """Names of every constrained package, sorted."""
        return sorted({req.name for req in self.causes})

    @property
    def requirers(self) -> list[str]:
        return sorted({req.requirer for req in self.causes})

    @property
    def root_requirements(self) -> tuple[Requirement, ...]:
        """The causes declared by the root project."""
        return tuple(req for req in self.causes if req.requirer == self.root)

    def constraints_on(self, name: str) -> list[str]:
        return [str(req.range.constraint) for req in self.causes if req.name == name]

    def involves(self, name: str) -> bool:
        return any(req.name == name or req.requirer == name for req in self.causes)

    def __str__(self) -> str:
        lines = [f"Version solving failed on {self.package}:"]
        lines.extend(f"  - {req}" for req in self.causes)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


@dataclass
class Resolution:
    """Result of one resolution run.

    Failures are explicit outcomes: ``success`` is False, ``solution`` is
    None, and ``error`` holds the exception that ended the run.

    Attributes:
        success: True if a solution was found.
        solution: The solution. None on failure.
        report: The conflict report for unsatisfiable constraints.
        error: The failure (``UnsatisfiableConstraints``,
            ``SearchLimitExceeded``, ``ResolutionCancelled`` or
            ``SourceConflict``).
        attempts: Candidate versions tried by the main search.
    """

    success: bool
    solution: Solution | None = None
    report: ConflictReport | None = None
    error: LockstepError | None = None
    attempts: int = 0

    @property
    def installed(self) -> dict[str, str]:
        """Mapping of package name -> resolved version. Empty on failure."""
        return self.solution.versions if self.solution is not None else {}

    @property
    def conflicts(self) -> list[str]:
        """Human-readable failure descriptions. Empty on success."""
        if self.report is not None:
            return [str(req) for req in self.report.causes]
        if self.error is not None:
            return [str(self.error)]
        return []
