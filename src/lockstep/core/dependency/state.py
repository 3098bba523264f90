"""Immutable solver state and the decision stack frames.

Every transition of the search produces a new ``SolverState``; nothing is
mutated in place. A ``Frame`` remembers the state *before* its decision, so
backtracking to it is "drop every later frame and resume from its saved
state" rather than undoing changes one by one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from lockstep.core.dependency.models import PackageId, PackageRange
from lockstep.core.version import Version


@dataclass(frozen=True)
class Requirement:
    """A ``PackageRange`` together with the package that declared it.

    Attributes:
        range: The declared dependency.
        requirer: Name of the declaring package (the root's name for root
            declarations).
        requirer_version: Version of the declaring package.
    """

    range: PackageRange
    requirer: str
    requirer_version: Version | None = None

    @property
    def name(self) -> str:
        return self.range.name

    @property
    def sort_key(self) -> tuple:
        return (
            self.range.name,
            self.requirer,
            str(self.requirer_version or ""),
            str(self.range.constraint),
            self.range.source.describe(),
        )

    def __str__(self) -> str:
        who = self.requirer
        if self.requirer_version is not None:
            who = f"{who} {self.requirer_version}"
        return f"{who} depends on {self.range}"


@dataclass(frozen=True)
class Decision:
    """The solver's current choice for one package.

    Attributes:
        package: The selected id.
        features: Enabled features of the selected version.
        dependencies: Feature-expanded dependencies contributed so far.
    """

    package: PackageId
    features: frozenset[str] = frozenset()
    dependencies: tuple[PackageRange, ...] = ()


@dataclass(frozen=True)
class Conflict:
    """Why the current partial assignment cannot be extended.

    Attributes:
        package: The package on which the constraints clash.
        causes: Requirements involved in the clash.
        culprits: Names of decided packages whose choice produced the clash.
    """

    package: str
    causes: frozenset[Requirement]
    culprits: frozenset[str]


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(mapping)


@dataclass(frozen=True)
class SolverState:
    """One point of the search.

    Attributes:
        decisions: Package name -> current decision.
        pending: Requirements not yet reconciled, in FIFO order.
        requirements: Package name -> every requirement seen on it.
        expanded: (name, features) pairs whose dependencies are queued.
    """

    decisions: Mapping[str, Decision]
    pending: tuple[Requirement, ...] = ()
    requirements: Mapping[str, tuple[Requirement, ...]] = field(
        default_factory=lambda: _frozen({})
    )
    expanded: frozenset[tuple[str, frozenset[str]]] = frozenset()

    @classmethod
    def initial(cls, root: Decision) -> SolverState:
        return cls(decisions=_frozen({root.package.name: root}))

    def requirements_on(self, name: str) -> tuple[Requirement, ...]:
        return self.requirements.get(name, ())

    def pop(self) -> tuple[Requirement, SolverState]:
        head, rest = self.pending[0], self.pending[1:]
        return head, SolverState(self.decisions, rest, self.requirements, self.expanded)

    def enqueue(self, incoming: Iterable[Requirement]) -> SolverState:
        incoming = tuple(incoming)
        if not incoming:
            return self
        requirements = dict(self.requirements)
        for req in incoming:
            requirements[req.name] = requirements.get(req.name, ()) + (req,)
        return SolverState(
            self.decisions,
            self.pending + incoming,
            _frozen(requirements),
            self.expanded,
        )

    def decide(self, decision: Decision) -> SolverState:
        decisions = dict(self.decisions)
        decisions[decision.package.name] = decision
        expanded = self.expanded | {(decision.package.name, decision.features)}
        return SolverState(_frozen(decisions), self.pending, self.requirements, expanded)


@dataclass
class Frame:
    """One entry of the decision stack.

    Attributes:
        name: Package decided at this frame.
        before: State just before the decision.
        remaining: Candidates not tried yet, in preference order.
        culprits: Earlier decisions blamed for failures below this frame.
        causes: Requirements involved in those failures.
    """

    name: str
    before: SolverState
    remaining: tuple[PackageId, ...]
    culprits: set[str] = field(default_factory=set)
    causes: set[Requirement] = field(default_factory=set)
