"""Backtracking version solver with conflict-directed backjumping.

The search walks a FIFO queue of pending requirements. Each requirement on
an undecided package opens a ``Frame``: the candidates allowed by every
constraint seen so far on that package, newest first (or the locked version
first, when the lock is still valid). Choosing a candidate folds its
feature-expanded dependencies into the queue.

A clash produces a ``Conflict`` carrying its *culprits*, the decisions
whose choice could have avoided it. Backtracking jumps straight to the most
recent culprit frame and discards every later frame, so decisions that
cannot influence the clash are never revisited. A frame that runs out of
candidates turns into a new conflict blaming its accumulated culprits and
the packages that constrained it. When no culprit frame is left the
constraints are unsatisfiable.

Frames store the immutable ``SolverState`` from before their decision, so
backtracking is "drop the suffix of the stack and resume", never "undo".
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Mapping, Sequence

from lockstep.config import ResolutionMode, SolverConfig
from lockstep.core.dependency.graph import DependencyGraph
from lockstep.core.dependency.models import PackageId, PackageRange
from lockstep.core.dependency.solution import ConflictReport, Resolution, Solution
from lockstep.core.dependency.state import (
    Conflict,
    Decision,
    Frame,
    Requirement,
    SolverState,
)
from lockstep.core.source.models import PathSource, Source, describe
from lockstep.core.version import ANY, VersionConstraint
from lockstep.exceptions import (
    ResolutionCancelled,
    ResolutionError,
    SearchLimitExceeded,
    SourceConflict,
    SourceQueryError,
    UnsatisfiableConstraints,
)

if TYPE_CHECKING:
    from lockstep.core.lockfile import Lockfile
    from lockstep.core.manifest import Manifest
    from lockstep.core.source.registry import SourceRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# VersionSolver: one search over one root requirement set
# ---------------------------------------------------------------------------


class VersionSolver:
    """Finds one version per package satisfying every constraint.

    Args:
        graph: Root requirements plus the feature and override rules.
        registry: Source registry answering listing and manifest queries.
        locked: Package name -> previously locked id, used as a preference.
        config: Solver knobs.
        cancel: Event that aborts the search at the next step when set.
        root_requirements: Replaces ``graph.root_requirements``. Used to
            re-solve subsets of the root constraints.

    A solver instance runs one search at a time and owns its decision stack;
    the registry may be shared between solvers.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        registry: SourceRegistry,
        locked: Mapping[str, PackageId] | None = None,
        config: SolverConfig | None = None,
        *,
        cancel: threading.Event | None = None,
        root_requirements: Sequence[PackageRange] | None = None,
    ) -> None:
        self._graph = graph
        self._registry = registry
        self._locked = dict(locked or {})
        self._config = config or SolverConfig()
        self._cancel = cancel
        self._root_requirements = tuple(
            graph.root_requirements if root_requirements is None else root_requirements
        )
        root = graph.root
        self._root_id = PackageId(root.name, root.version, PathSource("."))
        self._frames: list[Frame] = []
        self._candidate_cache: dict[tuple[str, str, str], tuple[PackageId, ...]] = {}
        self._restored: dict[str, PackageId | None] = {}
        self.attempts = 0

    @property
    def root_name(self) -> str:
        return self._root_id.name

    # -- Main loop ----------------------------------------------------------

    def solve(self) -> Solution:
        """Run the search.

        Returns:
            The solution.

        Raises:
            SourceConflict: If root declarations disagree on a source.
            UnsatisfiableConstraints: If no assignment exists.
            SearchLimitExceeded: If ``max_attempts`` candidates were tried.
            ResolutionCancelled: If the cancel event was set.
        """
        self._graph.check_sources(self._root_requirements)
        self._frames = []
        self.attempts = 0

        root = self._graph.root
        root_decision = Decision(
            self._root_id, self._graph.root_features, self._root_requirements
        )
        state = SolverState.initial(root_decision).enqueue(
            Requirement(dep, root.name, root.version) for dep in self._root_requirements
        )

        while state.pending:
            self._check_cancelled()
            requirement, state = state.pop()
            outcome = self._reconcile(requirement, state)
            if isinstance(outcome, Conflict):
                outcome = self._backjump(outcome)
            state = outcome

        solution = self._materialize(state)
        logger.info(
            "Resolved %d packages after %d attempts", len(solution), self.attempts
        )
        return solution

    def _check_cancelled(self) -> None:
        if self._cancel is not None and self._cancel.is_set():
            logger.info("Resolution cancelled after %d attempts", self.attempts)
            raise ResolutionCancelled("Resolution was cancelled")

    def _reconcile(
        self, requirement: Requirement, state: SolverState
    ) -> SolverState | Conflict:
        name = requirement.name
        if name == self.root_name:
            if requirement.range.constraint.allows(self._root_id.version):
                return state
            return self._conflict(state, name, [requirement])
        decision = state.decisions.get(name)
        if decision is not None:
            return self._reconcile_decided(requirement, decision, state)
        return self._decide(name, state)

    # -- Decided packages ---------------------------------------------------

    def _reconcile_decided(
        self, requirement: Requirement, decision: Decision, state: SolverState
    ) -> SolverState | Conflict:
        name = requirement.name
        package = decision.package
        if not requirement.range.allows(package):
            logger.debug("%s rejects selected %s", requirement, package)
            return self._conflict(state, name, state.requirements_on(name), decided=True)

        try:
            manifest = self._registry.fetch_manifest(package)
        except SourceQueryError as exc:
            logger.debug("Could not re-read manifest of %s: %s", package, exc)
            return self._conflict(state, name, [requirement], decided=True)
        ranges = [r.range for r in state.requirements_on(name)]
        if self._graph.missing_features(manifest, ranges):
            return self._conflict(state, name, [requirement], decided=True)

        features = self._graph.enabled_features(manifest, ranges)
        if features <= decision.features or (name, features) in state.expanded:
            return state
        added = self._graph.feature_delta(manifest, decision.features, features)
        logger.debug("Enabling features %s of %s", sorted(features - decision.features), package)
        return state.decide(
            Decision(package, features, decision.dependencies + added)
        ).enqueue(Requirement(dep, name, package.version) for dep in added)

    # -- Undecided packages -------------------------------------------------

    def _decide(self, name: str, state: SolverState) -> SolverState | Conflict:
        requirements = state.requirements_on(name)
        identities = {describe(name, r.range.source) for r in requirements}
        if len(identities) > 1:
            logger.debug("Sources disagree for %s: %s", name, sorted(identities))
            return self._conflict(state, name, requirements)

        constraint: VersionConstraint = ANY
        for requirement in requirements:
            constraint = constraint.intersect(requirement.range.constraint)
        if constraint.is_empty:
            logger.debug("No version of %s can satisfy every constraint", name)
            return self._conflict(state, name, requirements)

        candidates = self._candidates(name, requirements[0].range.source, constraint)
        if not candidates:
            logger.debug("No versions of %s match %s", name, constraint)
            return self._conflict(state, name, requirements)

        frame = Frame(name, state, candidates)
        self._frames.append(frame)
        advanced = self._advance(frame)
        if advanced is not None:
            return advanced
        self._frames.pop()
        return self._exhausted(frame)

    def _candidates(
        self, name: str, source: Source, constraint: VersionConstraint
    ) -> tuple[PackageId, ...]:
        """Allowed versions in preference order, memoized per constraint."""
        key = (name, source.describe(), str(constraint))
        cached = self._candidate_cache.get(key)
        if cached is not None:
            return cached

        try:
            listing = self._registry.list_versions(name, source)
        except SourceQueryError:
            listing = ()
        allowed = [p for p in listing if constraint.allows(p.version)]
        allowed.sort(
            key=lambda p: (not p.version.is_prerelease, p.version.sort_key),
            reverse=True,
        )

        preferred = self._preferred(name, source, constraint)
        if preferred is not None:
            allowed = [preferred] + [p for p in allowed if p != preferred]

        candidates = tuple(allowed)
        self._candidate_cache[key] = candidates
        return candidates

    def _preferred(
        self, name: str, source: Source, constraint: VersionConstraint
    ) -> PackageId | None:
        """The locked id of *name* if it may be tried first."""
        if self._config.mode is not ResolutionMode.PREFER_LOCKED:
            return None
        if name in self._config.unlock:
            return None
        locked = self._locked.get(name)
        if locked is None or locked.source.describe() != source.describe():
            return None
        if not constraint.allows(locked.version):
            return None
        if name not in self._restored:
            self._restored[name] = self._registry.restore(locked)
        return self._restored[name]

    def _advance(self, frame: Frame) -> SolverState | None:
        """Decide the next viable candidate of *frame*; None when exhausted."""
        while frame.remaining:
            self._check_cancelled()
            candidate, frame.remaining = frame.remaining[0], frame.remaining[1:]
            self.attempts += 1
            if self.attempts > self._config.max_attempts:
                raise SearchLimitExceeded(
                    f"Gave up after trying {self._config.max_attempts} candidate versions"
                )
            state = self._select(candidate, frame.before)
            if state is not None:
                logger.debug("Selected %s", candidate)
                return state
        return None

    def _select(self, candidate: PackageId, state: SolverState) -> SolverState | None:
        name = candidate.name
        requirements = state.requirements_on(name)
        rejected = [r for r in requirements if not r.range.constraint.allows(candidate.version)]
        if rejected:
            logger.debug("Skipping %s: rejected by %s", candidate, rejected[0])
            return None
        try:
            manifest = self._registry.fetch_manifest(candidate)
        except SourceQueryError as exc:
            logger.debug("Skipping %s: %s", candidate, exc)
            return None
        ranges = [r.range for r in requirements]
        missing = self._graph.missing_features(manifest, ranges)
        if missing:
            logger.debug("Skipping %s: no features %s", candidate, sorted(missing))
            return None
        if not self._environment_allows(manifest):
            logger.debug("Skipping %s: SDK environment mismatch", candidate)
            return None

        features = self._graph.enabled_features(manifest, ranges)
        dependencies = self._graph.expand(manifest, features)
        if self._config.prefetch:
            self._registry.prefetch(dependencies)
        return state.decide(Decision(candidate, features, dependencies)).enqueue(
            Requirement(dep, name, candidate.version) for dep in dependencies
        )

    def _environment_allows(self, manifest: Manifest) -> bool:
        for sdk, constraint in manifest.environment.items():
            installed = self._config.sdk_versions.get(sdk)
            if installed is not None and not constraint.allows(installed):
                return False
        return True

    # -- Conflicts and backjumping -----------------------------------------

    def _blame(self, state: SolverState, causes: Sequence[Requirement]) -> set[str]:
        """Decisions that produced *causes*.

        A requirement exists because its requirer was selected, and with the
        features its own requirers asked for.
        """
        culprits: set[str] = set()
        for requirement in causes:
            culprits.add(requirement.requirer)
            for upstream in state.requirements_on(requirement.requirer):
                if upstream.range.features or upstream.range.disabled_features:
                    culprits.add(upstream.requirer)
        culprits.discard(self.root_name)
        return culprits

    def _conflict(
        self,
        state: SolverState,
        name: str,
        causes: Sequence[Requirement],
        *,
        decided: bool = False,
    ) -> Conflict:
        culprits = self._blame(state, causes)
        if decided:
            culprits.add(name)
        return Conflict(name, frozenset(causes), frozenset(culprits))

    def _exhausted(self, frame: Frame) -> Conflict:
        requirements = frame.before.requirements_on(frame.name)
        culprits = (frame.culprits | self._blame(frame.before, requirements)) - {frame.name}
        logger.debug("Ran out of candidates for %s", frame.name)
        return Conflict(
            frame.name,
            frozenset(frame.causes) | frozenset(requirements),
            frozenset(culprits),
        )

    def _backjump(self, conflict: Conflict) -> SolverState:
        while True:
            self._check_cancelled()
            index = self._latest_frame(conflict.culprits)
            if index is None:
                report = ConflictReport.build(
                    conflict.package, conflict.causes, root=self.root_name
                )
                logger.info("Resolution failed on %s", conflict.package)
                raise UnsatisfiableConstraints(report)

            frame = self._frames[index]
            logger.debug(
                "Backjumping over %d decisions to %s",
                len(self._frames) - index - 1,
                frame.name,
            )
            del self._frames[index + 1 :]
            frame.culprits |= conflict.culprits - {frame.name}
            frame.causes |= conflict.causes

            state = self._advance(frame)
            if state is not None:
                return state
            self._frames.pop()
            conflict = self._exhausted(frame)

    def _latest_frame(self, culprits: frozenset[str]) -> int | None:
        for index in range(len(self._frames) - 1, -1, -1):
            if self._frames[index].name in culprits:
                return index
        return None

    # -- Result -------------------------------------------------------------

    def _materialize(self, state: SolverState) -> Solution:
        names = sorted(n for n in state.decisions if n != self.root_name)
        decisions = state.decisions
        return Solution(
            root=self._root_id,
            packages={n: decisions[n].package for n in names},
            features={n: decisions[n].features for n in [self.root_name, *names]},
            dependencies={
                n: decisions[n].dependencies for n in [self.root_name, *names]
            },
        )


# ---------------------------------------------------------------------------
# DependencyResolver: the public entry point
# ---------------------------------------------------------------------------


class DependencyResolver:
    """Resolves a root manifest against a source registry.

    Args:
        root: The root project's manifest.
        registry: Source registry for listings and manifests.
        lockfile: Prior lock record used as a preference.
        config: Solver knobs.
        cancel: Event that aborts resolution when set.

    Example::

        resolver = DependencyResolver(Manifest.load(Path(".")), registry)
        resolution = resolver.resolve()
        if resolution.success:
            print(resolution.installed)
    """

    def __init__(
        self,
        root: Manifest,
        registry: SourceRegistry,
        lockfile: Lockfile | None = None,
        config: SolverConfig | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> None:
        self._config = config or SolverConfig()
        self._graph = DependencyGraph(root, include_dev=self._config.include_dev)
        self._registry = registry
        self._locked = lockfile.preferences() if lockfile is not None else {}
        self._cancel = cancel

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    def solver(
        self, root_requirements: Sequence[PackageRange] | None = None
    ) -> VersionSolver:
        return VersionSolver(
            self._graph,
            self._registry,
            self._locked,
            self._config,
            cancel=self._cancel,
            root_requirements=root_requirements,
        )

    def resolve(self) -> Resolution:
        """Run resolution; every failure is returned, never raised.

        Returns:
            A ``Resolution``. On success ``solution`` holds the assignment;
            otherwise ``error`` holds the failure and, for unsatisfiable
            constraints, ``report`` names the conflicting constraints.
        """
        solver = self.solver()
        try:
            solution = solver.solve()
        except UnsatisfiableConstraints as exc:
            report = exc.report
            if self._config.minimize_conflicts:
                try:
                    report = self.minimize(report)
                except ResolutionError as minimize_exc:
                    logger.warning("Could not minimize conflict report: %s", minimize_exc)
            return Resolution(
                success=False,
                report=report,
                error=UnsatisfiableConstraints(report),
                attempts=solver.attempts,
            )
        except (SourceConflict, SearchLimitExceeded, ResolutionCancelled) as exc:
            return Resolution(success=False, error=exc, attempts=solver.attempts)
        return Resolution(success=True, solution=solution, attempts=solver.attempts)

    def minimize(self, report: ConflictReport) -> ConflictReport:
        """Shrink the root constraints of *report* to a minimal failing core.

        Each root requirement is dropped in turn; it stays dropped if the
        remaining set is still unsatisfiable. Removing any requirement of
        the resulting core makes resolution succeed.
        """
        core = list(self._graph.root_requirements)
        index = 0
        while index < len(core):
            trial = core[:index] + core[index + 1 :]
            if self._unsatisfiable(trial):
                core = trial
            else:
                index += 1

        try:
            self.solver(core).solve()
        except UnsatisfiableConstraints as exc:
            final = exc.report
        else:
            return report

        root = self._graph.root
        root_causes = [Requirement(dep, root.name, root.version) for dep in core]
        logger.debug("Minimal failing core: %s", ", ".join(str(d) for d in core))
        return ConflictReport.build(
            final.package, [*final.causes, *root_causes], root=root.name
        )

    def _unsatisfiable(self, root_requirements: Sequence[PackageRange]) -> bool:
        try:
            self.solver(root_requirements).solve()
        except UnsatisfiableConstraints:
            return True
        except (SourceConflict, SearchLimitExceeded):
            return False
        return False
