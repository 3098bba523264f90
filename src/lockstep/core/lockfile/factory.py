"""Lockfile factory: constructing lockfiles from solver results.

``from_solution`` is the primary entry point in the normal workflow::

    resolution = DependencyResolver(manifest, registry).resolve()
    lockfile = Lockfile.from_resolution(resolution, manifest)
    lockfile.write(Path("lockstep.lock"))
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from lockstep.config import ResolutionMode
from lockstep.core.lockfile.models import (
    DIRECT_DEV,
    DIRECT_MAIN,
    DIRECT_OVERRIDDEN,
    TRANSITIVE,
    LockedPackage,
    LockfileMetadata,
)
from lockstep.exceptions import LockfileError

if TYPE_CHECKING:
    from lockstep.core.dependency.solution import Resolution, Solution
    from lockstep.core.manifest import Manifest


def _dependency_kinds(solution: Solution, root: Manifest | None) -> dict[str, str]:
    if root is None:
        direct = solution.dependencies.get(solution.root.name, ())
        return {dep.name: DIRECT_MAIN for dep in direct}
    kinds = {dep.name: DIRECT_DEV for dep in root.dev_dependencies}
    kinds.update({dep.name: DIRECT_MAIN for dep in root.dependencies})
    kinds.update({name: DIRECT_OVERRIDDEN for name in root.dependency_overrides})
    return kinds


def _from_solution(
    cls: type,
    solution: Solution,
    root: Manifest | None = None,
    mode: ResolutionMode = ResolutionMode.PREFER_LOCKED,
) -> Any:
    """Create a lockfile from a ``Solution``.

    Args:
        solution: The solver's assignment.
        root: The root manifest, used to classify direct dependencies. When
            omitted every package the root depends on counts as
            "direct main".
        mode: Resolution mode recorded in the metadata.

    Returns:
        A new ``Lockfile`` with one entry per selected package.
    """
    kinds = _dependency_kinds(solution, root)
    lf = cls()
    for name in solution.names:
        package = solution.packages[name]
        resolved: dict[str, str] = {}
        for dep in solution.dependencies.get(name, ()):
            target = solution.lookup(dep.name)
            if target is not None:
                resolved[dep.name] = str(target.version)
        lf.add_package(
            LockedPackage(
                name=name,
                version=str(package.version),
                source=package.source.to_dict(),
                fingerprint=package.fingerprint,
                dependency=kinds.get(name, TRANSITIVE),
                features=sorted(solution.features.get(name, frozenset())),
                dependencies=resolved,
            )
        )
    lf.metadata = LockfileMetadata(
        total_packages=lf.package_count,
        resolution_mode=mode.value,
        root=solution.root.name,
    )
    return lf


def _from_resolution(
    cls: type,
    resolution: Resolution,
    root: Manifest | None = None,
    mode: ResolutionMode = ResolutionMode.PREFER_LOCKED,
) -> Any:
    """Create a lockfile from a ``Resolution`` result.

    Raises:
        LockfileError: If the resolution was not successful.
    """
    if not resolution.success or resolution.solution is None:
        raise LockfileError(
            "Cannot create lockfile from failed resolution. "
            f"Conflicts: {resolution.conflicts}"
        )
    return _from_solution(cls, resolution.solution, root, mode)
