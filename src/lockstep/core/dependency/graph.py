"""Dependency graph model: root requirements and feature expansion.

``DependencyGraph`` holds the facts the solver starts from -- the root
manifest's dependencies, its overrides -- and the rules for turning a
selected package into the dependency edges it contributes:

- **Feature expansion.** A package's dependency set is its base
  dependencies plus those of every enabled feature. A default feature is
  enabled unless every declaration on the package disables it; requested
  features are enabled; ``requires`` pulls in further features of the same
  package. The closure uses a visited set, so features that require each
  other terminate.
- **Overrides.** A root ``dependency_overrides`` entry replaces the source
  and constraint of every declaration of that package.
- **Source consistency.** Two declarations of one name must describe the
  same source.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Iterable, Sequence

from lockstep.core.dependency.models import PackageRange
from lockstep.core.source.models import describe
from lockstep.exceptions import SourceConflict

if TYPE_CHECKING:
    from lockstep.core.manifest import Manifest


class DependencyGraph:
    """Root requirements plus the feature and override rules.

    Args:
        root: The root project's manifest.
        include_dev: Whether root dev dependencies are resolved.

    Thread safety: instances are immutable after construction.
    """

    def __init__(self, root: Manifest, *, include_dev: bool = True) -> None:
        self._root = root
        self._include_dev = include_dev
        self._overrides = dict(root.dependency_overrides)

    @property
    def root(self) -> Manifest:
        return self._root

    @property
    def overrides(self) -> dict[str, PackageRange]:
        return dict(self._overrides)

    @property
    def declared_requirements(self) -> tuple[PackageRange, ...]:
        """Root dependencies as written, before features and overrides."""
        declared = list(self._root.dependencies)
        if self._include_dev:
            declared.extend(self._root.dev_dependencies)
        return tuple(declared)

    @property
    def root_features(self) -> frozenset[str]:
        """Root features that are on: its defaults, closed over ``requires``."""
        return self.enabled_features(self._root, ())

    @property
    def root_requirements(self) -> tuple[PackageRange, ...]:
        """Everything the root requires, with overrides applied."""
        ranges = list(self.declared_requirements)
        ranges.extend(self._feature_dependencies(self._root, self.root_features))
        return tuple(self.apply_override(r) for r in ranges)

    # -- Overrides ----------------------------------------------------------

    def apply_override(self, dep: PackageRange) -> PackageRange:
        """Replace *dep*'s source and constraint with the root override, if any."""
        override = self._overrides.get(dep.name)
        if override is None:
            return dep
        return PackageRange(
            dep.name,
            override.source,
            override.constraint,
            dep.features | override.features,
            dep.disabled_features,
        )

    # -- Consistency --------------------------------------------------------

    @staticmethod
    def check_sources(ranges: Iterable[PackageRange]) -> None:
        """Fail if two ranges on the same name describe different sources.

        Raises:
            SourceConflict: Naming the first inconsistent package.
        """
        seen: dict[str, set[str]] = {}
        for dep in ranges:
            seen.setdefault(dep.name, set()).add(describe(dep.name, dep.source))
        for name in sorted(seen):
            if len(seen[name]) > 1:
                raise SourceConflict(name, list(seen[name]))

    # -- Features -----------------------------------------------------------

    @staticmethod
    def enabled_features(
        manifest: Manifest, ranges: Sequence[PackageRange]
    ) -> frozenset[str]:
        """Features of *manifest* that are on, given every declaration on it.

        Requested names the manifest does not define are ignored here; see
        ``missing_features``.
        """
        requested: set[str] = set()
        for dep in ranges:
            requested |= dep.features
        start: list[str] = []
        for name, feature in manifest.features.items():
            disabled_everywhere = bool(ranges) and all(
                name in dep.disabled_features for dep in ranges
            )
            if name in requested or (feature.default and not disabled_everywhere):
                start.append(name)

        enabled: set[str] = set()
        queue = deque(start)
        while queue:
            name = queue.popleft()
            if name in enabled or name not in manifest.features:
                continue
            enabled.add(name)
            queue.extend(manifest.features[name].requires)
        return frozenset(enabled)

    @staticmethod
    def missing_features(
        manifest: Manifest, ranges: Sequence[PackageRange]
    ) -> frozenset[str]:
        """Requested feature names *manifest* does not define."""
        requested: set[str] = set()
        for dep in ranges:
            requested |= dep.features
        return frozenset(requested - set(manifest.features))

    @staticmethod
    def _feature_dependencies(
        manifest: Manifest, enabled: Iterable[str]
    ) -> list[PackageRange]:
        wanted = set(enabled)
        deps: list[PackageRange] = []
        # Declaration order keeps expansion deterministic.
        for name, feature in manifest.features.items():
            if name in wanted:
                deps.extend(feature.dependencies)
        return deps

    def expand(
        self, manifest: Manifest, enabled: Iterable[str]
    ) -> tuple[PackageRange, ...]:
        """Base dependencies of *manifest* plus those of *enabled* features.

        Overrides are applied to every returned range.
        """
        ranges = list(manifest.dependencies)
        ranges.extend(self._feature_dependencies(manifest, enabled))
        return tuple(self.apply_override(r) for r in ranges)

    def feature_delta(
        self, manifest: Manifest, before: Iterable[str], after: Iterable[str]
    ) -> tuple[PackageRange, ...]:
        """Dependencies contributed by features in *after* but not *before*."""
        added = set(after) - set(before)
        return tuple(
            self.apply_override(r) for r in self._feature_dependencies(manifest, added)
        )
