"""Package ranges, features, and package ids.

These are the read-only facts the solver works with. ``PackageRange`` is a
declared dependency edge, ``Feature`` an optional named group of extra
dependencies, and ``PackageId`` one concrete version of a package from one
source.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from lockstep.core.source.models import Source, SourceKind, same_source
from lockstep.core.version import ANY, Version, VersionConstraint


@dataclass(frozen=True)
class PackageRange:
    """A dependency on package ``name`` from ``source`` within ``constraint``.

    Attributes:
        name: Package name.
        source: Where the package must come from.
        constraint: Versions the declaring package accepts.
        features: Feature names the declaring package asks to enable.
        disabled_features: Default features the declaring package opts out of.
            A default feature stays on unless every declaration disables it.
    """

    name: str
    source: Source
    constraint: VersionConstraint = ANY
    features: frozenset[str] = frozenset()
    disabled_features: frozenset[str] = frozenset()

    def allows(self, package: PackageId) -> bool:
        """True if *package* has this range's name, source, and an allowed version."""
        return (
            package.name == self.name
            and same_source(package.source, self.source)
            and self.constraint.allows(package.version)
        )

    def __str__(self) -> str:
        text = f"{self.name} {self.constraint}"
        if self.source.kind is not SourceKind.HOSTED:
            text += f" ({self.source.describe()})"
        if self.features:
            text += " [" + ", ".join(sorted(self.features)) + "]"
        return text


@dataclass(frozen=True)
class Feature:
    """An optional named subset of a package's dependencies.

    Attributes:
        name: Feature name.
        default: Whether the feature is on unless disabled.
        dependencies: Extra dependencies activated with the feature, in
            declaration order.
        requires: Other features of the same package this one turns on.
    """

    name: str
    default: bool = False
    dependencies: tuple[PackageRange, ...] = ()
    requires: tuple[str, ...] = ()


@dataclass(frozen=True)
class PackageId:
    """One concrete package version: the unit the solver assigns.

    Attributes:
        name: Package name.
        version: Selected version.
        source: Origin of the package.
        fingerprint: Content or identity token used to detect drift
            (``sha256:<hex>`` or a git commit hash). Empty when unknown.
    """

    name: str
    version: Version
    source: Source
    fingerprint: str = field(default="")

    def __str__(self) -> str:
        return f"{self.name} {self.version}"
