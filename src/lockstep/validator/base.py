"""Advisory validation: shared data structures and the validator base.

Validators inspect a root manifest (and optionally its lock record) and
report style problems that do not stop resolution but make a package harder
to depend on. They never call back into the solver.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum

from lockstep.core.manifest import Manifest
from lockstep.core.version import Version, VersionRange


class AdvisoryLevel(IntEnum):
    """Two-level severity scale: WARNING < ERROR."""

    WARNING = 1
    ERROR = 2


@dataclass(frozen=True)
class Advisory:
    """A single validation finding.

    Attributes:
        level: WARNING or ERROR.
        code: Stable identifier of the rule (e.g., "no-upper-bound").
        package: Name of the dependency the finding is about.
        message: Human-readable description.
        suggestion: Replacement dependency text, or "" when there is none.
    """

    level: AdvisoryLevel
    code: str
    package: str
    message: str
    suggestion: str = ""


class Validator(ABC):
    """Base class collecting advisories for one manifest.

    Subclasses implement ``validate`` and record findings with ``error`` and
    ``warning``.
    """

    def __init__(self, manifest: Manifest) -> None:
        self.manifest = manifest
        self.advisories: list[Advisory] = []

    def error(self, code: str, package: str, message: str, suggestion: str = "") -> None:
        self.advisories.append(
            Advisory(AdvisoryLevel.ERROR, code, package, message, suggestion)
        )

    def warning(self, code: str, package: str, message: str, suggestion: str = "") -> None:
        self.advisories.append(
            Advisory(AdvisoryLevel.WARNING, code, package, message, suggestion)
        )

    def validate_sdk_constraint(
        self, sdk: str, first_version: Version, code: str, message: str
    ) -> None:
        """Error if the manifest's *sdk* constraint admits versions before *first_version*.

        Manifests that declare no constraint on *sdk* are not checked. The
        suggestion narrows the declared constraint to ``^first_version``.
        """
        current = self.manifest.environment.get(sdk)
        if current is None:
            return
        if current.intersect(VersionRange(max=first_version)).is_empty:
            return
        minimum = Version(first_version.major, first_version.minor, first_version.patch)
        allowed = VersionRange.caret(minimum)
        suggested = current.intersect(allowed)
        if suggested.is_empty:
            suggested = allowed
        self.error(
            code,
            sdk,
            f"{message} Make sure your {sdk} constraint excludes those old versions.",
            f'environment:\n  {sdk}: "{suggested}"',
        )

    @property
    def errors(self) -> list[Advisory]:
        return [a for a in self.advisories if a.level is AdvisoryLevel.ERROR]

    @property
    def warnings(self) -> list[Advisory]:
        return [a for a in self.advisories if a.level is AdvisoryLevel.WARNING]

    @abstractmethod
    def validate(self) -> list[Advisory]:
        """Run the checks and return every advisory, in manifest order."""
