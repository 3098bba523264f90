"""Checks on how a manifest declares its dependencies.

Rules, applied to the regular dependencies and to every feature's
dependency block:

- A package that ships with an SDK must come from the SDK source.
- Non-hosted sources are discouraged (path sources are errors), with a
  hosted constraint on the registry's primary version as the suggestion.
- Hosted dependencies need a constraint, more than a single version, a
  lower bound and an upper bound.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from lockstep.config import DEFAULT_HOSTED_URL
from lockstep.core.dependency.models import PackageRange
from lockstep.core.manifest import Manifest
from lockstep.core.source.models import GitSource, HostedSource, PathSource, SdkSource
from lockstep.core.version import Version, VersionRange, primary_version
from lockstep.exceptions import LockfileError, SourceQueryError
from lockstep.validator.base import Advisory, Validator

if TYPE_CHECKING:
    from lockstep.core.lockfile import Lockfile
    from lockstep.core.source.registry import SourceRegistry

logger = logging.getLogger(__name__)

DEFAULT_SDK_PACKAGES: frozenset[str] = frozenset({"flutter"})

# Environment entry holding the constraint on the toolchain SDK.
SDK_ENVIRONMENT_KEY: str = "sdk"

# First SDK releases that understand caret constraints and git path
# dependencies.
FIRST_CARET_SDK: Version = Version.parse("1.8.0-dev.3.0")
FIRST_GIT_PATH_SDK: Version = Version.parse("2.0.0-dev.1.0")


def _example(name: str, constraint: str) -> str:
    return f"dependencies:\n  {name}: {constraint}"


class DependencyValidator(Validator):
    """Validates the dependency declarations of a root manifest.

    Args:
        manifest: The manifest to check.
        lockfile: Prior lock record; locked versions seed suggestions.
        registry: Used to look up the primary hosted version of non-hosted
            dependencies. Without it the declared constraint is suggested.
        sdk_packages: Names that must be depended on through the SDK source.
        hosted_url: Registry queried for primary versions.
    """

    def __init__(
        self,
        manifest: Manifest,
        lockfile: Lockfile | None = None,
        registry: SourceRegistry | None = None,
        sdk_packages: frozenset[str] = DEFAULT_SDK_PACKAGES,
        hosted_url: str = DEFAULT_HOSTED_URL,
    ) -> None:
        super().__init__(manifest)
        self._lockfile = lockfile
        self._registry = registry
        self._sdk_packages = sdk_packages
        self._hosted_url = hosted_url
        self._has_caret = False
        self._has_git_path = False

    def validate(self) -> list[Advisory]:
        self.advisories = []
        self._has_caret = False
        self._has_git_path = False
        self._validate_dependencies(self.manifest.dependencies)
        for feature in self.manifest.features.values():
            self._validate_dependencies(feature.dependencies)

        if self._has_caret:
            self.validate_sdk_constraint(
                SDK_ENVIRONMENT_KEY,
                FIRST_CARET_SDK,
                "sdk-caret",
                "Older SDKs don't support ^ version constraints.",
            )
        if self._has_git_path:
            self.validate_sdk_constraint(
                SDK_ENVIRONMENT_KEY,
                FIRST_GIT_PATH_SDK,
                "sdk-git-path",
                "Older SDKs don't support git path dependencies.",
            )
        return list(self.advisories)

    def _validate_dependencies(self, dependencies: Iterable[PackageRange]) -> None:
        for dep in dependencies:
            constraint = dep.constraint
            if dep.name in self._sdk_packages:
                self._check_sdk_source(dep)
            elif not isinstance(dep.source, HostedSource):
                self._warn_about_source(dep)
                if isinstance(dep.source, GitSource) and dep.source.path != ".":
                    self._has_git_path = True
            elif constraint.is_any:
                self._warn_about_no_constraint(dep)
            elif isinstance(constraint, VersionRange) and constraint.is_exact:
                self._warn_about_single_version(dep)
            elif isinstance(constraint, VersionRange):
                if constraint.min is None:
                    self._warn_about_no_lower_bound(dep, constraint)
                elif constraint.max is None:
                    self._warn_about_no_upper_bound(dep, constraint)
                self._has_caret = self._has_caret or constraint.is_caret

    # -- Rules --------------------------------------------------------------

    def _check_sdk_source(self, dep: PackageRange) -> None:
        if isinstance(dep.source, SdkSource):
            return
        self.error(
            "sdk-source",
            dep.name,
            f'Don\'t depend on "{dep.name}" from the {dep.source} source. '
            "Use the SDK source instead; the SDK is managed outside of lockstep.",
            f"dependencies:\n  {dep.name}:\n    sdk: {dep.name}",
        )

    def _warn_about_source(self, dep: PackageRange) -> None:
        primary = primary_version(self._hosted_versions(dep.name))
        if primary is not None:
            constraint = f"^{primary}"
        else:
            constraint = str(dep.constraint)
            exact = isinstance(dep.constraint, VersionRange) and dep.constraint.is_exact
            if not dep.constraint.is_any and not exact:
                constraint = f'"{constraint}"'

        record = self.error if isinstance(dep.source, PathSource) else self.warning
        record(
            "non-hosted-source",
            dep.name,
            f'Don\'t depend on "{dep.name}" from the {dep.source} source. '
            "Use the hosted source so that everyone can download it.",
            _example(dep.name, constraint),
        )

    def _warn_about_no_constraint(self, dep: PackageRange) -> None:
        locked = self._locked_version(dep.name)
        self.warning(
            "no-constraint",
            dep.name,
            f'Your dependency on "{dep.name}" should have a version constraint. '
            f'Without one you promise to support all future versions of "{dep.name}".',
            _example(dep.name, f"^{locked}") if locked else "",
        )

    def _warn_about_single_version(self, dep: PackageRange) -> None:
        self.warning(
            "single-version",
            dep.name,
            f'Your dependency on "{dep.name}" should allow more than one version. '
            "Constraints that are too tight make the package hard to combine "
            f'with others that also depend on "{dep.name}".',
            _example(dep.name, f"^{dep.constraint}"),
        )

    def _warn_about_no_lower_bound(self, dep: PackageRange, constraint: VersionRange) -> None:
        locked = self._locked_version(dep.name)
        suggestion = ""
        if locked:
            if constraint.max is not None and locked == str(constraint.max):
                suggestion = _example(dep.name, f"^{locked}")
            else:
                suggestion = _example(dep.name, f'">={locked} {constraint}"')
        self.warning(
            "no-lower-bound",
            dep.name,
            f'Your dependency on "{dep.name}" should have a lower bound. '
            f'Without one you promise to support all previous versions of "{dep.name}".',
            suggestion,
        )

    def _warn_about_no_upper_bound(self, dep: PackageRange, constraint: VersionRange) -> None:
        if constraint.include_min:
            suggested = f"^{constraint.min}"
        else:
            suggested = f'"{constraint} <{constraint.min.next_breaking()}"'
        self.warning(
            "no-upper-bound",
            dep.name,
            f'Your dependency on "{dep.name}" should have an upper bound. '
            f"Without one you promise to support all future versions of {dep.name}.",
            _example(dep.name, suggested),
        )

    # -- Lookups ------------------------------------------------------------

    def _hosted_versions(self, name: str) -> list:
        if self._registry is None:
            return []
        try:
            ids = self._registry.list_versions(name, HostedSource(self._hosted_url))
        except SourceQueryError as exc:
            logger.debug("No hosted versions of %s: %s", name, exc)
            return []
        return [package.version for package in ids]

    def _locked_version(self, name: str) -> str:
        if self._lockfile is None:
            return ""
        locked = self._lockfile.get_package(name)
        if locked is None:
            return ""
        try:
            return str(self._lockfile.package_id(name).version)
        except LockfileError:
            return locked.version
