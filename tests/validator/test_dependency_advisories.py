"""Tests for the dependency declaration validator."""

from __future__ import annotations

from pathlib import Path

from lockstep.core.lockfile import LockedPackage, Lockfile
from lockstep.core.source.hosted import InMemoryIndex
from lockstep.validator import Advisory, AdvisoryLevel, DependencyValidator


def _codes(advisories: list[Advisory]) -> list[str]:
    return [a.code for a in advisories]


def _lock(name: str, version: str) -> Lockfile:
    lf = Lockfile()
    lf.add_package(
        LockedPackage(name=name, version=version, source={"kind": "hosted", "url": "https://pub.dev"})
    )
    return lf


class TestHostedConstraints:
    """Style rules for hosted dependency constraints."""

    def test_caret_is_clean(self, make_root) -> None:
        assert DependencyValidator(make_root({"a": "^1.0.0"})).validate() == []

    def test_bounded_range_is_clean(self, make_root) -> None:
        assert DependencyValidator(make_root({"a": ">=1.0.0 <3.0.0"})).validate() == []

    def test_no_constraint(self, make_root) -> None:
        (advisory,) = DependencyValidator(make_root({"a": "any"})).validate()
        assert advisory.code == "no-constraint"
        assert advisory.level is AdvisoryLevel.WARNING
        assert advisory.package == "a"
        assert advisory.suggestion == ""

    def test_no_constraint_suggests_locked(self, make_root) -> None:
        validator = DependencyValidator(make_root({"a": "any"}), lockfile=_lock("a", "1.4.2"))
        (advisory,) = validator.validate()
        assert advisory.suggestion == "dependencies:\n  a: ^1.4.2"

    def test_single_version(self, make_root) -> None:
        (advisory,) = DependencyValidator(make_root({"a": "1.2.3"})).validate()
        assert advisory.code == "single-version"
        assert advisory.suggestion == "dependencies:\n  a: ^1.2.3"

    def test_no_upper_bound_inclusive(self, make_root) -> None:
        (advisory,) = DependencyValidator(make_root({"a": ">=1.2.0"})).validate()
        assert advisory.code == "no-upper-bound"
        assert advisory.suggestion == "dependencies:\n  a: ^1.2.0"

    def test_no_upper_bound_exclusive(self, make_root) -> None:
        (advisory,) = DependencyValidator(make_root({"a": ">0.3.0"})).validate()
        assert advisory.suggestion == 'dependencies:\n  a: ">0.3.0 <0.4.0"'

    def test_no_lower_bound(self, make_root) -> None:
        (advisory,) = DependencyValidator(make_root({"a": "<2.0.0"})).validate()
        assert advisory.code == "no-lower-bound"
        assert advisory.suggestion == ""

    def test_no_lower_bound_suggests_locked(self, make_root) -> None:
        validator = DependencyValidator(make_root({"a": "<2.0.0"}), lockfile=_lock("a", "1.1.0"))
        (advisory,) = validator.validate()
        assert advisory.suggestion == 'dependencies:\n  a: ">=1.1.0 <2.0.0"'

    def test_feature_dependencies_checked(self, make_root) -> None:
        root = make_root(features={"extra": {"dependencies": {"x": "any"}}})
        assert _codes(DependencyValidator(root).validate()) == ["no-constraint"]

    def test_dev_dependencies_ignored(self, make_root) -> None:
        root = make_root(dev_dependencies={"t": "any"})
        assert DependencyValidator(root).validate() == []


class TestSources:
    """Rules about where dependencies come from."""

    def test_sdk_package_must_use_sdk(self, make_root) -> None:
        (advisory,) = DependencyValidator(make_root({"flutter": "any"})).validate()
        assert advisory.code == "sdk-source"
        assert advisory.level is AdvisoryLevel.ERROR

    def test_sdk_package_from_sdk_is_clean(self, make_root) -> None:
        root = make_root({"flutter": {"sdk": "flutter"}})
        assert DependencyValidator(root).validate() == []

    def test_git_source_warns(self, make_root) -> None:
        root = make_root({"a": {"git": "https://x/a.git", "version": "^1.0.0"}})
        (advisory,) = DependencyValidator(root).validate()
        assert advisory.code == "non-hosted-source"
        assert advisory.level is AdvisoryLevel.WARNING
        assert advisory.suggestion == 'dependencies:\n  a: "^1.0.0"'

    def test_path_source_errors(self, tmp_path: Path, make_root) -> None:
        root = make_root({"a": {"path": str(tmp_path)}})
        validator = DependencyValidator(root)
        (advisory,) = validator.validate()
        assert advisory.level is AdvisoryLevel.ERROR
        assert advisory.suggestion == "dependencies:\n  a: any"
        assert validator.errors == [advisory]
        assert validator.warnings == []

    def test_suggests_primary_hosted_version(self, make_root, registry, index: InMemoryIndex) -> None:
        for v in ("1.0.0", "1.3.0", "2.0.0-dev.1"):
            index.add("a", v)
        root = make_root({"a": {"git": "https://x/a.git"}})
        (advisory,) = DependencyValidator(root, registry=registry).validate()
        assert advisory.suggestion == "dependencies:\n  a: ^1.3.0"

    def test_unknown_on_registry_falls_back(self, make_root, registry) -> None:
        root = make_root({"a": {"git": "https://x/a.git", "version": "2.0.0"}})
        (advisory,) = DependencyValidator(root, registry=registry).validate()
        assert advisory.suggestion == "dependencies:\n  a: 2.0.0"

    def test_validate_is_repeatable(self, make_root) -> None:
        validator = DependencyValidator(make_root({"a": "any", "b": "1.0.0"}))
        assert _codes(validator.validate()) == ["no-constraint", "single-version"]
        assert _codes(validator.validate()) == ["no-constraint", "single-version"]


class TestSdkConstraint:
    """Caret constraints and git path dependencies need a recent enough SDK."""

    def test_caret_with_old_sdk_allowed(self, make_root) -> None:
        root = make_root({"a": "^1.0.0"}, environment={"sdk": ">=1.0.0 <3.0.0"})
        (advisory,) = DependencyValidator(root).validate()
        assert advisory.code == "sdk-caret"
        assert advisory.level is AdvisoryLevel.ERROR
        assert advisory.package == "sdk"
        assert advisory.suggestion == 'environment:\n  sdk: "^1.8.0"'

    def test_caret_with_recent_sdk_is_clean(self, make_root) -> None:
        root = make_root({"a": "^1.0.0"}, environment={"sdk": ">=1.8.0 <3.0.0"})
        assert DependencyValidator(root).validate() == []

    def test_caret_without_sdk_constraint_is_clean(self, make_root) -> None:
        assert DependencyValidator(make_root({"a": "^1.0.0"})).validate() == []

    def test_range_without_caret_skips_sdk_check(self, make_root) -> None:
        root = make_root({"a": ">=1.0.0 <2.0.0"}, environment={"sdk": ">=1.0.0 <3.0.0"})
        assert DependencyValidator(root).validate() == []

    def test_git_path_with_old_sdk_allowed(self, make_root) -> None:
        root = make_root(
            {"a": {"git": {"url": "https://x/repo.git", "path": "pkgs/a"}, "version": "^1.0.0"}},
            environment={"sdk": ">=1.0.0 <3.0.0"},
        )
        advisories = DependencyValidator(root).validate()
        assert _codes(advisories) == ["non-hosted-source", "sdk-git-path"]
        assert advisories[1].suggestion == 'environment:\n  sdk: "^2.0.0"'

    def test_git_root_path_skips_sdk_check(self, make_root) -> None:
        root = make_root(
            {"a": {"git": "https://x/repo.git"}},
            environment={"sdk": ">=1.0.0 <3.0.0"},
        )
        assert _codes(DependencyValidator(root).validate()) == ["non-hosted-source"]
