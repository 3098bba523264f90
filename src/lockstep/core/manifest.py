"""Project manifests (``manifest.yaml``): the declared dependency facts.

A manifest names a package, its version, and its dependencies. It is the
input to resolution for the root project and the answer a source gives to
``fetch_manifest`` for every candidate version.

Example::

    name: app
    version: 1.0.0
    environment:
      sdk: ">=2.12.0 <3.0.0"
    dependencies:
      http: ^1.1.0
      collection:
        version: ">=1.15.0 <2.0.0"
        hosted: https://pub.example.com
      utils:
        git: {url: https://example.com/utils.git, ref: v2, path: pkgs/utils}
      local_lib:
        path: ../local_lib
      flutter:
        sdk: flutter
      logging:
        version: ^1.0.0
        features: {color: true, legacy: false}
    dev_dependencies:
      test: ^1.16.0
    dependency_overrides:
      http: 1.1.2
    features:
      tls:
        default: true
        requires: [crypto]
        dependencies:
          openssl: ^3.0.0
      crypto:
        dependencies:
          pointycastle: ^3.0.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from lockstep.config import DEFAULT_HOSTED_URL, MANIFEST_NAME
from lockstep.core.dependency.models import Feature, PackageRange
from lockstep.core.source.models import (
    GitSource,
    HostedSource,
    PathSource,
    SdkSource,
    Source,
)
from lockstep.core.version import (
    ANY,
    Version,
    VersionConstraint,
    parse_constraint,
)
from lockstep.exceptions import ManifestError, ParseError


@dataclass(frozen=True)
class Manifest:
    """A parsed package manifest.

    Attributes:
        name: Package name.
        version: Package version.
        dependencies: Regular dependencies, in declaration order.
        dev_dependencies: Dependencies only the root project resolves.
        dependency_overrides: Root-only replacements, keyed by name.
        features: Optional dependency groups, keyed by name.
        environment: SDK name -> constraint on that SDK's version.
        raw: The source text, when parsed from text. Used for fingerprints.
    """

    name: str
    version: Version
    dependencies: tuple[PackageRange, ...] = ()
    dev_dependencies: tuple[PackageRange, ...] = ()
    dependency_overrides: Mapping[str, PackageRange] = field(default_factory=dict)
    features: Mapping[str, Feature] = field(default_factory=dict)
    environment: Mapping[str, VersionConstraint] = field(default_factory=dict)
    raw: str = field(default="", compare=False, repr=False)

    # -- Construction -------------------------------------------------------

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        base_dir: Path | None = None,
        default_hosted_url: str = DEFAULT_HOSTED_URL,
        raw: str = "",
    ) -> Manifest:
        """Build a manifest from its YAML mapping.

        Args:
            data: The decoded manifest document.
            base_dir: Directory relative path dependencies are resolved
                against. Defaults to the current directory.
            default_hosted_url: Registry for hosted dependencies that do not
                name one.
            raw: Original text, kept for fingerprinting.

        Raises:
            ManifestError: If the document has an invalid shape.
            ParseError: If a version or constraint is malformed.
        """
        if not isinstance(data, Mapping):
            raise ManifestError("Manifest must be a mapping")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ManifestError("Manifest is missing a 'name' field")
        version_text = data.get("version", "0.0.0")
        version = Version.parse(str(version_text))

        reader = _DependencyReader(base_dir or Path("."), default_hosted_url)
        return cls(
            name=name,
            version=version,
            dependencies=reader.read_block(data.get("dependencies"), "dependencies"),
            dev_dependencies=reader.read_block(
                data.get("dev_dependencies"), "dev_dependencies"
            ),
            dependency_overrides={
                r.name: r
                for r in reader.read_block(
                    data.get("dependency_overrides"), "dependency_overrides"
                )
            },
            features=reader.read_features(data.get("features")),
            environment=_read_environment(data.get("environment")),
            raw=raw,
        )

    @classmethod
    def parse(
        cls,
        text: str,
        *,
        base_dir: Path | None = None,
        default_hosted_url: str = DEFAULT_HOSTED_URL,
    ) -> Manifest:
        """Parse manifest YAML text.

        Raises:
            ManifestError: If the text is not valid YAML or not a manifest.
        """
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ManifestError(f"Manifest is not valid YAML: {exc}") from exc
        return cls.from_dict(
            data or {},
            base_dir=base_dir,
            default_hosted_url=default_hosted_url,
            raw=text,
        )

    @classmethod
    def load(
        cls, path: Path, *, default_hosted_url: str = DEFAULT_HOSTED_URL
    ) -> Manifest:
        """Read a manifest file, or ``manifest.yaml`` inside a directory."""
        if path.is_dir():
            path = path / MANIFEST_NAME
        text = path.read_text(encoding="utf-8")
        return cls.parse(
            text,
            base_dir=path.parent.resolve(),
            default_hosted_url=default_hosted_url,
        )


# ---------------------------------------------------------------------------
# Dependency declaration parsing
# ---------------------------------------------------------------------------


def _read_constraint(value: Any, where: str) -> VersionConstraint:
    if value is None:
        return ANY
    if isinstance(value, (int, float)):
        raise ManifestError(f"{where}: constraint must be quoted, got {value!r}")
    try:
        return parse_constraint(str(value))
    except ParseError as exc:
        raise ManifestError(f"{where}: {exc}") from exc


def _read_environment(value: Any) -> dict[str, VersionConstraint]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ManifestError("'environment' must be a mapping")
    return {
        str(sdk): _read_constraint(constraint, f"environment.{sdk}")
        for sdk, constraint in value.items()
    }


class _DependencyReader:
    """Turns dependency blocks into ``PackageRange`` tuples."""

    def __init__(self, base_dir: Path, default_hosted_url: str) -> None:
        self._base_dir = base_dir
        self._default_hosted_url = default_hosted_url

    def read_block(self, block: Any, where: str) -> tuple[PackageRange, ...]:
        if block is None:
            return ()
        if not isinstance(block, Mapping):
            raise ManifestError(f"'{where}' must be a mapping")
        return tuple(
            self.read_dependency(str(name), spec, f"{where}.{name}")
            for name, spec in block.items()
        )

    def read_dependency(self, name: str, spec: Any, where: str) -> PackageRange:
        if spec is None or isinstance(spec, str):
            return PackageRange(
                name,
                HostedSource(self._default_hosted_url),
                _read_constraint(spec, where),
            )
        if not isinstance(spec, Mapping):
            raise ManifestError(f"{where}: expected a constraint or a mapping")

        source_keys = [k for k in ("hosted", "git", "path", "sdk") if k in spec]
        if len(source_keys) > 1:
            raise ManifestError(
                f"{where}: only one source allowed, got {', '.join(source_keys)}"
            )
        source = self._read_source(source_keys[0] if source_keys else None, spec, where)
        enabled, disabled = self._read_feature_flags(spec.get("features"), where)
        return PackageRange(
            name,
            source,
            _read_constraint(spec.get("version"), where),
            enabled,
            disabled,
        )

    def _read_source(self, key: str | None, spec: Mapping[str, Any], where: str) -> Source:
        if key is None:
            return HostedSource(self._default_hosted_url)
        value = spec[key]
        if key == "hosted":
            if isinstance(value, str):
                return HostedSource(value)
            if isinstance(value, Mapping) and isinstance(value.get("url"), str):
                return HostedSource(value["url"])
            raise ManifestError(f"{where}: 'hosted' must be a URL or {{url: ...}}")
        if key == "git":
            if isinstance(value, str):
                return GitSource(url=value)
            if isinstance(value, Mapping) and isinstance(value.get("url"), str):
                ref = value.get("ref")
                return GitSource(
                    url=value["url"],
                    path=str(value.get("path") or "."),
                    ref=str(ref) if ref is not None else None,
                )
            raise ManifestError(f"{where}: 'git' must be a URL or {{url: ...}}")
        if key == "path":
            if not isinstance(value, str):
                raise ManifestError(f"{where}: 'path' must be a string")
            location = Path(value)
            if not location.is_absolute():
                location = self._base_dir / location
            return PathSource(str(location.resolve()))
        if not isinstance(value, str):
            raise ManifestError(f"{where}: 'sdk' must be a string")
        return SdkSource(value)

    @staticmethod
    def _read_feature_flags(value: Any, where: str) -> tuple[frozenset[str], frozenset[str]]:
        if value is None:
            return frozenset(), frozenset()
        if isinstance(value, list):
            return frozenset(str(v) for v in value), frozenset()
        if not isinstance(value, Mapping):
            raise ManifestError(f"{where}.features must be a mapping or a list")
        enabled = frozenset(str(k) for k, v in value.items() if v)
        disabled = frozenset(str(k) for k, v in value.items() if not v)
        return enabled, disabled

    def read_features(self, block: Any) -> dict[str, Feature]:
        if block is None:
            return {}
        if not isinstance(block, Mapping):
            raise ManifestError("'features' must be a mapping")
        features: dict[str, Feature] = {}
        for name, spec in block.items():
            spec = spec or {}
            if not isinstance(spec, Mapping):
                raise ManifestError(f"features.{name} must be a mapping")
            requires = spec.get("requires") or []
            if isinstance(requires, str):
                requires = [requires]
            features[str(name)] = Feature(
                name=str(name),
                default=bool(spec.get("default", False)),
                dependencies=self.read_block(
                    spec.get("dependencies"), f"features.{name}.dependencies"
                ),
                requires=tuple(str(r) for r in requires),
            )
        return features
