"""Hosted registry source: package versions served by a registry index.

``HostedHandler`` answers solver queries from ``HostedIndex`` backends, one
per registry URL. Two backends ship with lockstep:

- ``InMemoryIndex`` -- versions registered in process, or loaded from a
  YAML index file. Used for offline resolution and in tests.
- ``HttpIndex`` (``lockstep.core.source.http_index``) -- a pub-style JSON
  API over HTTP.

YAML index file format::

    url: https://pub.example.com      # optional
    packages:
      http:
        1.1.0:
          dependencies: {meta: ^1.3.0}
        1.2.0:
          dependencies: {meta: ^1.9.0}
      meta:
        1.9.1: {}
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import yaml

from lockstep.config import DEFAULT_HOSTED_URL
from lockstep.core.dependency.models import PackageId
from lockstep.core.manifest import Manifest
from lockstep.core.source.base import SourceHandler, sha256_fingerprint
from lockstep.core.source.models import HostedSource, Source, SourceKind
from lockstep.core.version import Version
from lockstep.exceptions import ParseError, SourceQueryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexEntry:
    """One published version in a registry index.

    Attributes:
        version: The published version.
        manifest: The version's manifest.
        fingerprint: Archive checksum in ``sha256:<hex>`` format.
    """

    version: Version
    manifest: Manifest
    fingerprint: str


class HostedIndex(ABC):
    """Read access to one registry."""

    url: str

    @abstractmethod
    def entries(self, name: str) -> Sequence[IndexEntry]:
        """Return every published version of *name*.

        Raises:
            SourceQueryError: If the package is unknown or the registry
                cannot be reached.
        """

    def close(self) -> None:
        """Release network resources. In-memory indexes hold none."""


class InMemoryIndex(HostedIndex):
    """A registry index held in memory.

    Example::

        index = InMemoryIndex()
        index.add("http", "1.2.0", {"meta": "^1.9.0"})
        index.add("meta", "1.9.1")
    """

    def __init__(self, url: str = DEFAULT_HOSTED_URL) -> None:
        self.url = url
        self._packages: dict[str, dict[Version, IndexEntry]] = {}
        self._unavailable: dict[str, bool] = {}

    def add(
        self,
        name: str,
        version: str,
        dependencies: Mapping[str, Any] | None = None,
        *,
        dev_dependencies: Mapping[str, Any] | None = None,
        features: Mapping[str, Any] | None = None,
        environment: Mapping[str, str] | None = None,
        archive: bytes | None = None,
    ) -> IndexEntry:
        """Publish *name* at *version* with the given manifest blocks.

        The fingerprint is the sha256 of *archive* when given, otherwise of
        the canonical JSON of the manifest document.
        """
        document: dict[str, Any] = {"name": name, "version": version}
        if dependencies:
            document["dependencies"] = dict(dependencies)
        if dev_dependencies:
            document["dev_dependencies"] = dict(dev_dependencies)
        if features:
            document["features"] = dict(features)
        if environment:
            document["environment"] = dict(environment)
        fingerprint = sha256_fingerprint(
            archive if archive is not None else json.dumps(document, sort_keys=True)
        )
        manifest = Manifest.from_dict(document, default_hosted_url=self.url)
        return self.add_manifest(manifest, fingerprint)

    def add_manifest(self, manifest: Manifest, fingerprint: str = "") -> IndexEntry:
        """Publish an already-parsed manifest."""
        entry = IndexEntry(manifest.version, manifest, fingerprint)
        self._packages.setdefault(manifest.name, {})[manifest.version] = entry
        return entry

    def mark_unavailable(self, name: str, *, retryable: bool = True) -> None:
        """Make queries for *name* fail, as a registry outage would."""
        self._unavailable[name] = retryable

    def entries(self, name: str) -> Sequence[IndexEntry]:
        if name in self._unavailable:
            raise SourceQueryError(
                f"Registry {self.url} is unavailable for {name!r}",
                retryable=self._unavailable[name],
            )
        versions = self._packages.get(name)
        if versions is None:
            raise SourceQueryError(f"Package {name!r} not found on {self.url}")
        return list(versions.values())

    @property
    def package_names(self) -> list[str]:
        return sorted(self._packages)

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], default_url: str = DEFAULT_HOSTED_URL
    ) -> InMemoryIndex:
        """Build an index from the YAML index document shape.

        The document's own ``url`` wins over *default_url*.
        """
        index = cls(str(data.get("url") or default_url))
        packages = data.get("packages") or {}
        if not isinstance(packages, Mapping):
            raise ParseError("Index 'packages' must be a mapping")
        for name, versions in packages.items():
            for version, spec in (versions or {}).items():
                spec = spec or {}
                index.add(
                    str(name),
                    str(version),
                    spec.get("dependencies"),
                    dev_dependencies=spec.get("dev_dependencies"),
                    features=spec.get("features"),
                    environment=spec.get("environment"),
                )
        return index

    @classmethod
    def load(cls, path: Path, default_url: str = DEFAULT_HOSTED_URL) -> InMemoryIndex:
        """Read a YAML index file.

        Raises:
            ParseError: If the file is not valid YAML or has a bad shape.
        """
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ParseError(f"Index {path} is not valid YAML: {exc}") from exc
        return cls.from_dict(data, default_url=default_url)


class HostedHandler(SourceHandler):
    """Source handler for ``HostedSource``.

    Args:
        indexes: Registry URL -> index. URLs are compared without a
            trailing slash.
        index_factory: Called with a URL that has no index yet; its result is
            cached. Without a factory, unknown registries fail the query.
    """

    def __init__(
        self,
        indexes: Mapping[str, HostedIndex] | None = None,
        index_factory: Callable[[str], HostedIndex] | None = None,
    ) -> None:
        self._indexes = {
            url.rstrip("/"): index for url, index in (indexes or {}).items()
        }
        self._index_factory = index_factory

    @property
    def kind(self) -> SourceKind:
        return SourceKind.HOSTED

    def _index_for(self, source: Source) -> HostedIndex:
        if not isinstance(source, HostedSource):
            raise SourceQueryError(f"Hosted handler cannot serve {source.describe()}")
        url = source.url.rstrip("/")
        index = self._indexes.get(url)
        if index is None:
            if self._index_factory is None:
                raise SourceQueryError(f"No index configured for registry {url}")
            index = self._index_factory(url)
            self._indexes[url] = index
        return index

    def list_versions(self, name: str, source: Source) -> Sequence[PackageId]:
        entries = self._index_for(source).entries(name)
        ids = [PackageId(name, e.version, source, e.fingerprint) for e in entries]
        ids.sort(key=lambda p: p.version.sort_key)
        return ids

    def fetch_manifest(self, package: PackageId) -> Manifest:
        for entry in self._index_for(package.source).entries(package.name):
            if entry.version == package.version:
                return entry.manifest
        raise SourceQueryError(f"{package} is not published on {package.source.describe()}")

    def close(self) -> None:
        for index in self._indexes.values():
            index.close()
