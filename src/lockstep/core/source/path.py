"""Path source: a package in a local directory.

A path package has exactly one version, the one its manifest declares. Its
identity is locational; the fingerprint is the sha256 of the manifest text
so that a lockfile notices when the directory's declared dependencies
change.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from lockstep.config import MANIFEST_NAME
from lockstep.core.dependency.models import PackageId
from lockstep.core.manifest import Manifest
from lockstep.core.source.base import SourceHandler, sha256_fingerprint
from lockstep.core.source.models import PathSource, Source, SourceKind
from lockstep.exceptions import ParseError, SourceQueryError


def read_local_manifest(directory: Path, expected_name: str) -> Manifest:
    """Load ``manifest.yaml`` from *directory* and check its package name.

    Raises:
        SourceQueryError: If the file is missing, unreadable, invalid, or
            names a different package.
    """
    manifest_path = directory / MANIFEST_NAME
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SourceQueryError(f"Could not read {manifest_path}: {exc}") from exc
    try:
        manifest = Manifest.parse(text, base_dir=directory.resolve())
    except ParseError as exc:
        raise SourceQueryError(f"Invalid manifest {manifest_path}: {exc}") from exc
    if manifest.name != expected_name:
        raise SourceQueryError(
            f"{manifest_path} declares package {manifest.name!r}, expected {expected_name!r}"
        )
    return manifest


class PathHandler(SourceHandler):
    """Source handler for ``PathSource``."""

    @property
    def kind(self) -> SourceKind:
        return SourceKind.PATH

    @staticmethod
    def _directory(source: Source) -> Path:
        if not isinstance(source, PathSource):
            raise SourceQueryError(f"Path handler cannot serve {source.describe()}")
        return source.directory

    def list_versions(self, name: str, source: Source) -> Sequence[PackageId]:
        manifest = read_local_manifest(self._directory(source), name)
        return [PackageId(name, manifest.version, source, sha256_fingerprint(manifest.raw))]

    def fetch_manifest(self, package: PackageId) -> Manifest:
        return read_local_manifest(self._directory(package.source), package.name)
