"""SDK source: packages shipped inside an installed platform SDK.

An SDK is registered with its version and root directory. Its packages live
at ``<root>/packages/<name>/manifest.yaml``; each has exactly one version.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

from lockstep.core.dependency.models import PackageId
from lockstep.core.manifest import Manifest
from lockstep.core.source.base import SourceHandler, sha256_fingerprint
from lockstep.core.source.models import SdkSource, Source, SourceKind
from lockstep.core.source.path import read_local_manifest
from lockstep.core.version import Version
from lockstep.exceptions import SourceQueryError


@dataclass(frozen=True)
class SdkInfo:
    """An installed SDK.

    Attributes:
        version: The SDK's own version.
        root: Installation directory.
    """

    version: Version
    root: Path

    def package_dir(self, name: str) -> Path:
        return self.root / "packages" / name


class SdkHandler(SourceHandler):
    """Source handler for ``SdkSource``.

    Args:
        sdks: SDK identifier -> installation. Unknown SDKs fail the query.
    """

    def __init__(self, sdks: Mapping[str, SdkInfo] | None = None) -> None:
        self._sdks = dict(sdks or {})

    @property
    def kind(self) -> SourceKind:
        return SourceKind.SDK

    def _sdk(self, source: Source) -> SdkInfo:
        if not isinstance(source, SdkSource):
            raise SourceQueryError(f"SDK handler cannot serve {source.describe()}")
        info = self._sdks.get(source.sdk)
        if info is None:
            raise SourceQueryError(f"The {source.sdk!r} SDK is not available")
        return info

    def list_versions(self, name: str, source: Source) -> Sequence[PackageId]:
        manifest = read_local_manifest(self._sdk(source).package_dir(name), name)
        return [PackageId(name, manifest.version, source, sha256_fingerprint(manifest.raw))]

    def fetch_manifest(self, package: PackageId) -> Manifest:
        return read_local_manifest(self._sdk(package.source).package_dir(package.name), package.name)
