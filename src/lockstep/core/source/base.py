"""Abstract source handler: the capability interface the solver calls into.

One ``SourceHandler`` exists per ``SourceKind``. Handlers talk to the
outside world (registries, git, the filesystem) and are the only place
where I/O failures are retried. Anything they cannot recover from is
raised as ``SourceQueryError``; the solver turns that into "no candidates".
"""

from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

from lockstep.core.source.models import Source, SourceKind, describe

if TYPE_CHECKING:
    from lockstep.core.dependency.models import PackageId
    from lockstep.core.manifest import Manifest

logger = logging.getLogger(__name__)


def sha256_fingerprint(content: str | bytes) -> str:
    """Integrity token in ``sha256:<64-hex-chars>`` format."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return f"sha256:{hashlib.sha256(content).hexdigest()}"


class SourceHandler(ABC):
    """Capability interface for one source variant.

    Subclasses must implement ``list_versions`` and ``fetch_manifest``.
    ``describe`` and ``restore`` have defaults that suit most sources.
    """

    @property
    @abstractmethod
    def kind(self) -> SourceKind:
        """The source variant this handler serves."""

    @abstractmethod
    def list_versions(self, name: str, source: Source) -> Sequence[PackageId]:
        """Return one ``PackageId`` per available version of *name*.

        Raises:
            SourceQueryError: If the listing cannot be obtained.
        """

    @abstractmethod
    def fetch_manifest(self, package: PackageId) -> Manifest:
        """Return the manifest of a concrete package version.

        Raises:
            SourceQueryError: If the manifest cannot be obtained or parsed.
        """

    def describe(self, name: str, source: Source) -> str:
        """Stable identity string for *name* from *source*."""
        return describe(name, source)

    def restore(self, package: PackageId) -> PackageId | None:
        """Re-validate a previously locked id against the current listing.

        Returns the listed id with the locked version, or None if that
        version is no longer available.
        """
        for candidate in self.list_versions(package.name, package.source):
            if candidate.version == package.version:
                return candidate
        logger.debug("Locked %s is no longer available", package)
        return None

    def close(self) -> None:
        """Release resources held by the handler."""
