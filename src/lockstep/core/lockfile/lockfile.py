"""Lockfile core class: package management, integrity, and serialization.

The ``Lockfile`` class is the in-memory form of a ``lockstep.lock`` file.
It provides:

- **Package management:** add, get, count, and list locked packages.
- **Integrity:** SHA-256 content hashing and verification.
- **Serialization:** deterministic ``to_dict``, ``to_json``, and ``write``.
- **Solver input:** ``preferences`` and ``check_constraints`` for re-solving
  with a prior lock.

Determinism guarantee: entries are sorted by name, all dictionary keys are
sorted and no timestamp is written. Two lockfiles with the same content
always produce byte-identical JSON.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from lockstep.core.dependency.models import PackageId, PackageRange
from lockstep.core.lockfile.models import LockedPackage, LockfileMetadata
from lockstep.core.source.base import sha256_fingerprint
from lockstep.core.source.models import source_from_dict
from lockstep.core.version import Version
from lockstep.exceptions import LockfileError, ParseError

logger = logging.getLogger(__name__)


class Lockfile:
    """Exact resolved state of a project's dependencies.

    Example::

        lf = Lockfile()
        lf.add_package(LockedPackage(
            name="http",
            version="1.2.0",
            source={"kind": "hosted", "url": "https://pub.dev"},
            fingerprint="sha256:abcd...",
            dependency="direct main",
        ))
        lf.write(Path("lockstep.lock"))
    """

    LOCKFILE_VERSION: str = "1.0"
    INTEGRITY_ALGORITHM: str = "sha256"

    def __init__(self) -> None:
        self._packages: dict[str, LockedPackage] = {}
        self._metadata = LockfileMetadata()

    # -- Package management -------------------------------------------------

    def add_package(self, package: LockedPackage) -> None:
        """Add a locked package entry, replacing any entry with its name.

        The metadata ``total_packages`` counter is updated automatically.
        """
        self._packages[package.name] = package
        self._metadata.total_packages = len(self._packages)

    def get_package(self, name: str) -> LockedPackage | None:
        return self._packages.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    @property
    def package_count(self) -> int:
        return len(self._packages)

    @property
    def package_names(self) -> list[str]:
        """Sorted list of all package names in the lockfile."""
        return sorted(self._packages)

    # -- Integrity ----------------------------------------------------------

    @staticmethod
    def compute_integrity(content: str | bytes) -> str:
        """Compute the SHA-256 integrity hash of package content.

        Returns:
            Integrity string in "sha256:<64-hex-chars>" format.
        """
        return sha256_fingerprint(content)

    def verify_integrity(self, name: str, content: str | bytes) -> bool:
        """Check *content* against the locked fingerprint of *name*.

        Returns:
            True if the computed hash matches the lockfile entry. False if
            the package is not locked or the hash differs.
        """
        package = self._packages.get(name)
        if package is None:
            return False
        return self.compute_integrity(content) == package.fingerprint

    # -- Solver input -------------------------------------------------------

    def package_id(self, name: str) -> PackageId:
        """Rebuild the solver's ``PackageId`` for a locked entry.

        Raises:
            LockfileError: If the entry is missing or malformed.
        """
        package = self._packages.get(name)
        if package is None:
            raise LockfileError(f"Package {name!r} is not locked")
        try:
            return PackageId(
                name,
                Version.parse(package.version),
                source_from_dict(package.source),
                package.fingerprint,
            )
        except (ParseError, ValueError) as exc:
            raise LockfileError(f"Locked entry {name!r} is malformed: {exc}") from exc

    def preferences(self) -> dict[str, PackageId]:
        """Locked ids keyed by name; malformed entries are skipped."""
        preferred: dict[str, PackageId] = {}
        for name in self.package_names:
            try:
                preferred[name] = self.package_id(name)
            except LockfileError as exc:
                logger.warning("Ignoring locked %s: %s", name, exc)
        return preferred

    def check_constraints(self, ranges: Iterable[PackageRange]) -> list[str]:
        """Report every range the locked packages do not satisfy.

        Returns:
            Problem descriptions. Empty means the lock still satisfies the
            given constraints.
        """
        problems: list[str] = []
        for dep in ranges:
            try:
                locked = self.package_id(dep.name)
            except LockfileError as exc:
                problems.append(str(exc))
                continue
            if locked.source.describe() != dep.source.describe():
                problems.append(
                    f"{dep.name} is locked from {locked.source.describe()}, "
                    f"but {dep.source.describe()} is required"
                )
            elif not dep.constraint.allows(locked.version):
                problems.append(
                    f"{dep.name} is locked at {locked.version}, which does not "
                    f"match {dep.constraint}"
                )
            missing = dep.features - set(self._packages[dep.name].features)
            if missing:
                problems.append(
                    f"{dep.name} is locked without features {sorted(missing)}"
                )
        return problems

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize the lockfile to a dict matching the schema.

        The output is deterministic: packages are sorted by name, and all
        lists and mappings are sorted.
        """
        packages_dict: dict[str, Any] = {}
        for name in self.package_names:
            package = self._packages[name]
            packages_dict[name] = {
                "version": package.version,
                "source": dict(sorted(package.source.items())),
                "fingerprint": package.fingerprint,
                "dependency": package.dependency,
                "features": sorted(package.features),
                "dependencies": dict(sorted(package.dependencies.items())),
            }

        return {
            "lockfile_version": self.LOCKFILE_VERSION,
            "generated_by": "lockstep",
            "integrity_algorithm": self.INTEGRITY_ALGORITHM,
            "packages": packages_dict,
            "metadata": {
                "total_packages": self._metadata.total_packages,
                "resolution_mode": self._metadata.resolution_mode,
                "root": self._metadata.root,
            },
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to a deterministic JSON string."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True) + "\n"

    def write(self, path: Path) -> None:
        """Write the lockfile to disk as JSON, creating parent directories."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")

    # -- Metadata access ----------------------------------------------------

    @property
    def metadata(self) -> LockfileMetadata:
        return self._metadata

    @metadata.setter
    def metadata(self, value: LockfileMetadata) -> None:
        self._metadata = value
