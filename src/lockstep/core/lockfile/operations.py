"""Lockfile operations: deserialization, validation, and diffing.

This module extends the ``Lockfile`` class (defined in ``lockfile.py``) with
classmethods and instance methods for:

- **Deserialization:** ``from_dict``, ``from_json``, ``read`` (disk).
- **Validation:** internal consistency checks (dependencies, fingerprints,
  versions, sources).
- **Diffing:** structured comparison of two lockfiles.

They are attached to ``Lockfile`` at import time (in ``__init__.py``).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from lockstep.core.lockfile.models import (
    DEPENDENCY_KINDS,
    TRANSITIVE,
    LockedPackage,
    LockfileMetadata,
    _FINGERPRINT_RE,
)
from lockstep.core.source.models import source_from_dict
from lockstep.core.version import Version
from lockstep.exceptions import LockfileError, ParseError


def _from_dict(cls: type, data: dict[str, Any]) -> Any:
    """Deserialize a lockfile from a dict (parsed JSON).

    Accepts the dict produced by ``to_dict()``. Missing optional fields take
    their defaults.

    Raises:
        LockfileError: If the document does not have the lockfile shape.
    """
    if not isinstance(data, dict):
        raise LockfileError("Lockfile must be a JSON object")
    packages_data = data.get("packages", {})
    if not isinstance(packages_data, dict):
        raise LockfileError("Lockfile 'packages' must be an object")

    lf = cls()
    for name, entry in packages_data.items():
        if not isinstance(entry, dict):
            raise LockfileError(f"Lockfile entry {name!r} must be an object")
        lf._packages[name] = LockedPackage(
            name=name,
            version=str(entry.get("version", "")),
            source=dict(entry.get("source") or {}),
            fingerprint=str(entry.get("fingerprint", "")),
            dependency=str(entry.get("dependency", TRANSITIVE)),
            features=list(entry.get("features", [])),
            dependencies=dict(entry.get("dependencies", {})),
        )

    meta = data.get("metadata", {})
    lf._metadata = LockfileMetadata(
        total_packages=meta.get("total_packages", len(lf._packages)),
        resolution_mode=meta.get("resolution_mode", "manual"),
        root=meta.get("root", ""),
    )
    return lf


def _from_json(cls: type, json_str: str) -> Any:
    """Deserialize from a JSON string.

    Raises:
        LockfileError: If the string is not valid JSON or not a lockfile.
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise LockfileError(f"Lockfile is not valid JSON: {exc}") from exc
    return cls.from_dict(data)


def _read(cls: type, path: Path) -> Any:
    """Read a lockfile from disk.

    Raises:
        LockfileError: If the file cannot be read or parsed.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise LockfileError(f"Could not read lockfile {path}: {exc}") from exc
    return cls.from_json(text)


def _validate(self: Any) -> list[str]:
    """Validate the lockfile for internal consistency.

    Performs the following checks:

    1. **Dependency completeness:** every dependency name referenced by a
       package is itself locked (or is the root project).
    2. **Fingerprint format:** ``sha256:<64-hex-chars>`` or a 40-hex commit.
    3. **Version syntax:** every version parses as a semantic version.
    4. **Source syntax:** every source descriptor is a known variant.
    5. **Dependency kind:** one of the known kinds.
    6. **Metadata consistency:** ``total_packages`` matches the entry count.

    Dependency cycles between packages are legal and not reported.

    Returns:
        List of validation error messages. Empty means the lockfile is
        valid.
    """
    errors: list[str] = []
    root = self._metadata.root

    for name in sorted(self._packages):
        package = self._packages[name]

        # 1. Dependency completeness
        for dep_name in sorted(package.dependencies):
            if dep_name not in self._packages and dep_name != root:
                errors.append(
                    f"Package {name!r} depends on {dep_name!r} which is "
                    f"not in the lockfile"
                )

        # 2. Fingerprint format
        if package.fingerprint and not _FINGERPRINT_RE.match(package.fingerprint):
            errors.append(
                f"Package {name!r} has invalid fingerprint format: "
                f"{package.fingerprint!r}"
            )

        # 3. Version syntax
        if not package.version:
            errors.append(f"Package {name!r} has empty version string")
        else:
            try:
                Version.parse(package.version)
            except ParseError:
                errors.append(
                    f"Package {name!r} has invalid version {package.version!r}"
                )

        # 4. Source syntax
        try:
            source_from_dict(package.source)
        except ValueError as exc:
            errors.append(f"Package {name!r} has invalid source: {exc}")

        # 5. Dependency kind
        if package.dependency not in DEPENDENCY_KINDS:
            errors.append(
                f"Package {name!r} has unknown dependency kind {package.dependency!r}"
            )

    # 6. Metadata consistency
    if self._metadata.total_packages != len(self._packages):
        errors.append(
            f"Metadata total_packages ({self._metadata.total_packages}) "
            f"does not match actual count ({len(self._packages)})"
        )

    return errors


def _diff(self: Any, other: Any) -> dict[str, Any]:
    """Compare two lockfiles and return differences.

    - **added**: packages present in ``other`` but not in ``self``.
    - **removed**: packages present in ``self`` but not in ``other``.
    - **changed**: packages present in both with a different version,
      source, or fingerprint.

    Args:
        other: The lockfile to compare against (typically the newer one).

    Returns:
        Dict with keys 'added', 'removed', 'changed'.
    """
    self_names = set(self._packages)
    other_names = set(other._packages)

    changes: list[dict[str, Any]] = []
    for name in sorted(self_names & other_names):
        old = self._packages[name]
        new = other._packages[name]
        for field_name in ("version", "source", "fingerprint"):
            old_value = getattr(old, field_name)
            new_value = getattr(new, field_name)
            if old_value != new_value:
                changes.append({
                    "name": name,
                    "field": field_name,
                    "old": old_value,
                    "new": new_value,
                })

    return {
        "added": sorted(other_names - self_names),
        "removed": sorted(self_names - other_names),
        "changed": changes,
    }
