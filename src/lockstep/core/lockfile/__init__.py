"""Lock records: reproducible, deterministic resolution results.

This package implements the ``lockstep.lock`` format. A lockfile captures
the exact resolved state of a project: every package at its resolved
version, with its source descriptor, a drift-detecting fingerprint, its
enabled features and resolved dependencies.

The package is split into focused submodules:

- ``models``: data classes (``LockedPackage``, ``LockfileMetadata``) and the
  dependency kind constants.
- ``lockfile``: the ``Lockfile`` class with package management, integrity
  hashing, serialization and solver preferences.
- ``operations``: deserialization (``from_dict``, ``from_json``, ``read``),
  validation, and diffing.
- ``factory``: ``from_solution`` and ``from_resolution``.

All public names are re-exported here, so callers can write
``from lockstep.core.lockfile import Lockfile``.
"""

from lockstep.core.lockfile.models import (
    DIRECT_DEV,
    DIRECT_MAIN,
    DIRECT_OVERRIDDEN,
    TRANSITIVE,
    LockedPackage,
    LockfileMetadata,
    _FINGERPRINT_RE,
)

from lockstep.core.lockfile.lockfile import Lockfile

# Attach operations to Lockfile as methods/classmethods
from lockstep.core.lockfile import operations as _ops
from lockstep.core.lockfile import factory as _factory

Lockfile.from_dict = classmethod(_ops._from_dict)
Lockfile.from_json = classmethod(_ops._from_json)
Lockfile.read = classmethod(_ops._read)
Lockfile.validate = _ops._validate
Lockfile.diff = _ops._diff
Lockfile.from_solution = classmethod(_factory._from_solution)
Lockfile.from_resolution = classmethod(_factory._from_resolution)

__all__ = [
    "DIRECT_DEV",
    "DIRECT_MAIN",
    "DIRECT_OVERRIDDEN",
    "TRANSITIVE",
    "Lockfile",
    "LockedPackage",
    "LockfileMetadata",
    "_FINGERPRINT_RE",
]
