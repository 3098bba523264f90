"""Semantic versions and the constraint algebra over them.

All public names are re-exported here so callers can write
``from lockstep.core.version import Version, parse_constraint``.
"""

from lockstep.core.version.version import (
    Version,
    compare,
    next_breaking,
    parse_version,
    primary_version,
)
from lockstep.core.version.constraints import (
    ANY,
    EMPTY,
    EmptyConstraint,
    VersionConstraint,
    VersionRange,
    VersionUnion,
    allows,
    intersect,
    parse_constraint,
    union,
    union_of,
)

__all__ = [
    "ANY",
    "EMPTY",
    "EmptyConstraint",
    "Version",
    "VersionConstraint",
    "VersionRange",
    "VersionUnion",
    "allows",
    "compare",
    "intersect",
    "next_breaking",
    "parse_constraint",
    "parse_version",
    "primary_version",
    "union",
    "union_of",
]
