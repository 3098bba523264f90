"""Version constraint algebra: ranges, unions, intersection, and parsing.

A constraint is one of:

- ``VersionRange`` -- optional lower and upper bounds, each inclusive or
  exclusive. With no bounds it is *any*; with equal inclusive bounds it is
  a single exact version.
- ``VersionUnion`` -- a sorted list of disjoint ranges.
- ``EmptyConstraint`` -- allows nothing. Distinct from *any*.

Constraint syntax::

    any | *                    every version
    1.2.3 | ==1.2.3            exactly 1.2.3
    ^1.2.3                     >=1.2.3 <next_breaking(1.2.3)
    ~1.2.3                     >=1.2.3 <1.3.0
    >=1.0.0 <2.0.0             whitespace- or comma-separated comparators
    ^1.0.0 || ^2.0.0           union

Pre-release handling follows pub_semver: an exclusive upper bound that is
not itself a pre-release keeps out the pre-releases of that bound, so
``^1.0.0`` does not allow ``2.0.0-dev.1``. The bound is rewritten to the
first pre-release of its triple (``<2.0.0-0``) when the range is built,
unless the lower bound is a pre-release of that same triple. Every range is
therefore a plain interval and intersection and union work on bounds alone.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable

from lockstep.core.version.version import Version
from lockstep.exceptions import ParseError


class VersionConstraint(ABC):
    """Abstract predicate over versions."""

    @abstractmethod
    def allows(self, version: Version) -> bool:
        """Return True if *version* satisfies this constraint."""

    @property
    @abstractmethod
    def ranges(self) -> tuple[VersionRange, ...]:
        """The disjoint ranges making up this constraint, lowest first."""

    @property
    def is_empty(self) -> bool:
        return not self.ranges

    @property
    def is_any(self) -> bool:
        return len(self.ranges) == 1 and self.ranges[0].is_any

    def intersect(self, other: VersionConstraint) -> VersionConstraint:
        """Return the tightest constraint allowing only what both allow."""
        pieces: list[VersionRange] = []
        for left in self.ranges:
            for right in other.ranges:
                piece = _intersect_ranges(left, right)
                if piece is not None:
                    pieces.append(piece)
        return union_of(pieces)

    def union(self, other: VersionConstraint) -> VersionConstraint:
        """Return the smallest constraint allowing what either allows."""
        return union_of(self.ranges + other.ranges)

    def allows_all(self, other: VersionConstraint) -> bool:
        """True if every version *other* allows is allowed here."""
        return union_of(self.intersect(other).ranges).ranges == union_of(
            other.ranges
        ).ranges

    def allows_any(self, other: VersionConstraint) -> bool:
        """True if some version is allowed by both constraints."""
        return not self.intersect(other).is_empty


@dataclass(frozen=True)
class EmptyConstraint(VersionConstraint):
    """The constraint that allows no version."""

    def allows(self, version: Version) -> bool:
        return False

    @property
    def ranges(self) -> tuple[VersionRange, ...]:
        return ()

    def __str__(self) -> str:
        return "<empty>"


@dataclass(frozen=True)
class VersionRange(VersionConstraint):
    """A contiguous range of versions.

    Attributes:
        min: Lower bound, or None for unbounded.
        max: Upper bound, or None for unbounded.
        include_min: Whether ``min`` itself is allowed.
        include_max: Whether ``max`` itself is allowed.
        is_caret: Set when the range was written as ``^min``. Only affects
            rendering; two ranges with the same bounds are equal.
        keep_max_prereleases: Store ``max`` as given instead of moving an
            exclusive release bound down to its first pre-release. Used by
            range arithmetic on bounds that are already normalized.
    """

    min: Version | None = None
    max: Version | None = None
    include_min: bool = False
    include_max: bool = False
    is_caret: bool = field(default=False, compare=False)
    keep_max_prereleases: bool = field(default=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        if (
            self.keep_max_prereleases
            or self.max is None
            or self.include_max
            or self.max.is_prerelease
        ):
            return
        if (
            self.min is not None
            and self.min.is_prerelease
            and self.min.triple == self.max.triple
        ):
            return
        object.__setattr__(self, "max", self.max.first_prerelease)

    @classmethod
    def exact(cls, version: Version) -> VersionRange:
        return cls(version, version, True, True)

    @classmethod
    def caret(cls, version: Version) -> VersionRange:
        return cls(version, version.next_breaking(), True, False, is_caret=True)

    @property
    def ranges(self) -> tuple[VersionRange, ...]:
        return () if self.is_inverted else (self,)

    @property
    def is_inverted(self) -> bool:
        """True if the bounds cross, so the range allows nothing."""
        if self.min is None or self.max is None:
            return False
        if self.min > self.max:
            return True
        return self.min.precedence_key == self.max.precedence_key and not (
            self.include_min and self.include_max
        )

    @property
    def is_any(self) -> bool:
        return self.min is None and self.max is None

    @property
    def is_exact(self) -> bool:
        return (
            self.min is not None
            and self.min == self.max
            and self.include_min
            and self.include_max
        )

    def allows(self, version: Version) -> bool:
        if self.is_inverted:
            return False
        if self.min is not None:
            if version < self.min or (not self.include_min and version <= self.min):
                return False
        if self.max is not None:
            if version > self.max or (not self.include_max and version >= self.max):
                return False
        return True

    def __str__(self) -> str:
        if self.is_any:
            return "any"
        if self.is_exact:
            return str(self.min)
        if self.is_caret and self.min is not None:
            return f"^{self.min}"
        parts: list[str] = []
        if self.min is not None:
            parts.append(f"{'>=' if self.include_min else '>'}{self.min}")
        if self.max is not None:
            if self.include_max:
                parts.append(f"<={self.max}")
            elif self.max.is_first_prerelease:
                parts.append(f"<{self.max.major}.{self.max.minor}.{self.max.patch}")
            else:
                parts.append(f"<{self.max}")
        return " ".join(parts)


@dataclass(frozen=True)
class VersionUnion(VersionConstraint):
    """Two or more disjoint ranges, sorted lowest first."""

    members: tuple[VersionRange, ...]

    @property
    def ranges(self) -> tuple[VersionRange, ...]:
        return self.members

    def allows(self, version: Version) -> bool:
        return any(r.allows(version) for r in self.members)

    def __str__(self) -> str:
        return " || ".join(str(r) for r in self.members)


ANY = VersionRange()
EMPTY = EmptyConstraint()


# ---------------------------------------------------------------------------
# Bound arithmetic
# ---------------------------------------------------------------------------


def _lower_key(r: VersionRange) -> tuple:
    # None sorts lowest; at equal versions an inclusive bound is lower.
    if r.min is None:
        return (0,)
    return (1, r.min.precedence_key, 0 if r.include_min else 1)


def _upper_key(r: VersionRange) -> tuple:
    # None sorts highest; at equal versions an inclusive bound is higher.
    if r.max is None:
        return (2,)
    return (1, r.max.precedence_key, 1 if r.include_max else 0)


def _intersect_ranges(a: VersionRange, b: VersionRange) -> VersionRange | None:
    low = a if _lower_key(a) >= _lower_key(b) else b
    high = a if _upper_key(a) <= _upper_key(b) else b
    result = VersionRange(
        low.min, high.max, low.include_min, high.include_max, keep_max_prereleases=True
    )
    if result.is_inverted:
        return None
    for original in (a, b):
        if original == result:
            return original
    return result


def _touches(lower: VersionRange, upper: VersionRange) -> bool:
    """True if *upper* (starting at or after *lower*) overlaps or abuts it."""
    if lower.max is None or upper.min is None:
        return True
    if lower.max > upper.min:
        return True
    if lower.max.precedence_key == upper.min.precedence_key:
        return lower.include_max or upper.include_min
    return False


def union_of(ranges: Iterable[VersionRange]) -> VersionConstraint:
    """Normalize *ranges* into the smallest equivalent constraint."""
    live = sorted((r for r in ranges if not r.is_inverted), key=_lower_key)
    if not live:
        return EMPTY
    merged: list[VersionRange] = [live[0]]
    for current in live[1:]:
        last = merged[-1]
        if _touches(last, current):
            high = last if _upper_key(last) >= _upper_key(current) else current
            if high is last:
                continue
            merged[-1] = VersionRange(
                last.min,
                current.max,
                last.include_min,
                current.include_max,
                keep_max_prereleases=True,
            )
        else:
            merged.append(current)
    if len(merged) == 1:
        return merged[0]
    return VersionUnion(tuple(merged))


# ---------------------------------------------------------------------------
# Module-level operations
# ---------------------------------------------------------------------------


def intersect(a: VersionConstraint, b: VersionConstraint) -> VersionConstraint:
    return a.intersect(b)


def union(a: VersionConstraint, b: VersionConstraint) -> VersionConstraint:
    return a.union(b)


def allows(constraint: VersionConstraint, version: Version) -> bool:
    return constraint.allows(version)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

_COMPARATOR_RE = re.compile(
    r"\s*(?P<op>>=|<=|==|>|<|\^|~)?\s*"
    r"(?P<ver>\d+\.\d+\.\d+(?:-[0-9A-Za-z\-.]+)?(?:\+[0-9A-Za-z\-.]+)?)"
    r"\s*,?"
)


def _parse_single(text: str) -> VersionConstraint:
    stripped = text.strip()
    if stripped in ("any", "*"):
        return ANY
    if not stripped:
        raise ParseError("Empty version constraint")

    atoms: list[tuple[str | None, Version]] = []
    pos = 0
    while pos < len(stripped):
        m = _COMPARATOR_RE.match(stripped, pos)
        if not m or m.end() == pos:
            raise ParseError(f"Invalid version constraint: {text!r}")
        atoms.append((m.group("op"), Version.parse(m.group("ver"))))
        pos = m.end()

    if len(atoms) == 1 and atoms[0][0] in (None, "=="):
        return VersionRange.exact(atoms[0][1])

    if len(atoms) == 1 and atoms[0][0] == "^":
        return VersionRange.caret(atoms[0][1])

    lowers: list[tuple[Version, bool]] = []
    uppers: list[tuple[Version, bool]] = []
    for op, version in atoms:
        if op is None or op == "==":
            raise ParseError(
                f"A bare version cannot be combined with other comparators: {text!r}"
            )
        if op == "^":
            lowers.append((version, True))
            uppers.append((version.next_breaking(), False))
        elif op == "~":
            lowers.append((version, True))
            uppers.append((version.next_minor(), False))
        elif op == ">=":
            lowers.append((version, True))
        elif op == ">":
            lowers.append((version, False))
        elif op == "<=":
            uppers.append((version, True))
        else:
            uppers.append((version, False))

    low = max(lowers, key=_lower_bound_key, default=None)
    # Upper bounds are normalized against the final lower bound before the
    # tightest one is picked.
    high = min(
        (_normalized_upper(bound, low) for bound in uppers),
        key=_upper_bound_key,
        default=None,
    )
    result = VersionRange(
        low[0] if low else None,
        high[0] if high else None,
        low[1] if low else False,
        high[1] if high else False,
        keep_max_prereleases=True,
    )
    return union_of([result])


def _normalized_upper(
    bound: tuple[Version, bool], low: tuple[Version, bool] | None
) -> tuple[Version, bool]:
    normalized = VersionRange(
        low[0] if low else None, bound[0], low[1] if low else False, bound[1]
    )
    return (normalized.max, bound[1])


def _lower_bound_key(bound: tuple[Version, bool]) -> tuple:
    version, inclusive = bound
    return (version.precedence_key, 0 if inclusive else 1)


def _upper_bound_key(bound: tuple[Version, bool]) -> tuple:
    version, inclusive = bound
    return (version.precedence_key, 1 if inclusive else 0)


def parse_constraint(text: str) -> VersionConstraint:
    """Parse a constraint string.

    Raises:
        ParseError: If *text* is not a valid constraint.
    """
    if not isinstance(text, str):
        raise ParseError(f"Constraint must be a string, got {type(text).__name__}")
    if "||" in text:
        result: VersionConstraint = EMPTY
        for part in text.split("||"):
            result = result.union(_parse_single(part))
        return result
    return _parse_single(text)
