"""Semantic versions: parsing, precedence, and increments.

Ordering follows SemVer 2.0.0 precedence (section 11): numeric fields
compare numerically, a pre-release has lower precedence than the release
of the same triple, and build metadata does not affect precedence. Build
metadata *does* take part in identity, so ``Version("1.0.0+a")`` and
``Version("1.0.0+b")`` compare equal through ``compare`` but are not ``==``.

References
----------
.. [SemVer] Preston-Werner, T. (2013). "Semantic Versioning 2.0.0."
   https://semver.org/
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Union

from lockstep.exceptions import ParseError

_SEMVER_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?$"
)

Identifier = Union[int, str]


def _split_identifiers(text: str | None) -> tuple[Identifier, ...]:
    if not text:
        return ()
    parts: list[Identifier] = []
    for part in text.split("."):
        if part.isdigit():
            if len(part) > 1 and part.startswith("0"):
                raise ParseError(f"Numeric identifier {part!r} has a leading zero")
            parts.append(int(part))
        else:
            parts.append(part)
    return tuple(parts)


def _identifier_key(ident: Identifier) -> tuple[int, int, str]:
    # Numeric identifiers sort below alphanumeric ones.
    if isinstance(ident, int):
        return (0, ident, "")
    return (1, 0, ident)


@dataclass(frozen=True, eq=False)
class Version:
    """An immutable semantic version.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        pre: Pre-release identifiers (``1.0.0-beta.2`` -> ``("beta", 2)``).
        build: Build metadata identifiers (``1.0.0+sha.5114f85``).
    """

    major: int
    minor: int
    patch: int
    pre: tuple[Identifier, ...] = ()
    build: tuple[Identifier, ...] = ()

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a strict semantic version string.

        Raises:
            ParseError: If *text* is not a valid semantic version.
        """
        if not isinstance(text, str):
            raise ParseError(f"Version must be a string, got {type(text).__name__}")
        m = _SEMVER_RE.match(text.strip())
        if not m:
            raise ParseError(f"Invalid semantic version: {text!r}")
        return cls(
            int(m.group("major")),
            int(m.group("minor")),
            int(m.group("patch")),
            _split_identifiers(m.group("pre")),
            tuple(m.group("build").split(".")) if m.group("build") else (),
        )

    # -- Precedence ---------------------------------------------------------

    @property
    def precedence_key(self) -> tuple:
        """Sort key implementing SemVer precedence (build metadata ignored)."""
        if not self.pre:
            pre_key: tuple = (1,)
        else:
            pre_key = (0, tuple(_identifier_key(i) for i in self.pre))
        return (self.major, self.minor, self.patch, pre_key)

    @property
    def sort_key(self) -> tuple:
        """Precedence key with build metadata as a final tie-break."""
        return (self.precedence_key, tuple(str(b) for b in self.build))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return (
            self.major == other.major
            and self.minor == other.minor
            and self.patch == other.patch
            and self.pre == other.pre
            and self.build == other.build
        )

    def __hash__(self) -> int:
        return hash((self.major, self.minor, self.patch, self.pre, self.build))

    def __lt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.precedence_key < other.precedence_key

    def __le__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.precedence_key <= other.precedence_key

    def __gt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.precedence_key > other.precedence_key

    def __ge__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.precedence_key >= other.precedence_key

    # -- Properties and increments ------------------------------------------

    @property
    def is_prerelease(self) -> bool:
        """True if the version carries pre-release identifiers."""
        return bool(self.pre)

    @property
    def triple(self) -> tuple[int, int, int]:
        """The (major, minor, patch) numbers."""
        return (self.major, self.minor, self.patch)

    @property
    def first_prerelease(self) -> Version:
        """The lowest pre-release of this triple: ``2.0.0`` -> ``2.0.0-0``."""
        return Version(self.major, self.minor, self.patch, (0,))

    @property
    def is_first_prerelease(self) -> bool:
        return self.pre == (0,) and not self.build

    def next_major(self) -> Version:
        return Version(self.major + 1, 0, 0)

    def next_minor(self) -> Version:
        return Version(self.major, self.minor + 1, 0)

    def next_patch(self) -> Version:
        return Version(self.major, self.minor, self.patch + 1)

    def next_breaking(self) -> Version:
        """Return the smallest version a caret constraint on this one excludes.

        ``^1.2.3`` excludes ``2.0.0``, ``^0.2.3`` excludes ``0.3.0`` and
        ``^0.0.3`` excludes ``0.0.4``.
        """
        if self.major > 0:
            return self.next_major()
        if self.minor > 0:
            return self.next_minor()
        return self.next_patch()

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += "-" + ".".join(str(i) for i in self.pre)
        if self.build:
            text += "+" + ".".join(str(b) for b in self.build)
        return text

    def __repr__(self) -> str:
        return f"Version({str(self)!r})"


def parse_version(text: str) -> Version:
    """Parse *text* into a ``Version``. See ``Version.parse``."""
    return Version.parse(text)


def compare(a: Version, b: Version) -> int:
    """Three-way precedence comparison: -1, 0 or 1."""
    ka, kb = a.precedence_key, b.precedence_key
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def next_breaking(version: Version) -> Version:
    """Module-level alias of ``Version.next_breaking``."""
    return version.next_breaking()


def primary_version(versions: Iterable[Version]) -> Version | None:
    """Return the highest stable version, or the highest overall if none is stable."""
    candidates = list(versions)
    if not candidates:
        return None
    stable = [v for v in candidates if not v.is_prerelease]
    pool = stable or candidates
    return max(pool, key=lambda v: v.sort_key)
