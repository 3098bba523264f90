"""lockstep exception hierarchy.

All public exceptions inherit from LockstepError, giving callers a single
base class to catch when they want to handle any lockstep-specific failure
without swallowing unrelated errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lockstep.core.dependency.solution import ConflictReport


class LockstepError(Exception):
    """Base exception for all lockstep errors."""


class ParseError(LockstepError, ValueError):
    """Raised when version, constraint, or manifest text is malformed.

    Fatal to the single parse call. Never retried.
    """


class ManifestError(ParseError):
    """Raised when a ``manifest.yaml`` document has an invalid shape."""


class SourceConflict(LockstepError):
    """Raised when two declarations of one package disagree on its source.

    Attributes:
        name: The package name declared with conflicting sources.
        descriptions: The distinct source identity strings, sorted.
    """

    def __init__(self, name: str, descriptions: list[str]) -> None:
        self.name = name
        self.descriptions = sorted(descriptions)
        super().__init__(
            f"Package {name!r} is declared from conflicting sources: "
            + ", ".join(self.descriptions)
        )


class SourceQueryError(LockstepError):
    """Raised when a source cannot list versions or fetch a manifest.

    Attributes:
        retryable: True for transient failures (timeouts, 5xx). Retrying is
            the source's business; the solver treats both kinds as "no
            candidates".
    """

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        self.retryable = retryable
        super().__init__(message)


class ResolutionError(LockstepError):
    """Raised when dependency resolution does not produce a solution."""


class UnsatisfiableConstraints(ResolutionError):
    """Raised when exhaustive search found no assignment.

    Attributes:
        report: The ``ConflictReport`` naming the incompatible constraints.
    """

    def __init__(self, report: ConflictReport) -> None:
        self.report = report
        super().__init__(str(report))


class SearchLimitExceeded(ResolutionError):
    """Raised when the solver exceeds its candidate attempt budget."""


class ResolutionCancelled(ResolutionError):
    """Raised when a resolution run is cancelled by its caller."""


class LockfileError(LockstepError):
    """Raised for lockfile generation or integrity failures.

    Covers unreadable or corrupted lockfiles and attempts to lock a failed
    resolution.
    """
