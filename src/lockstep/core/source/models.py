"""Source variants: where a package comes from and how it is identified.

``Source`` is a closed union of four frozen dataclasses. Each variant
carries its ``kind`` so that ``SourceRegistry`` can dispatch through a
handler table instead of isinstance chains. Two sources are equivalent
when their ``describe()`` strings are equal.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Union


class SourceKind(Enum):
    """The closed set of source variants."""

    HOSTED = "hosted"
    GIT = "git"
    PATH = "path"
    SDK = "sdk"


def _normalize_url(url: str) -> str:
    return url.strip().rstrip("/")


@dataclass(frozen=True)
class HostedSource:
    """A package served by a hosted registry.

    Attributes:
        url: Base URL of the registry (e.g. "https://pub.dev").
    """

    url: str
    kind: ClassVar[SourceKind] = SourceKind.HOSTED

    def describe(self) -> str:
        return f"hosted:{_normalize_url(self.url)}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "url": _normalize_url(self.url)}

    def __str__(self) -> str:
        return "hosted"


@dataclass(frozen=True)
class GitSource:
    """A package checked out from a git repository.

    Attributes:
        url: Repository URL or local repository path.
        path: Directory of the package inside the repository.
        ref: Branch, tag, or commit to resolve. None means the default branch.
    """

    url: str
    path: str = "."
    ref: str | None = None
    kind: ClassVar[SourceKind] = SourceKind.GIT

    @property
    def normalized_path(self) -> str:
        return posixpath.normpath(self.path.replace("\\", "/")) or "."

    def describe(self) -> str:
        return f"git:{_normalize_url(self.url)}#{self.ref or 'HEAD'}:{self.normalized_path}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "url": _normalize_url(self.url),
            "path": self.normalized_path,
            "ref": self.ref,
        }

    def __str__(self) -> str:
        return "git"


@dataclass(frozen=True)
class PathSource:
    """A package read from a directory on the local filesystem.

    Attributes:
        location: Absolute directory path. Manifests resolve relative paths
            against their own directory before constructing this.
    """

    location: str
    kind: ClassVar[SourceKind] = SourceKind.PATH

    @property
    def directory(self) -> Path:
        return Path(self.location)

    def describe(self) -> str:
        return f"path:{Path(self.location).as_posix()}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "location": Path(self.location).as_posix()}

    def __str__(self) -> str:
        return "path"


@dataclass(frozen=True)
class SdkSource:
    """A package shipped inside a platform SDK.

    Attributes:
        sdk: SDK identifier (e.g. "flutter").
    """

    sdk: str
    kind: ClassVar[SourceKind] = SourceKind.SDK

    def describe(self) -> str:
        return f"sdk:{self.sdk}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "sdk": self.sdk}

    def __str__(self) -> str:
        return "sdk"


Source = Union[HostedSource, GitSource, PathSource, SdkSource]


def describe(name: str, source: Source) -> str:
    """Stable identity string for package *name* from *source*."""
    return f"{name}@{source.describe()}"


def same_source(a: Source, b: Source) -> bool:
    """True if *a* and *b* identify the same origin."""
    return a.describe() == b.describe()


def source_from_dict(data: dict[str, Any]) -> Source:
    """Rebuild a source from the dict written by ``to_dict`` (lockfiles).

    Raises:
        ValueError: If the kind is unknown or required fields are missing.
    """
    try:
        kind = SourceKind(data.get("kind"))
    except ValueError:
        raise ValueError(f"Unknown source kind: {data.get('kind')!r}") from None
    try:
        if kind is SourceKind.HOSTED:
            return HostedSource(url=data["url"])
        if kind is SourceKind.GIT:
            return GitSource(
                url=data["url"], path=data.get("path") or ".", ref=data.get("ref")
            )
        if kind is SourceKind.PATH:
            return PathSource(location=data["location"])
        return SdkSource(sdk=data["sdk"])
    except KeyError as exc:
        raise ValueError(f"Source {kind.value!r} is missing field {exc.args[0]!r}") from None
