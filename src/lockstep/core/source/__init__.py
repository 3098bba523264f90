"""Package source abstraction: source variants and their handlers.

Public API::

    from lockstep.core.source import Source, HostedSource, SourceHandler
    from lockstep.core.source.registry import SourceRegistry
    from lockstep.core.source.hosted import HostedHandler, InMemoryIndex
    from lockstep.core.source.http_index import HttpIndex
    from lockstep.core.source.git import GitHandler, GitClient
    from lockstep.core.source.path import PathHandler
    from lockstep.core.source.sdk import SdkHandler, SdkInfo
"""

from __future__ import annotations

from lockstep.core.source.base import SourceHandler, sha256_fingerprint
from lockstep.core.source.models import (
    GitSource,
    HostedSource,
    PathSource,
    SdkSource,
    Source,
    SourceKind,
    describe,
    same_source,
    source_from_dict,
)

__all__ = [
    "GitSource",
    "HostedSource",
    "PathSource",
    "SdkSource",
    "Source",
    "SourceHandler",
    "SourceKind",
    "describe",
    "same_source",
    "sha256_fingerprint",
    "source_from_dict",
]
