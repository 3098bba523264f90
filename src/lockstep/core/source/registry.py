"""Source registry: the handler table the solver dispatches through.

``SourceRegistry`` maps each ``SourceKind`` to its handler and caches every
answer. Listings are stored once as immutable tuples keyed by the package's
identity string, so the solver always reads a consistent snapshot even when
``prefetch`` fills the cache from worker threads. Failed listings are
cached too: a package that could not be listed stays unlisted for the rest
of the run.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, Mapping, Union

from lockstep.core.dependency.models import PackageId, PackageRange
from lockstep.core.manifest import Manifest
from lockstep.core.source.base import SourceHandler
from lockstep.core.source.git import GitClient, GitHandler
from lockstep.core.source.hosted import HostedHandler, HostedIndex
from lockstep.core.source.http_index import HttpIndex
from lockstep.core.source.models import Source, SourceKind, describe
from lockstep.core.source.path import PathHandler
from lockstep.core.source.sdk import SdkHandler, SdkInfo
from lockstep.exceptions import SourceQueryError

logger = logging.getLogger(__name__)

_Listing = Union[tuple[PackageId, ...], SourceQueryError]

DEFAULT_PREFETCH_WORKERS: int = 4


class SourceRegistry:
    """Dispatches source queries to handlers and caches the results.

    Args:
        handlers: One handler per source kind. A kind without a handler fails
            its queries with ``SourceQueryError``.
        max_workers: Thread pool size used by ``prefetch``.

    Thread safety: ``list_versions`` and ``prefetch`` may be called from
    different threads. A listing in progress is registered per package
    identity, so each handler lists a package at most once.
    """

    def __init__(
        self,
        handlers: Iterable[SourceHandler],
        *,
        max_workers: int = DEFAULT_PREFETCH_WORKERS,
    ) -> None:
        self._handlers: dict[SourceKind, SourceHandler] = {h.kind: h for h in handlers}
        self._max_workers = max_workers
        self._listings: dict[str, _Listing] = {}
        self._inflight: dict[str, Future] = {}
        self._manifests: dict[PackageId, Manifest] = {}
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def default(
        cls,
        *,
        hosted_indexes: Mapping[str, HostedIndex] | None = None,
        index_factory: Callable[[str], HostedIndex] | None = HttpIndex,
        git_client: GitClient | None = None,
        sdks: Mapping[str, SdkInfo] | None = None,
        git_cache_dir: Path | None = None,
    ) -> SourceRegistry:
        """Registry with one handler per source kind.

        Hosted registries not listed in *hosted_indexes* are created with
        *index_factory* (``HttpIndex`` by default; pass None to stay offline).
        """
        return cls(
            [
                HostedHandler(hosted_indexes, index_factory),
                GitHandler(git_client or GitClient(git_cache_dir)),
                PathHandler(),
                SdkHandler(sdks),
            ]
        )

    # -- Dispatch -----------------------------------------------------------

    def handler_for(self, source: Source) -> SourceHandler:
        handler = self._handlers.get(source.kind)
        if handler is None:
            raise SourceQueryError(f"No handler registered for {source.kind.value} sources")
        return handler

    def describe(self, name: str, source: Source) -> str:
        handler = self._handlers.get(source.kind)
        return handler.describe(name, source) if handler else describe(name, source)

    # -- Listings -----------------------------------------------------------

    def _load(self, key: str, name: str, source: Source) -> _Listing:
        try:
            outcome: _Listing = tuple(self.handler_for(source).list_versions(name, source))
        except SourceQueryError as exc:
            logger.warning("Could not list versions of %s: %s", key, exc)
            outcome = exc
        with self._lock:
            # First writer wins; a listing never changes once stored.
            outcome = self._listings.setdefault(key, outcome)
            self._inflight.pop(key, None)
        return outcome

    def list_versions(self, name: str, source: Source) -> tuple[PackageId, ...]:
        """Return the cached listing of *name*, fetching it on first use.

        Raises:
            SourceQueryError: If the listing failed (now or earlier).
        """
        key = self.describe(name, source)
        owner: Future | None = None
        with self._lock:
            outcome = self._listings.get(key)
            future = self._inflight.get(key)
            if outcome is None and future is None:
                # Claim the key; other callers wait on this future.
                owner = future = Future()
                self._inflight[key] = owner
        if outcome is None and owner is not None:
            try:
                outcome = self._load(key, name, source)
            except BaseException as exc:
                with self._lock:
                    self._inflight.pop(key, None)
                owner.set_exception(exc)
                raise
            owner.set_result(outcome)
        elif outcome is None:
            outcome = future.result()
        if isinstance(outcome, SourceQueryError):
            raise outcome
        return outcome

    def prefetch(self, ranges: Iterable[PackageRange]) -> None:
        """Start fetching listings for *ranges* in the background."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="lockstep-prefetch"
                )
            for dep in ranges:
                key = self.describe(dep.name, dep.source)
                if key in self._listings or key in self._inflight:
                    continue
                self._inflight[key] = self._executor.submit(
                    self._load, key, dep.name, dep.source
                )

    # -- Manifests ----------------------------------------------------------

    def fetch_manifest(self, package: PackageId) -> Manifest:
        """Return the (cached) manifest of *package*.

        Raises:
            SourceQueryError: If the manifest cannot be fetched.
        """
        with self._lock:
            manifest = self._manifests.get(package)
        if manifest is None:
            manifest = self.handler_for(package.source).fetch_manifest(package)
            with self._lock:
                manifest = self._manifests.setdefault(package, manifest)
        return manifest

    def restore(self, package: PackageId) -> PackageId | None:
        """Re-validate a locked id; None if it is no longer available."""
        try:
            return self.handler_for(package.source).restore(package)
        except SourceQueryError as exc:
            logger.debug("Could not restore locked %s: %s", package, exc)
            return None

    # -- Lifecycle ----------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
        for handler in self._handlers.values():
            handler.close()

    def __enter__(self) -> SourceRegistry:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
