"""Git source: packages read from a repository at a resolved commit.

A git dependency has exactly one candidate: the version declared by the
manifest at the commit its ref currently points to. The commit hash is the
package fingerprint, so a lockfile pins the exact tree and re-resolving with
that lockfile keeps the pinned commit even after the ref moves.
"""

from __future__ import annotations

import hashlib
import logging
import posixpath
import subprocess
import tempfile
from pathlib import Path
from typing import Sequence

from lockstep.config import MANIFEST_NAME
from lockstep.core.dependency.models import PackageId
from lockstep.core.manifest import Manifest
from lockstep.core.source.base import SourceHandler
from lockstep.core.source.models import GitSource, Source, SourceKind
from lockstep.exceptions import ParseError, SourceQueryError

logger = logging.getLogger(__name__)


class GitClient:
    """Thin wrapper over the ``git`` executable using bare mirror clones.

    Each repository URL is mirrored once under ``cache_dir`` and fetched at
    most once per client instance.
    """

    def __init__(self, cache_dir: Path | None = None, executable: str = "git") -> None:
        self._cache_dir = cache_dir or Path(tempfile.gettempdir()) / "lockstep-git"
        self._executable = executable
        self._fetched: set[str] = set()

    def _run(self, *args: str, cwd: Path | None = None) -> str:
        try:
            proc = subprocess.run(
                [self._executable, *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise SourceQueryError(f"Could not run git: {exc}") from exc
        if proc.returncode != 0:
            raise SourceQueryError(
                f"git {' '.join(args)} failed: {proc.stderr.strip()}"
            )
        return proc.stdout

    def _mirror(self, url: str) -> Path:
        directory = self._cache_dir / hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
        if not directory.exists():
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Cloning %s", url)
            self._run("clone", "--mirror", "--quiet", url, str(directory))
            self._fetched.add(url)
        elif url not in self._fetched:
            logger.debug("Fetching %s", url)
            self._run("fetch", "--quiet", "--prune", cwd=directory)
            self._fetched.add(url)
        return directory

    def resolve_ref(self, url: str, ref: str | None) -> str:
        """Return the commit hash *ref* (default branch if None) points to."""
        mirror = self._mirror(url)
        return self._run("rev-parse", "--verify", f"{ref or 'HEAD'}^{{commit}}", cwd=mirror).strip()

    def read_file(self, url: str, commit: str, path: str) -> str:
        """Return the content of *path* at *commit*."""
        mirror = self._mirror(url)
        return self._run("show", f"{commit}:{path}", cwd=mirror)


class GitHandler(SourceHandler):
    """Source handler for ``GitSource``.

    Args:
        client: Object with ``resolve_ref(url, ref)`` and
            ``read_file(url, commit, path)``; defaults to ``GitClient()``.
    """

    def __init__(self, client: GitClient | None = None) -> None:
        self._client = client or GitClient()
        self._manifests: dict[tuple[str, str, str], Manifest] = {}

    @property
    def kind(self) -> SourceKind:
        return SourceKind.GIT

    @staticmethod
    def _git_source(source: Source) -> GitSource:
        if not isinstance(source, GitSource):
            raise SourceQueryError(f"Git handler cannot serve {source.describe()}")
        return source

    def _manifest_at(self, source: GitSource, commit: str) -> Manifest:
        key = (source.url, commit, source.normalized_path)
        manifest = self._manifests.get(key)
        if manifest is None:
            path = posixpath.normpath(posixpath.join(source.normalized_path, MANIFEST_NAME))
            text = self._client.read_file(source.url, commit, path)
            try:
                manifest = Manifest.parse(text)
            except ParseError as exc:
                raise SourceQueryError(
                    f"Invalid manifest in {source.describe()} at {commit}: {exc}"
                ) from exc
            self._manifests[key] = manifest
        return manifest

    def _package_at(self, name: str, source: GitSource, commit: str) -> PackageId:
        manifest = self._manifest_at(source, commit)
        if manifest.name != name:
            raise SourceQueryError(
                f"{source.describe()} contains package {manifest.name!r}, expected {name!r}"
            )
        return PackageId(name, manifest.version, source, commit)

    def list_versions(self, name: str, source: Source) -> Sequence[PackageId]:
        git = self._git_source(source)
        commit = self._client.resolve_ref(git.url, git.ref)
        return [self._package_at(name, git, commit)]

    def fetch_manifest(self, package: PackageId) -> Manifest:
        git = self._git_source(package.source)
        commit = package.fingerprint or self._client.resolve_ref(git.url, git.ref)
        return self._manifest_at(git, commit)

    def restore(self, package: PackageId) -> PackageId | None:
        """Keep the locked commit rather than the ref's current head."""
        if not package.fingerprint:
            return super().restore(package)
        git = self._git_source(package.source)
        try:
            return self._package_at(package.name, git, package.fingerprint)
        except SourceQueryError as exc:
            logger.debug("Locked commit of %s unavailable: %s", package.name, exc)
            return None
