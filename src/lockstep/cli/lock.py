"""``lockstep lock <path>`` — Resolve dependencies and write lockstep.lock.

Reads ``<path>/manifest.yaml``, resolves every direct and transitive
dependency against the configured sources (preferring the versions of an
existing ``lockstep.lock``) and writes a deterministic lockfile.

Exit Codes:
    0 — Lockfile written.
    1 — Dependency resolution failed.
    2 — Invalid input (manifest, index or option values).
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from lockstep.config import (
    DEFAULT_HOSTED_URL,
    DEFAULT_MAX_ATTEMPTS,
    HOSTED_URL_ENVVAR,
    LOCKFILE_NAME,
    ResolutionMode,
    SolverConfig,
)
from lockstep.core.dependency import DependencyResolver
from lockstep.core.lockfile import Lockfile
from lockstep.core.manifest import Manifest
from lockstep.core.source.hosted import HostedIndex, InMemoryIndex
from lockstep.core.source.registry import SourceRegistry
from lockstep.core.source.sdk import SdkInfo
from lockstep.core.version import Version
from lockstep.exceptions import LockfileError, ParseError

logger = logging.getLogger(__name__)


def _parse_sdks(
    ctx: click.Context, param: click.Parameter, values: tuple[str, ...]
) -> dict[str, tuple[Version, Path | None]]:
    """Parse ``NAME=VERSION`` or ``NAME=VERSION:ROOT`` option values."""
    sdks: dict[str, tuple[Version, Path | None]] = {}
    for value in values:
        name, sep, rest = value.partition("=")
        if not sep or not name:
            raise click.BadParameter(f"expected NAME=VERSION, got {value!r}")
        version_text, _, root = rest.partition(":")
        try:
            version = Version.parse(version_text)
        except ParseError as exc:
            raise click.BadParameter(str(exc)) from exc
        sdks[name] = (version, Path(root) if root else None)
    return sdks


def load_manifest(path: Path, hosted_url: str) -> Manifest:
    """Load the project manifest or exit with code 2."""
    try:
        return Manifest.load(path, default_hosted_url=hosted_url)
    except (ParseError, OSError) as exc:
        click.echo(f"Error: could not load manifest: {exc}", err=True)
        sys.exit(2)


def build_registry(
    index_files: tuple[str, ...],
    hosted_url: str,
    sdks: dict[str, tuple[Version, Path | None]] | None = None,
) -> SourceRegistry:
    """Source registry for the CLI.

    With ``--index`` files the hosted source is served from them only and
    never touches the network. Without, hosted packages are fetched over
    HTTP.
    """
    indexes: dict[str, HostedIndex] = {}
    for index_file in index_files:
        try:
            index = InMemoryIndex.load(Path(index_file), default_url=hosted_url)
        except (ParseError, OSError) as exc:
            click.echo(f"Error: could not load index {index_file}: {exc}", err=True)
            sys.exit(2)
        indexes[index.url.rstrip("/")] = index
    sdk_infos = {
        name: SdkInfo(version, root) for name, (version, root) in (sdks or {}).items()
        if root is not None
    }
    if indexes:
        return SourceRegistry.default(
            hosted_indexes=indexes, index_factory=None, sdks=sdk_infos
        )
    return SourceRegistry.default(sdks=sdk_infos)


def _read_prior_lock(lock_path: Path) -> Lockfile | None:
    if not lock_path.exists():
        return None
    try:
        return Lockfile.read(lock_path)
    except LockfileError as exc:
        logger.warning("Ignoring unreadable lockfile %s: %s", lock_path, exc)
        return None


@click.command("lock")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--index", "index_files",
    type=click.Path(exists=True, dir_okay=False),
    multiple=True,
    help="YAML registry index to resolve hosted packages from (offline).",
)
@click.option(
    "--hosted-url",
    envvar=HOSTED_URL_ENVVAR,
    default=DEFAULT_HOSTED_URL,
    show_default=True,
    help="Registry for hosted dependencies that do not name one.",
)
@click.option(
    "--mode",
    type=click.Choice([m.value for m in ResolutionMode]),
    default=ResolutionMode.PREFER_LOCKED.value,
    show_default=True,
    help="Whether locked versions are tried before newer ones.",
)
@click.option(
    "--upgrade", "upgrade",
    multiple=True,
    help="Ignore the locked version of this package (repeatable).",
)
@click.option("--no-dev", is_flag=True, help="Do not resolve dev dependencies.")
@click.option(
    "--max-attempts",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_ATTEMPTS,
    show_default=True,
    help="Give up after trying this many candidate versions.",
)
@click.option(
    "--sdk", "sdks",
    multiple=True,
    callback=_parse_sdks,
    help="Installed SDK as NAME=VERSION or NAME=VERSION:ROOT (repeatable).",
)
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False),
    default=None,
    help="Output path for the lockfile (default: <path>/lockstep.lock).",
)
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format.",
)
def lock_command(
    path: str,
    index_files: tuple[str, ...],
    hosted_url: str,
    mode: str,
    upgrade: tuple[str, ...],
    no_dev: bool,
    max_attempts: int,
    sdks: dict[str, tuple[Version, Path | None]],
    output: str | None,
    output_format: str,
) -> None:
    """Resolve the dependencies of the project in PATH and lock them.

    Exit code 0 on success, 1 on resolution failure, 2 on invalid input.
    """
    from lockstep.cli.output import (
        print_conflict_report,
        print_resolution_summary,
        report_to_json,
    )

    target = Path(path)
    manifest = load_manifest(target, hosted_url)
    lock_path = Path(output) if output else target / LOCKFILE_NAME
    prior = _read_prior_lock(lock_path)

    config = SolverConfig(
        mode=ResolutionMode(mode),
        unlock=frozenset(upgrade),
        include_dev=not no_dev,
        max_attempts=max_attempts,
        sdk_versions={name: version for name, (version, _) in sdks.items()},
    )
    with build_registry(index_files, hosted_url, sdks) as registry:
        resolution = DependencyResolver(manifest, registry, prior, config).resolve()

    if not resolution.success:
        if output_format == "json":
            click.echo(json.dumps({
                "success": False,
                "error": str(resolution.error),
                "report": report_to_json(resolution.report) if resolution.report else None,
            }, indent=2))
        elif resolution.report is not None:
            print_resolution_summary(False, {}, [])
            print_conflict_report(resolution.report)
        else:
            print_resolution_summary(False, {}, [str(resolution.error)])
        sys.exit(1)

    lockfile = Lockfile.from_resolution(resolution, manifest, config.mode)
    lockfile.write(lock_path)

    if output_format == "json":
        click.echo(json.dumps({
            "success": True,
            "installed": resolution.installed,
            "lockfile": str(lock_path),
        }, indent=2))
    else:
        print_resolution_summary(True, resolution.installed, [])
        click.echo(f"\nLockfile written to: {lock_path}")
    sys.exit(0)
