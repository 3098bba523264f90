"""``lockstep validate <path>`` — Check dependency declarations.

Runs the advisory ``DependencyValidator`` over ``<path>/manifest.yaml``
and, when a ``lockstep.lock`` is present, checks that the lock is
internally consistent and still satisfies the manifest.

Exit Codes:
    0 — No errors (warnings may be present).
    1 — At least one error.
    2 — Invalid input.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from lockstep.cli.lock import build_registry, load_manifest
from lockstep.config import DEFAULT_HOSTED_URL, HOSTED_URL_ENVVAR, LOCKFILE_NAME
from lockstep.core.dependency import DependencyGraph
from lockstep.core.lockfile import Lockfile
from lockstep.exceptions import LockfileError
from lockstep.validator import AdvisoryLevel, DependencyValidator


@click.command("validate")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--index", "index_files",
    type=click.Path(exists=True, dir_okay=False),
    multiple=True,
    help="YAML registry index used to suggest hosted versions.",
)
@click.option(
    "--hosted-url",
    envvar=HOSTED_URL_ENVVAR,
    default=DEFAULT_HOSTED_URL,
    show_default=True,
    help="Registry for hosted dependencies that do not name one.",
)
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format.",
)
def validate_command(
    path: str, index_files: tuple[str, ...], hosted_url: str, output_format: str
) -> None:
    """Check the dependency declarations of the project in PATH.

    Exit code 0 when there are no errors, 1 otherwise, 2 on invalid input.
    """
    from lockstep.cli.output import advisory_to_json, console, print_advisories

    target = Path(path)
    manifest = load_manifest(target, hosted_url)

    lockfile: Lockfile | None = None
    lock_problems: list[str] = []
    lock_path = target / LOCKFILE_NAME
    if lock_path.exists():
        try:
            lockfile = Lockfile.read(lock_path)
        except LockfileError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(2)
        lock_problems = lockfile.validate()
        lock_problems += lockfile.check_constraints(
            DependencyGraph(manifest).root_requirements
        )

    registry = build_registry(index_files, hosted_url) if index_files else None
    try:
        advisories = DependencyValidator(
            manifest, lockfile, registry, hosted_url=hosted_url
        ).validate()
    finally:
        if registry is not None:
            registry.close()

    if output_format == "json":
        click.echo(json.dumps({
            "advisories": [advisory_to_json(a) for a in advisories],
            "lockfile_problems": lock_problems,
        }, indent=2))
    else:
        print_advisories(advisories)
        for problem in lock_problems:
            console.print(f"  [red]- {problem}[/red]")

    has_errors = lock_problems or any(a.level is AdvisoryLevel.ERROR for a in advisories)
    sys.exit(1 if has_errors else 0)
