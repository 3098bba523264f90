"""``lockstep diff <old> <new>`` — Compare two lockfiles.

Exit Codes:
    0 — Diff printed (whether or not the lockfiles differ).
    2 — A lockfile could not be read.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from lockstep.core.lockfile import Lockfile
from lockstep.exceptions import LockfileError


@click.command("diff")
@click.argument("old", type=click.Path(exists=True, dir_okay=False))
@click.argument("new", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format.",
)
def diff_command(old: str, new: str, output_format: str) -> None:
    """Show packages added, removed or changed between OLD and NEW."""
    from lockstep.cli.output import print_lock_diff

    try:
        before = Lockfile.read(Path(old))
        after = Lockfile.read(Path(new))
    except LockfileError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    diff = before.diff(after)
    if output_format == "json":
        click.echo(json.dumps(diff, indent=2, sort_keys=True))
    else:
        print_lock_diff(diff)
    sys.exit(0)
