"""lockstep CLI: dependency resolution and lock records.

Entry point for the ``lockstep`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    lock      Resolve a project's dependencies and write lockstep.lock.
    validate  Check a manifest's dependency declarations (and its lock).
    diff      Compare two lockfiles.

Usage::

    lockstep lock ./my-project
    lockstep lock ./my-project --index packages.yaml --mode prefer-newest
    lockstep lock ./my-project --upgrade http --sdk flutter=3.10.0
    lockstep validate ./my-project
    lockstep diff old/lockstep.lock new/lockstep.lock
"""

from __future__ import annotations

import click

from lockstep import __version__
from lockstep.cli.diff_cmd import diff_command
from lockstep.cli.lock import lock_command
from lockstep.cli.output import configure_logging
from lockstep.cli.validate_cmd import validate_command


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--verbose", "-v",
    count=True,
    help="Log solver progress (-v for info, -vv for debug).",
)
def cli(verbose: int) -> None:
    """lockstep: dependency resolution for package manifests.

    Resolves every direct and transitive dependency of a project to one
    version per package, or explains which constraints cannot be
    satisfied together.
    """
    configure_logging(verbose)


# Register all subcommands
cli.add_command(lock_command)
cli.add_command(validate_command)
cli.add_command(diff_command)
