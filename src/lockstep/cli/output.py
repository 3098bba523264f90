"""Rich output formatting helpers for the lockstep CLI.

Provides consistent terminal output for resolution summaries, conflict
reports, validation advisories and lockfile diffs.

Level Color Mapping:
    ERROR = bold red, WARNING = yellow
"""

from __future__ import annotations

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from lockstep.core.dependency import ConflictReport
from lockstep.validator import Advisory, AdvisoryLevel

_LEVEL_STYLES: dict[AdvisoryLevel, str] = {
    AdvisoryLevel.ERROR: "bold red",
    AdvisoryLevel.WARNING: "yellow",
}

console = Console()


def level_style(level: AdvisoryLevel) -> str:
    """Return the Rich style string for an advisory level."""
    return _LEVEL_STYLES.get(level, "white")


def configure_logging(verbosity: int) -> None:
    """Route ``lockstep`` log records to stderr through Rich.

    Args:
        verbosity: 0 for warnings only, 1 for info, 2 or more for debug.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    logger = logging.getLogger("lockstep")
    logger.handlers = [handler]
    logger.setLevel(level)
    logger.propagate = False


def print_resolution_summary(
    success: bool,
    installed: dict[str, str],
    conflicts: list[str],
) -> None:
    """Print dependency resolution results.

    Args:
        success: Whether resolution succeeded.
        installed: Package name to version mapping (if success).
        conflicts: Conflict descriptions (if failure).
    """
    if success:
        console.print(
            Panel("[bold green]Resolution successful[/bold green]",
                  title="Dependency Resolution")
        )
        if installed:
            table = Table(show_header=True)
            table.add_column("Package", style="bold")
            table.add_column("Resolved Version")
            for name in sorted(installed):
                table.add_row(name, installed[name])
            console.print(table)
        else:
            console.print("[dim]No dependencies to resolve.[/dim]")
    else:
        console.print(
            Panel("[bold red]Resolution failed[/bold red]",
                  title="Dependency Resolution")
        )
        for conflict in conflicts:
            console.print(f"  [red]- {conflict}[/red]")


def print_conflict_report(report: ConflictReport) -> None:
    """Print the constraints behind an unsatisfiable resolution, by package."""
    table = Table(title=f"Conflict on {report.package}", show_header=True, header_style="bold")
    table.add_column("Package", style="bold")
    table.add_column("Constraint")
    table.add_column("Required By", style="dim")
    for req in report.causes:
        requirer = req.requirer
        if req.requirer_version is not None:
            requirer = f"{requirer} {req.requirer_version}"
        table.add_row(req.name, str(req.range.constraint), requirer)
    console.print(table)


def report_to_json(report: ConflictReport) -> dict[str, Any]:
    """Convert a conflict report to a JSON-serializable dict."""
    return {
        "package": report.package,
        "causes": [
            {
                "package": req.name,
                "constraint": str(req.range.constraint),
                "source": req.range.source.describe(),
                "required_by": req.requirer,
                "required_by_version": (
                    str(req.requirer_version) if req.requirer_version is not None else None
                ),
            }
            for req in report.causes
        ],
    }


def print_advisories(advisories: list[Advisory]) -> None:
    """Print validation advisories with their suggested fixes."""
    if not advisories:
        console.print("[green]No issues found.[/green]")
        return
    for advisory in advisories:
        header = Text.assemble(
            (advisory.level.name, level_style(advisory.level)),
            (f" [{advisory.code}] ", "dim"),
            (advisory.package, "bold"),
        )
        console.print(header)
        console.print(f"  {advisory.message}")
        if advisory.suggestion:
            console.print(Panel(advisory.suggestion, title="For example", expand=False))
    errors = sum(1 for a in advisories if a.level is AdvisoryLevel.ERROR)
    warnings = len(advisories) - errors
    console.print(f"[bold]{errors}[/bold] errors | [bold]{warnings}[/bold] warnings")


def advisory_to_json(advisory: Advisory) -> dict[str, Any]:
    return {
        "level": advisory.level.name,
        "code": advisory.code,
        "package": advisory.package,
        "message": advisory.message,
        "suggestion": advisory.suggestion,
    }


def print_lock_diff(diff: dict[str, Any]) -> None:
    """Print the result of ``Lockfile.diff``."""
    if not (diff["added"] or diff["removed"] or diff["changed"]):
        console.print("[dim]Lockfiles are identical.[/dim]")
        return
    table = Table(title="Lockfile Changes", show_header=True, header_style="bold")
    table.add_column("Package", style="bold")
    table.add_column("Change")
    table.add_column("Old", style="red")
    table.add_column("New", style="green")
    for name in diff["added"]:
        table.add_row(name, "added", "-", "-")
    for name in diff["removed"]:
        table.add_row(name, "removed", "-", "-")
    for change in diff["changed"]:
        table.add_row(
            change["name"], change["field"], _render(change["old"]), _render(change["new"])
        )
    console.print(table)


def _render(value: Any) -> str:
    if isinstance(value, dict):
        return ", ".join(f"{k}={v}" for k, v in sorted(value.items()) if v is not None)
    return str(value)
