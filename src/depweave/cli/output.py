"""Rich output formatting helpers for the depweave CLI.

Provides consistent terminal output for resolved plans, lock file diffs,
validation problems and errors, plus the logging setup shared by all
commands.

Status Color Mapping:
    written = bold green, repinned = bold cyan, unchanged = dim,
    stale = bold yellow
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from depweave.core.lockfile import Lockfile
from depweave.core.workspace import ResolveResult, ResolveStatus
from depweave.exceptions import (
    DepweaveError,
    PinConflict,
    RecipeNotFound,
    ResolutionConflict,
)

_STATUS_STYLES: dict[ResolveStatus, str] = {
    ResolveStatus.WRITTEN: "bold green",
    ResolveStatus.REPINNED: "bold cyan",
    ResolveStatus.UNCHANGED: "dim",
    ResolveStatus.STALE: "bold yellow",
}

_STATUS_MESSAGES: dict[ResolveStatus, str] = {
    ResolveStatus.WRITTEN: "Lock file written",
    ResolveStatus.REPINNED: "Lock file updated with pins",
    ResolveStatus.UNCHANGED: "Lock file is up to date",
    ResolveStatus.STALE: "Lock file is stale; left untouched (use --force to re-resolve)",
}

console = Console()
err_console = Console(stderr=True, soft_wrap=True)


def configure_logging(verbosity: int) -> None:
    """Route the ``depweave`` loggers to a RichHandler on stderr.

    ``0`` shows warnings, ``1`` info, ``2`` and more debug.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("depweave")
    root.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(
            RichHandler(console=err_console, show_path=verbosity >= 2, rich_tracebacks=True)
        )
    root.propagate = False


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn depweave errors into a printed message and exit code 1.

    A ``KeyboardInterrupt`` exits with 130; the lock file is untouched in
    both cases.
    """
    try:
        yield
    except DepweaveError as exc:
        print_error(exc)
        sys.exit(1)
    except KeyboardInterrupt:
        err_console.print("[yellow]Cancelled.[/yellow]")
        sys.exit(130)


def print_error(exc: DepweaveError) -> None:
    """Print a depweave error with the context attached to it."""
    err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}", highlight=False)
    if isinstance(exc, ResolutionConflict):
        for requirer, constraint in exc.constraints:
            line = escape(f"{requirer} requires {exc.name} {constraint}")
            err_console.print(f"  [red]-[/red] {line}", highlight=False)
    elif isinstance(exc, RecipeNotFound) and exc.chain:
        err_console.print(f"  required through: {escape(' -> '.join(exc.chain + [exc.name]))}", highlight=False)
    elif isinstance(exc, PinConflict) and exc.requirer:
        line = escape(f"{exc.requirer} requires {exc.name} {exc.failing_constraint}")
        err_console.print(f"  {line}", highlight=False)


def print_plan(lockfile: Lockfile, title: str = "Resolved Dependencies") -> None:
    """Print the packages of a lock file as a table."""
    if not lockfile.entry_count:
        console.print("[dim]No dependencies.[/dim]")
        return
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Package", style="bold")
    table.add_column("Version")
    table.add_column("Revision", style="dim")
    table.add_column("Origin")
    for entry in lockfile.entries:
        table.add_row(entry.name, entry.version, entry.revision or "-", entry.origin)
    console.print(table)


def print_resolve_result(result: ResolveResult) -> None:
    """Print the outcome of ``depweave resolve``."""
    style = _STATUS_STYLES[result.status]
    console.print(
        Panel(Text(_STATUS_MESSAGES[result.status], style=style), title="Dependency Resolution")
    )
    if result.status is ResolveStatus.REPINNED:
        print_diff(result.diff())
    elif result.status is not ResolveStatus.STALE:
        print_plan(result.lockfile)
    console.print(
        f"[bold]{result.lockfile.entry_count}[/bold] package(s) | "
        f"heuristics {result.lockfile.heuristics} | {result.path}",
        highlight=False,
    )


def print_diff(diff: dict[str, Any]) -> None:
    """Print a lock file diff (added, removed and changed packages)."""
    if not (diff["added"] or diff["removed"] or diff["changed"]):
        console.print("[dim]No differences.[/dim]")
        return
    table = Table(title="Lock File Changes", show_header=True, header_style="bold")
    table.add_column("Package", style="bold")
    table.add_column("Change")
    table.add_column("Old", style="red")
    table.add_column("New", style="green")
    for name in diff["added"]:
        table.add_row(name, "added", "-", "")
    for name in diff["removed"]:
        table.add_row(name, "removed", "", "-")
    for change in diff["changed"]:
        old, new = change["old"], change["new"]
        if isinstance(old, list):
            old, new = "\n".join(old), "\n".join(new)
        table.add_row(change["name"], change["field"], str(old), str(new))
    console.print(table)


def print_problems(problems: list[str]) -> None:
    """Print lock file validation problems."""
    for problem in problems:
        err_console.print(f"  [red]- {escape(problem)}[/red]", highlight=False)


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout.

    Args:
        data: Any JSON-serializable data structure.
    """
    console.print_json(json.dumps(data, default=str))
