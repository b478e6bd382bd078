"""``depweave plan [DIR]``: show the locked dependency plan.

Reads DIR/depweave.lock (or a lock file given directly) and prints its
packages after checking it for internal consistency.

Exit Codes:
    0 — The lock file is valid.
    1 — The lock file cannot be parsed or is inconsistent.
    2 — There is no lock file.
"""

from __future__ import annotations

import sys

import click

from depweave.cli.common import format_option
from depweave.cli.output import (
    console,
    handle_errors,
    print_json,
    print_plan,
    print_problems,
)
from depweave.core.workspace import locked_plan


@click.command("plan")
@click.argument("path", type=click.Path(exists=True), default=".")
@format_option
def plan_command(path: str, fmt: str) -> None:
    """Show the locked plan of the package at PATH.

    PATH is a package directory or a lock file.
    """
    with handle_errors():
        lockfile = locked_plan(path)

    if lockfile is None:
        click.echo("No lock file found; run 'depweave resolve' first.")
        sys.exit(2)

    problems = lockfile.validate()
    if fmt == "json":
        data = lockfile.to_dict()
        data["problems"] = problems
        print_json(data)
    else:
        root = lockfile.root
        title = f"{root.name} {root.version}" if root else "Locked Dependencies"
        print_plan(lockfile, title=title)
        console.print(f"heuristics {lockfile.heuristics}", highlight=False)
        for name, version in sorted(lockfile.pins.items()):
            console.print(f"pinned {name} {version}", highlight=False)
        if problems:
            console.print("[bold red]Lock file is inconsistent:[/bold red]")
            print_problems(problems)
    sys.exit(1 if problems else 0)
