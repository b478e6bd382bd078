"""``depweave diff OLD NEW``: compare two lock files.

Exit Codes:
    0 — The lock files list the same packages at the same versions.
    1 — They differ, or one of them cannot be parsed.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from depweave.cli.common import format_option
from depweave.cli.output import handle_errors, print_diff, print_json
from depweave.core.lockfile import Lockfile


@click.command("diff")
@click.argument("old", type=click.Path(exists=True, dir_okay=False))
@click.argument("new", type=click.Path(exists=True, dir_okay=False))
@format_option
def diff_command(old: str, new: str, fmt: str) -> None:
    """Show what changed between lock files OLD and NEW."""
    with handle_errors():
        before = Lockfile.read(Path(old))
        after = Lockfile.read(Path(new))
    diff = before.diff(after)

    if fmt == "json":
        print_json(diff)
    else:
        print_diff(diff)
    differs = bool(diff["added"] or diff["removed"] or diff["changed"])
    sys.exit(1 if differs else 0)
