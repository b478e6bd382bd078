"""depweave CLI — dependency resolution for compiled-language packages.

Entry point for the ``depweave`` command-line tool. Registers all
subcommands under a single Click group. Every option can also be given
through a ``DEPWEAVE_<COMMAND>_<OPTION>`` environment variable.

Commands:
    resolve   — Resolve dependencies and write depweave.lock.
    plan      — Show (and check) the locked plan.
    build-id  — Print the build identity digest.
    diff      — Compare two lock files.

Usage::

    depweave resolve                        # Resolve the package in .
    depweave resolve --force --pick-highest ./app
    depweave resolve --use zlib 1.3.0 ./app # Pin one package
    depweave plan ./app
    depweave build-id --build-type release -o shared=true ./app
    depweave diff old.lock depweave.lock
"""

from __future__ import annotations

import click

from depweave import __version__
from depweave.cli.diff_cmd import diff_command
from depweave.cli.identity_cmd import build_id_command
from depweave.cli.output import configure_logging
from depweave.cli.plan_cmd import plan_command
from depweave.cli.resolve_cmd import resolve_command


@click.group(context_settings={"auto_envvar_prefix": "DEPWEAVE"})
@click.version_option(version=__version__)
@click.option("--verbose", "-v", count=True, help="Log more (-v info, -vv debug).")
def cli(verbose: int) -> None:
    """depweave: reproducible dependency plans and build identities.

    Resolves a package's transitive dependencies to one version per
    package, records them in depweave.lock and derives the build identity
    used as a build cache key.
    """
    configure_logging(verbose)


# Register all subcommands
cli.add_command(resolve_command)
cli.add_command(plan_command)
cli.add_command(build_id_command)
cli.add_command(diff_command)
