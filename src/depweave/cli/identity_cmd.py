"""``depweave build-id [DIR]``: print the build identity of a package.

The build identity is the digest of the build profile, the option map and
the locked plan; it is the key a build cache stores the result under.

Exit Codes:
    0 — Identity printed.
    1 — Invalid profile, recipe or lock file.
    2 — There is no lock file.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from depweave.catalog import load_recipe
from depweave.cli.common import format_option, load_profile, parse_option_pairs, profile_options
from depweave.cli.output import handle_errors, print_json
from depweave.core.identity import build_identity
from depweave.core.workspace import PackageDir, locked_plan


@click.command("build-id")
@click.argument("directory", type=click.Path(exists=True, file_okay=False), default=".")
@profile_options
@format_option
def build_id_command(
    directory: str,
    profile_path: str | None,
    host_os: str | None,
    host_arch: str | None,
    build_type: str | None,
    option_pairs: tuple[str, ...],
    fmt: str,
) -> None:
    """Print the build identity of the package in DIRECTORY.

    Options default to the recipe's declared defaults, overridden by -o.
    """
    pkg = PackageDir(Path(directory))
    overrides = parse_option_pairs(option_pairs)

    with handle_errors():
        lockfile = locked_plan(pkg)
        if lockfile is None:
            click.echo("No lock file found; run 'depweave resolve' first.")
            sys.exit(2)
        profile = load_profile(pkg, profile_path, host_os, host_arch, build_type)
        options: dict = {}
        if pkg.recipe_path.is_file():
            options.update(load_recipe(pkg.recipe_path, profile=profile).options)
        options.update(overrides)
        digest = build_identity(profile, options, lockfile)

    if fmt == "json":
        print_json({
            "build_id": digest,
            "profile": profile.to_dict(),
            "options": dict(sorted(options.items())),
        })
    else:
        click.echo(digest)
    sys.exit(0)
