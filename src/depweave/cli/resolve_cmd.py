"""``depweave resolve [DIR]``: resolve dependencies and maintain depweave.lock.

Without flags an up-to-date lock file is left untouched, and a stale one
(produced from a different recipe) is reported but not overwritten.
``--force`` or any mode flag re-resolves from scratch; ``--use NAME VERSION``
pins a package and only re-resolves what that pin affects.

Exit Codes:
    0 — Lock file written, updated, up to date, or stale (reported).
    1 — Resolution failed (conflict, cycle, missing package, bad pin) or an
        input file is invalid.
    2 — Usage error.
    130 — Interrupted; the lock file is untouched.
"""

from __future__ import annotations

import sys
import warnings
from pathlib import Path

import click

from depweave.cli.common import (
    format_option,
    load_profile,
    load_recipe_and_catalog,
    parse_option_pairs,
    profile_options,
)
from depweave.cli.output import handle_errors, print_json, print_resolve_result
from depweave.core.dependency.heuristics import ResolutionMode, SystemPolicy
from depweave.core.dependency.provider import enabled_origins
from depweave.core.workspace import PackageDir, resolve
from depweave.exceptions import StaleLockWarning

_MODE_FLAGS: dict[str, ResolutionMode] = {
    "prefer_system": ResolutionMode.PREFER_SYSTEM,
    "prefer_cached": ResolutionMode.PREFER_CACHED,
    "prefer_local": ResolutionMode.PREFER_LOCAL,
    "pick_highest": ResolutionMode.PICK_HIGHEST,
}


def _mode_from_flags(**flags: bool) -> ResolutionMode | None:
    chosen = [_MODE_FLAGS[name] for name, on in flags.items() if on]
    if len(chosen) > 1:
        raise click.UsageError(
            "--prefer-system, --prefer-cached, --prefer-local and --pick-highest "
            "are mutually exclusive"
        )
    return chosen[0] if chosen else None


@click.command("resolve")
@click.argument("directory", type=click.Path(exists=True, file_okay=False), default=".")
@click.option("--force", "-f", is_flag=True, help="Re-resolve from scratch and overwrite the lock file.")
@click.option("--prefer-system", is_flag=True, help="Prefer packages installed on the system.")
@click.option("--prefer-cached", is_flag=True, help="Prefer versions with a pre-built artifact.")
@click.option("--prefer-local", is_flag=True, help="Prefer versions in the local cache.")
@click.option("--pick-highest", is_flag=True, help="Always pick the highest satisfying version.")
@click.option("--no-network", "-N", is_flag=True, help="Do not consult the registry.")
@click.option("--no-system", is_flag=True, help="Do not consider system packages.")
@click.option(
    "--system-policy",
    type=click.Choice([p.value for p in SystemPolicy]),
    default=SystemPolicy.ALLOW.value,
    show_default=True,
    help="Which packages may come from the system.",
)
@click.option(
    "--system-list",
    default="",
    metavar="NAMES",
    help="Comma-separated packages for the allowList/denyList policies.",
)
@click.option(
    "--use", "uses",
    nargs=2,
    multiple=True,
    metavar="NAME VERSION",
    help="Pin NAME to exactly VERSION (repeatable).",
)
@click.option("--catalog", "catalog_path", type=click.Path(dir_okay=False), default=None,
              help="Catalog YAML (default: <DIR>/catalog.yaml).")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=8, show_default=True,
              help="Parallel candidate lookups.")
@profile_options
@format_option
def resolve_command(
    directory: str,
    force: bool,
    prefer_system: bool,
    prefer_cached: bool,
    prefer_local: bool,
    pick_highest: bool,
    no_network: bool,
    no_system: bool,
    system_policy: str,
    system_list: str,
    uses: tuple[tuple[str, str], ...],
    catalog_path: str | None,
    jobs: int,
    profile_path: str | None,
    host_os: str | None,
    host_arch: str | None,
    build_type: str | None,
    option_pairs: tuple[str, ...],
    fmt: str,
) -> None:
    """Resolve the dependencies of the package in DIRECTORY.

    Writes DIRECTORY/depweave.lock. Exit code 0 on success, 1 on failure.
    """
    mode = _mode_from_flags(
        prefer_system=prefer_system,
        prefer_cached=prefer_cached,
        prefer_local=prefer_local,
        pick_highest=pick_highest,
    )
    options = parse_option_pairs(option_pairs)
    pkg = PackageDir(Path(directory))

    with handle_errors():
        profile = load_profile(pkg, profile_path, host_os, host_arch, build_type)
        recipe, provider = load_recipe_and_catalog(pkg, catalog_path, profile, options)
        with warnings.catch_warnings():
            # reported through logging and the printed status
            warnings.simplefilter("ignore", StaleLockWarning)
            result = resolve(
                recipe,
                provider,
                mode=mode,
                origins=enabled_origins(network=not no_network, system=not no_system),
                pins=dict(uses),
                profile=profile,
                options=options,
                force=force,
                package_dir=pkg,
                system=system_policy,
                system_list=[n.strip() for n in system_list.split(",") if n.strip()],
                max_workers=jobs,
            )

    if fmt == "json":
        print_json({
            "status": result.status.value,
            "path": str(result.path),
            "lockfile": result.lockfile.to_dict(),
            "diff": result.diff(),
        })
    else:
        print_resolve_result(result)
    sys.exit(0)
