"""Options and loaders shared by the depweave commands."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from depweave.catalog import CatalogProvider, load_recipe
from depweave.core.dependency.provider import RootRecipe
from depweave.core.identity import Profile
from depweave.core.workspace import PackageDir


def parse_option_pairs(pairs: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated ``-o KEY=VALUE`` values."""
    options: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--option")
        options[key.strip()] = value.strip()
    return options


def profile_options(func: Callable) -> Callable:
    """Add ``--profile``, ``--os``, ``--arch`` and ``--build-type``."""
    decorators = [
        click.option(
            "--profile", "profile_path",
            type=click.Path(dir_okay=False),
            default=None,
            help="Build profile YAML (default: <DIR>/profile.yaml, else the host).",
        ),
        click.option("--os", "host_os", default=None, help="Override the profile's OS."),
        click.option("--arch", "host_arch", default=None, help="Override the profile's architecture."),
        click.option("--build-type", default=None, help="Override the profile's build type."),
        click.option(
            "--option", "-o", "option_pairs",
            multiple=True,
            metavar="KEY=VALUE",
            help="Set a recipe option (repeatable).",
        ),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def load_profile(
    pkg: PackageDir,
    profile_path: str | None,
    host_os: str | None,
    host_arch: str | None,
    build_type: str | None,
) -> Profile:
    if profile_path:
        profile = Profile.load(Path(profile_path))
    elif pkg.profile_path.is_file():
        profile = Profile.load(pkg.profile_path)
    else:
        profile = Profile.default()
    return profile.with_overrides(host_os=host_os, host_arch=host_arch, build_type=build_type)


def load_recipe_and_catalog(
    pkg: PackageDir,
    catalog_path: str | None,
    profile: Profile,
    options: dict[str, Any],
) -> tuple[RootRecipe, CatalogProvider]:
    recipe = load_recipe(pkg.recipe_path, profile=profile, options=options)
    provider = CatalogProvider.load(Path(catalog_path) if catalog_path else pkg.catalog_path)
    return recipe, provider


format_option = click.option(
    "--format", "fmt",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format.",
)
