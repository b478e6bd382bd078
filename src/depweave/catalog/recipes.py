"""Root recipe loader and dependency declaration parsing.

A root recipe (``depweave.yaml``) names the package being built and its
direct dependencies::

    name: app
    version: 1.0.0
    options:
      shared: true
    dependencies:
      zlib: ">=1.2"
      openssl: "~>3.0"

Dependencies are given either as a mapping of name to constraint or as a
list of ``{name, version, when}`` items::

    dependencies:
      - name: zlib
        version: ">=1.2"
      - name: libunwind
        version: "^1.6"
        when: {os: linux}

``when`` keeps a declaration only if every key matches: ``os``, ``arch`` and
``build_type`` are compared with the build profile, any other key with the
option of that name. A value may be a list, meaning any of its items.

Declaration order is preserved; it fixes the order the resolver visits
edges in.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from depweave.core.dependency.constraints import VersionConstraint
from depweave.core.dependency.provider import RootRecipe
from depweave.core.dependency.semver import Semver
from depweave.exceptions import MalformedConstraint, MalformedVersion, RecipeError

logger = logging.getLogger(__name__)

_PROFILE_KEYS = {
    "os": "host_os",
    "arch": "host_arch",
    "build_type": "build_type",
}


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def condition_holds(when: Any, profile: Any, options: Mapping[str, Any]) -> bool:
    """Evaluate a ``when`` mapping against a profile and an option map.

    A key whose value is unknown (no profile, option not set) does not match.
    """
    if when is None:
        return True
    if not isinstance(when, Mapping):
        raise ValueError(f"'when' must be a mapping, got {type(when).__name__}")
    for key, expected in when.items():
        if key in _PROFILE_KEYS:
            actual = getattr(profile, _PROFILE_KEYS[key], None) if profile is not None else None
        else:
            actual = options.get(key)
        if actual is None:
            return False
        wanted = expected if isinstance(expected, list) else [expected]
        if _text(actual) not in {_text(w) for w in wanted}:
            return False
    return True


def parse_dependencies(
    raw: Any,
    *,
    recipe: str,
    profile: Any = None,
    options: Mapping[str, Any] | None = None,
) -> list[tuple[str, VersionConstraint]]:
    """Turn a recipe's ``dependencies`` field into ``(name, constraint)`` pairs.

    Args:
        raw: The field as loaded from YAML (mapping, list or None).
        recipe: ``name@version`` of the declaring recipe, for error reports.
        profile: Build profile for ``when`` conditions.
        options: Option map for ``when`` conditions.

    Raises:
        MalformedConstraint: Tagged with the recipe and field.
        RecipeError: If the field has the wrong shape.
    """
    options = options or {}
    if raw is None:
        return []

    items: list[tuple[str, Any, Any]] = []
    if isinstance(raw, Mapping):
        items = [(str(name), constraint, None) for name, constraint in raw.items()]
    elif isinstance(raw, list):
        for index, item in enumerate(raw):
            if not isinstance(item, Mapping) or "name" not in item:
                raise RecipeError(recipe, None, f"dependencies[{index}] needs a 'name'")
            items.append((str(item["name"]), item.get("version", "*"), item.get("when")))
    else:
        raise RecipeError(recipe, None, "'dependencies' must be a mapping or a list")

    declared: list[tuple[str, VersionConstraint]] = []
    for name, constraint, when in items:
        try:
            if not condition_holds(when, profile, options):
                logger.debug("%s: skipping %s (condition %r not met)", recipe, name, when)
                continue
        except ValueError as exc:
            raise RecipeError(recipe, None, f"dependency {name!r}: {exc}") from exc
        text = "*" if constraint is None else _text(constraint)
        try:
            declared.append((name, VersionConstraint(text)))
        except MalformedConstraint as exc:
            raise exc.with_context(recipe, f"dependencies.{name}") from exc
    return declared


def load_recipe(
    path: Path,
    *,
    profile: Any = None,
    options: Mapping[str, Any] | None = None,
) -> RootRecipe:
    """Read a root recipe from ``depweave.yaml``.

    ``options`` override the recipe's option defaults when evaluating
    ``when`` conditions.

    Raises:
        RecipeError: If the file is missing, not YAML, or incomplete.
        MalformedConstraint: If a dependency constraint does not parse.
    """
    path = Path(path)
    try:
        content = path.read_bytes()
    except FileNotFoundError as exc:
        raise RecipeError(str(path), None, "recipe file not found") from exc
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise RecipeError(str(path), None, f"invalid YAML: {exc}") from exc
    if not isinstance(data, Mapping):
        raise RecipeError(str(path), None, "recipe must be a mapping")

    name = data.get("name")
    if not name:
        raise RecipeError(str(path), None, "missing 'name'")
    try:
        version = Semver.parse(_text(data.get("version", "")))
    except MalformedVersion as exc:
        raise RecipeError(str(name), None, f"invalid 'version': {exc}") from exc

    defaults = data.get("options") or {}
    if not isinstance(defaults, Mapping):
        raise RecipeError(str(name), str(version), "'options' must be a mapping")
    effective = dict(defaults)
    effective.update(options or {})

    dependencies = parse_dependencies(
        data.get("dependencies"),
        recipe=f"{name}@{version}",
        profile=profile,
        options=effective,
    )
    logger.debug("Loaded recipe %s@%s from %s", name, version, path)
    return RootRecipe(
        name=str(name),
        version=version,
        dependencies=dependencies,
        options=dict(defaults),
        content=content,
    )
