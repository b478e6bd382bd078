"""Declarative recipes: the root recipe loader and the YAML catalog provider."""

from depweave.catalog.provider import CatalogProvider
from depweave.catalog.recipes import condition_holds, load_recipe, parse_dependencies

__all__ = [
    "CatalogProvider",
    "condition_holds",
    "load_recipe",
    "parse_dependencies",
]
