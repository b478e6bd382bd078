"""Version constraint algebra and work-list dependency resolution.

This package implements the dependency model of a package being built:
semantic versions, interval-based version constraints, the recipe provider
contract, resolution heuristics, the name-keyed resolution graph and the
resolver that fills it. All public names are re-exported here so callers can
write ``from depweave.core.dependency import X``.

Formal Definition
-----------------
A resolution of root package ``r`` is a map ``R: S -> V`` from package names
to versions such that:

- ``r`` is in ``S`` and every other name in ``S`` is reachable from ``r``;
- for every edge ``(p, q, c)`` with ``p`` in ``S``: ``q`` is in ``S`` and
  ``R(q)`` satisfies ``c``;
- the edges among ``S`` form a DAG.
"""

from depweave.core.dependency.semver import Semver
from depweave.core.dependency.constraints import (
    ANY,
    DependencyEdge,
    VersionConstraint,
    intersect_all,
)
from depweave.core.dependency.provider import (
    ALL_ORIGINS,
    Candidate,
    CandidateGatherer,
    DependencyCache,
    GatherResult,
    Origin,
    RecipeProvider,
    RootRecipe,
    enabled_origins,
    recipe_hash,
)
from depweave.core.dependency.heuristics import (
    MODE_RULES,
    Heuristics,
    ResolutionMode,
    SystemPolicy,
)
from depweave.core.dependency.graph import (
    DagNode,
    ResolutionGraph,
)
from depweave.core.dependency.resolver import DependencyResolver

__all__ = [
    "ANY",
    "ALL_ORIGINS",
    "Candidate",
    "CandidateGatherer",
    "DagNode",
    "DependencyCache",
    "DependencyEdge",
    "DependencyResolver",
    "GatherResult",
    "Heuristics",
    "MODE_RULES",
    "Origin",
    "RecipeProvider",
    "ResolutionGraph",
    "ResolutionMode",
    "RootRecipe",
    "Semver",
    "SystemPolicy",
    "VersionConstraint",
    "enabled_origins",
    "intersect_all",
    "recipe_hash",
]
