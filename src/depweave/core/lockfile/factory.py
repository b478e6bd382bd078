"""Lock file factory: converting between lock files and resolution graphs.

``from_graph`` is the ``save`` step of the normal workflow::

    resolver = DependencyResolver(provider, heuristics=heuristics)
    graph = resolver.resolve(recipe)
    lockfile = Lockfile.from_graph(graph, recipe_hash=recipe.content_hash)
    lockfile.write(Path("depweave.lock"))

``to_graph`` goes the other way, so a ``--use`` pin can be applied to the
resolved state recorded in an existing lock file.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from depweave.core.dependency.constraints import DependencyEdge, VersionConstraint
from depweave.core.dependency.graph import DagNode, ResolutionGraph
from depweave.core.dependency.heuristics import ResolutionMode
from depweave.core.dependency.provider import Origin
from depweave.core.dependency.semver import Semver
from depweave.core.lockfile.models import LockEntry, LockfileMetadata, LockRoot
from depweave.exceptions import LockfileError


def _declared(node: DagNode) -> list[tuple[str, str]]:
    return sorted((e.dependency, str(e.constraint)) for e in node.dependencies)


def _from_graph(
    cls: type,
    graph: ResolutionGraph,
    *,
    recipe_hash: str = "",
    heuristics: ResolutionMode | str = ResolutionMode.PREFER_SYSTEM,
    pins: Mapping[str, Any] | None = None,
) -> Any:
    """Create a lock file from a resolved graph.

    Args:
        graph: The resolver's output.
        recipe_hash: ``sha256:<hex>`` of the root recipe content.
        heuristics: Resolution mode the graph was produced with.
        pins: ``--use`` pins in force.

    Returns:
        A new ``Lockfile`` with one entry per non-root node.
    """
    root = graph.root
    metadata = LockfileMetadata(
        heuristics=str(ResolutionMode(heuristics)),
        recipe_hash=recipe_hash,
        pins={name: str(version) for name, version in (pins or {}).items()},
    )
    lf = cls(LockRoot(root.name, str(root.version), _declared(root)), metadata)
    for node in graph.nodes():
        lf.add_entry(
            LockEntry(
                name=node.name,
                version=str(node.version),
                revision=node.revision,
                origin=str(node.origin or Origin.REGISTRY),
                dependencies=_declared(node),
            )
        )
    return lf


def _to_graph(self: Any) -> ResolutionGraph:
    """Rebuild the resolution graph recorded in this lock file.

    Raises:
        LockfileError: If the lock file has no root section.
    """
    if self._root is None:
        raise LockfileError("Lock-file has no root section; cannot rebuild the graph")
    graph = ResolutionGraph(DagNode(self._root.name, Semver.parse(self._root.version)))
    for entry in self.entries:
        graph.set_node(
            DagNode(
                entry.name,
                Semver.parse(entry.version),
                entry.revision,
                Origin(entry.origin),
            )
        )
    declarers = [(self._root.name, self._root.dependencies)]
    declarers.extend((e.name, e.dependencies) for e in self.entries)
    for consumer, dependencies in declarers:
        for dep_name, constraint in dependencies:
            graph.add_edge(DependencyEdge(consumer, dep_name, VersionConstraint(constraint)))
    return graph
