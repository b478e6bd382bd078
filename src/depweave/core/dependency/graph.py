"""Resolution graph: a flat table of resolved nodes keyed by package name.

Nodes never reference each other directly. Edges name their endpoints, and
the graph keeps, for every package, the table of incoming edges keyed by
consumer. Re-pointing or dropping edges during a conflict cascade is thus a
dictionary update and cannot leave dangling references, and diamonds or
back-references create no ownership cycles.

Invariants maintained by the resolver (checked by ``violations``):

- at most one node per package name;
- every node's version satisfies all of its incoming edges;
- no cycles among package names.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field

from depweave.core.dependency.constraints import DependencyEdge, VersionConstraint
from depweave.core.dependency.provider import Candidate, Origin
from depweave.core.dependency.semver import Semver


# ---------------------------------------------------------------------------
# DagNode: one resolved package
# ---------------------------------------------------------------------------


@dataclass
class DagNode:
    """A package at its chosen version, with its own declared dependencies.

    The root node has no origin: it is the recipe being resolved, not a
    candidate.
    """

    name: str
    version: Semver
    revision: str = ""
    origin: Origin | None = None
    dependencies: list[DependencyEdge] = field(default_factory=list)

    @property
    def candidate(self) -> Candidate:
        return Candidate(self.version, self.revision, self.origin or Origin.LOCAL_CACHE)

    def __str__(self) -> str:
        rev = f"/{self.revision}" if self.revision else ""
        return f"{self.name}@{self.version}{rev}"


# ---------------------------------------------------------------------------
# ResolutionGraph
# ---------------------------------------------------------------------------


class ResolutionGraph:
    """The root package plus every resolved dependency reachable from it.

    Thread safety: This class is NOT thread-safe. The resolver mutates it
    from a single thread.
    """

    def __init__(self, root: DagNode) -> None:
        self._root_name = root.name
        self._nodes: dict[str, DagNode] = {root.name: root}
        self._incoming: dict[str, dict[str, DependencyEdge]] = {}

    # -- Node table ---------------------------------------------------------

    @property
    def root(self) -> DagNode:
        return self._nodes[self._root_name]

    @property
    def root_name(self) -> str:
        return self._root_name

    @property
    def node_count(self) -> int:
        """Number of resolved dependencies, root excluded."""
        return len(self._nodes) - 1

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def get_node(self, name: str) -> DagNode | None:
        return self._nodes.get(name)

    def nodes(self) -> list[DagNode]:
        """Resolved dependencies sorted by name, root excluded."""
        return [self._nodes[n] for n in sorted(self._nodes) if n != self._root_name]

    def set_node(self, node: DagNode) -> None:
        """Insert or replace the node for ``node.name``.

        Incoming edges are kept; outgoing edges of a replaced node must have
        been dropped with ``drop_outgoing`` beforehand.
        """
        self._nodes[node.name] = node

    def remove_node(self, name: str) -> None:
        """Remove a node, its outgoing edges and its incoming edge table."""
        if name == self._root_name:
            raise ValueError("Cannot remove the root node")
        self.drop_outgoing(name)
        self._nodes.pop(name, None)
        self._incoming.pop(name, None)

    # -- Edges ----------------------------------------------------------------

    def add_edge(self, edge: DependencyEdge) -> None:
        """Record ``edge`` on its consumer and in its target's incoming table.

        An existing edge between the same two packages is replaced.
        """
        consumer = self._nodes[edge.consumer]
        consumer.dependencies = [
            e for e in consumer.dependencies if e.dependency != edge.dependency
        ]
        consumer.dependencies.append(edge)
        self._incoming.setdefault(edge.dependency, {})[edge.consumer] = edge

    def drop_outgoing(self, name: str) -> list[DependencyEdge]:
        """Detach every outgoing edge of ``name`` and return them."""
        node = self._nodes.get(name)
        if node is None:
            return []
        dropped = list(node.dependencies)
        for edge in dropped:
            table = self._incoming.get(edge.dependency)
            if table is not None and table.get(edge.consumer) is edge:
                del table[edge.consumer]
        node.dependencies = []
        return dropped

    def incoming(self, name: str) -> list[DependencyEdge]:
        """Edges pointing at ``name``, sorted by consumer."""
        table = self._incoming.get(name, {})
        return [table[c] for c in sorted(table)]

    def constraints_on(self, name: str) -> list[tuple[str, VersionConstraint]]:
        """``(requirer, constraint)`` pairs currently recorded on ``name``."""
        return [(e.consumer, e.constraint) for e in self.incoming(name)]

    # -- Traversal ------------------------------------------------------------

    def path_between(self, src: str, dst: str) -> list[str] | None:
        """Return a dependency path ``[src, ..., dst]``, or None.

        Iterative DFS over outgoing edges in declaration order.
        """
        if src == dst:
            return [src]
        parent: dict[str, str] = {}
        stack = [src]
        seen = {src}
        while stack:
            cur = stack.pop()
            node = self._nodes.get(cur)
            if node is None:
                continue
            for edge in reversed(node.dependencies):
                nxt = edge.dependency
                if nxt in seen:
                    continue
                parent[nxt] = cur
                if nxt == dst:
                    path = [dst]
                    while path[-1] != src:
                        path.append(parent[path[-1]])
                    return list(reversed(path))
                seen.add(nxt)
                stack.append(nxt)
        return None

    def chain_to(self, name: str) -> list[str]:
        """Shortest chain of requirers from the root down to ``name``."""
        return self.path_between(self._root_name, name) or [self._root_name]

    def reachable(self) -> set[str]:
        """Names reachable from the root, root included."""
        seen = {self._root_name}
        queue: deque[str] = deque([self._root_name])
        while queue:
            node = self._nodes.get(queue.popleft())
            if node is None:
                continue
            for edge in node.dependencies:
                if edge.dependency not in seen:
                    seen.add(edge.dependency)
                    queue.append(edge.dependency)
        return seen

    def prune_unreachable(self) -> list[str]:
        """Remove nodes no longer reachable from the root.

        Returns:
            Sorted names of the removed nodes.
        """
        live = self.reachable()
        dead = sorted(n for n in self._nodes if n not in live)
        for name in dead:
            self.remove_node(name)
        return dead

    def traverse_top_down(self) -> Iterator[DagNode]:
        """Yield nodes so that every consumer precedes its dependencies.

        Ties are broken by name, so the order is deterministic.
        """
        indegree: dict[str, int] = {n: 0 for n in self._nodes}
        for node in self._nodes.values():
            for edge in node.dependencies:
                if edge.dependency in indegree:
                    indegree[edge.dependency] += 1
        ready = sorted(n for n, d in indegree.items() if d == 0)
        while ready:
            name = ready.pop(0)
            node = self._nodes[name]
            yield node
            for edge in node.dependencies:
                if edge.dependency in indegree:
                    indegree[edge.dependency] -= 1
                    if indegree[edge.dependency] == 0:
                        ready.append(edge.dependency)
                        ready.sort()

    def detect_cycles(self) -> list[list[str]]:
        """Detect circular dependencies using DFS coloring.

        Returns:
            A list of cycles, each a list of names forming the cycle path
            (e.g. ``["A", "B", "A"]``). Empty if the graph is acyclic.
        """
        WHITE, GRAY, BLACK = 0, 1, 2
        color: dict[str, int] = {n: WHITE for n in self._nodes}
        stack_path: list[str] = []
        cycles: list[list[str]] = []

        def _dfs(u: str) -> None:
            color[u] = GRAY
            stack_path.append(u)
            for edge in self._nodes[u].dependencies:
                v = edge.dependency
                if v not in color:
                    continue
                if color[v] == GRAY:
                    cycles.append(stack_path[stack_path.index(v):] + [v])
                elif color[v] == WHITE:
                    _dfs(v)
            stack_path.pop()
            color[u] = BLACK

        for name in sorted(self._nodes):
            if color[name] == WHITE:
                _dfs(name)
        return cycles

    def violations(self) -> list[str]:
        """Describe every broken invariant; empty for a consistent graph."""
        problems: list[str] = []
        for name, table in sorted(self._incoming.items()):
            node = self._nodes.get(name)
            if node is None:
                if table:
                    problems.append(f"{name!r} is required but not resolved")
                continue
            for consumer in sorted(table):
                constraint = table[consumer].constraint
                if not constraint.satisfies(node.version):
                    problems.append(
                        f"{name}@{node.version} does not satisfy {constraint} "
                        f"required by {consumer!r}"
                    )
        for cycle in self.detect_cycles():
            problems.append(f"Dependency cycle: {' -> '.join(cycle)}")
        return problems
