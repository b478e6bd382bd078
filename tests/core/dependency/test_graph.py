"""Tests for ResolutionGraph: node table, edge tables, traversal and checks."""

from __future__ import annotations

import pytest

from depweave.core.dependency import (
    DagNode,
    DependencyEdge,
    Origin,
    ResolutionGraph,
    Semver,
    VersionConstraint,
)


# ===========================================================================
# Helpers
# ===========================================================================


def _node(name: str, version: str = "1.0.0", origin: Origin | None = Origin.REGISTRY) -> DagNode:
    return DagNode(name, Semver.parse(version), "r1" if origin else "", origin)


def _edge(consumer: str, dependency: str, constraint: str = "*") -> DependencyEdge:
    return DependencyEdge(consumer, dependency, VersionConstraint(constraint))


def _diamond() -> ResolutionGraph:
    """app -> A, app -> B, A -> C, B -> C."""
    g = ResolutionGraph(DagNode("app", Semver(1, 0, 0)))
    for name in ("A", "B", "C"):
        g.set_node(_node(name))
    g.add_edge(_edge("app", "A"))
    g.add_edge(_edge("app", "B"))
    g.add_edge(_edge("A", "C", "~>1.0"))
    g.add_edge(_edge("B", "C", ">=1.0"))
    return g


# ===========================================================================
# Node table
# ===========================================================================


class TestNodes:
    def test_root_is_not_counted(self) -> None:
        g = _diamond()
        assert g.root_name == "app"
        assert g.root.origin is None
        assert g.node_count == 3
        assert [n.name for n in g.nodes()] == ["A", "B", "C"]

    def test_contains_and_get(self) -> None:
        g = _diamond()
        assert "C" in g
        assert "Z" not in g
        assert g.get_node("Z") is None
        assert str(g.get_node("C")) == "C@1.0.0/r1"

    def test_root_cannot_be_removed(self) -> None:
        with pytest.raises(ValueError):
            _diamond().remove_node("app")

    def test_remove_node_drops_its_edges(self) -> None:
        g = _diamond()
        g.remove_node("A")
        assert "A" not in g
        assert g.constraints_on("C") == [("B", VersionConstraint(">=1.0"))]


# ===========================================================================
# Edges
# ===========================================================================


class TestEdges:
    def test_incoming_sorted_by_consumer(self) -> None:
        g = _diamond()
        assert [e.consumer for e in g.incoming("C")] == ["A", "B"]
        requirers = [r for r, _ in g.constraints_on("C")]
        assert requirers == ["A", "B"]

    def test_add_edge_replaces_same_pair(self) -> None:
        g = _diamond()
        g.add_edge(_edge("A", "C", "=1.0.0"))
        a_deps = g.get_node("A").dependencies
        assert len(a_deps) == 1
        assert a_deps[0].constraint.canonical == "=1.0.0"
        assert dict(g.constraints_on("C"))["A"].canonical == "=1.0.0"

    def test_drop_outgoing(self) -> None:
        g = _diamond()
        dropped = g.drop_outgoing("A")
        assert [e.dependency for e in dropped] == ["C"]
        assert g.get_node("A").dependencies == []
        assert [r for r, _ in g.constraints_on("C")] == ["B"]

    def test_drop_outgoing_of_unknown_node(self) -> None:
        assert _diamond().drop_outgoing("nope") == []


# ===========================================================================
# Traversal
# ===========================================================================


class TestTraversal:
    def test_path_between(self) -> None:
        g = _diamond()
        assert g.path_between("app", "C") == ["app", "A", "C"]
        assert g.path_between("C", "app") is None
        assert g.path_between("B", "B") == ["B"]

    def test_chain_to(self) -> None:
        g = _diamond()
        assert g.chain_to("C") == ["app", "A", "C"]
        assert g.chain_to("unknown") == ["app"]

    def test_prune_unreachable(self) -> None:
        g = _diamond()
        g.set_node(_node("orphan"))
        g.set_node(_node("orphan-dep"))
        g.add_edge(_edge("orphan", "orphan-dep"))
        assert g.prune_unreachable() == ["orphan", "orphan-dep"]
        assert g.node_count == 3
        assert g.prune_unreachable() == []

    def test_traverse_top_down(self) -> None:
        order = [n.name for n in _diamond().traverse_top_down()]
        assert order == ["app", "A", "B", "C"]
        assert order.index("C") > order.index("A")
        assert order.index("C") > order.index("B")


# ===========================================================================
# Consistency checks
# ===========================================================================


class TestViolations:
    def test_consistent_graph(self) -> None:
        g = _diamond()
        assert g.detect_cycles() == []
        assert g.violations() == []

    def test_unsatisfied_edge_is_reported(self) -> None:
        g = _diamond()
        g.add_edge(_edge("B", "C", ">=2.0"))
        problems = g.violations()
        assert len(problems) == 1
        assert "C@1.0.0" in problems[0]
        assert "'B'" in problems[0]

    def test_missing_target_is_reported(self) -> None:
        g = _diamond()
        g.add_edge(_edge("A", "ghost"))
        assert any("'ghost' is required" in p for p in g.violations())

    def test_cycle_is_detected(self) -> None:
        g = _diamond()
        g.add_edge(_edge("C", "A"))
        assert g.detect_cycles() == [["A", "C", "A"]]
        assert any(p.startswith("Dependency cycle") for p in g.violations())
