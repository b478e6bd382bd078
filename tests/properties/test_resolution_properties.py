"""Property-based tests for the resolver.

Verifies, over generated catalogs, that:
- Every resolved graph satisfies all of its edges and is acyclic.
- Every reported conflict is genuine: no available version of the package
  satisfies all of the constraints named in the error.
- Resolution is deterministic, whatever the lookup parallelism.
- The lock file written from a graph is byte-identical across runs.
"""
from __future__ import annotations

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from depweave.catalog import CatalogProvider
from depweave.core.dependency import (
    DependencyResolver,
    Heuristics,
    ResolutionMode,
    RootRecipe,
    Semver,
    VersionConstraint,
)
from depweave.core.lockfile import Lockfile
from depweave.exceptions import RecipeNotFound, ResolutionConflict, ResolutionError

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

_NAMES = ["pkg-a", "pkg-b", "pkg-c", "pkg-d", "pkg-e"]
_ORIGINS = ["system", "localCache", "registry"]
_CONSTRAINTS = ["*", ">=1.0", "<2.0", "~>1.0", "^2.0", ">=1.1 <3.0", "=1.0.0"]


@st.composite
def catalogs(draw: st.DrawFn) -> dict:
    """Generate a layered catalog: a package only depends on later names."""
    packages: dict[str, list[dict]] = {}
    for index, name in enumerate(_NAMES):
        versions = draw(
            st.lists(
                st.tuples(st.integers(1, 3), st.integers(0, 2), st.sampled_from(_ORIGINS)),
                min_size=1,
                max_size=4,
                unique_by=lambda t: (t[0], t[1]),
            )
        )
        items = []
        for major, minor, origin in versions:
            later = _NAMES[index + 1:]
            deps = draw(
                st.dictionaries(
                    st.sampled_from(later) if later else st.nothing(),
                    st.sampled_from(_CONSTRAINTS),
                    max_size=min(2, len(later)),
                )
            )
            item = {"version": f"{major}.{minor}.0", "origin": origin, "dependencies": deps}
            if origin != "system":
                item["revision"] = "r1"
            items.append(item)
        packages[name] = items
    return {"packages": packages}


_modes = st.sampled_from(list(ResolutionMode))


def _recipe(direct: dict[str, str]) -> RootRecipe:
    return RootRecipe(
        "root",
        Semver(1, 0, 0),
        [(name, VersionConstraint(c)) for name, c in direct.items()],
        content=repr(sorted(direct.items())),
    )


_direct = st.dictionaries(st.sampled_from(_NAMES), st.sampled_from(_CONSTRAINTS), min_size=1, max_size=3)


def _resolve(catalog: dict, direct: dict[str, str], mode: ResolutionMode, workers: int):
    resolver = DependencyResolver(
        CatalogProvider(catalog), heuristics=Heuristics(mode), max_workers=workers
    )
    try:
        return resolver.resolve(_recipe(direct))
    except ResolutionError as exc:
        return exc


def _assert_failure_is_genuine(catalog: dict, exc: ResolutionError) -> None:
    """Check a failure against the generated catalog by enumeration."""
    assert isinstance(exc, (ResolutionConflict, RecipeNotFound)), exc
    available = [Semver.parse(item["version"]) for item in catalog["packages"].get(exc.name, [])]
    if isinstance(exc, RecipeNotFound):
        assert available == []
        return
    for version in available:
        assert not all(c.satisfies(version) for _, c in exc.constraints), (
            f"{exc.name} {version} satisfies every constraint in: {exc}"
        )


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@given(catalog=catalogs(), direct=_direct, mode=_modes)
@settings(max_examples=100, deadline=None, suppress_health_check=[HealthCheck.too_slow])
def test_resolved_graphs_are_consistent(catalog: dict, direct: dict, mode: ResolutionMode) -> None:
    graph = _resolve(catalog, direct, mode, workers=1)
    if isinstance(graph, ResolutionError):
        _assert_failure_is_genuine(catalog, graph)
        return
    assert graph.violations() == []
    assert graph.detect_cycles() == []
    names = [n.name for n in graph.nodes()]
    assert len(names) == len(set(names))
    assert set(names) <= graph.reachable()


@given(catalog=catalogs(), direct=_direct, mode=_modes)
@settings(max_examples=50, deadline=None, suppress_health_check=[HealthCheck.too_slow])
def test_resolution_is_deterministic(catalog: dict, direct: dict, mode: ResolutionMode) -> None:
    serial = _resolve(catalog, direct, mode, workers=1)
    parallel = _resolve(catalog, direct, mode, workers=4)
    if isinstance(serial, ResolutionError):
        assert isinstance(parallel, ResolutionError)
        assert str(serial) == str(parallel)
        return
    first = Lockfile.from_graph(serial, heuristics=mode).to_text()
    second = Lockfile.from_graph(parallel, heuristics=mode).to_text()
    assert first == second
