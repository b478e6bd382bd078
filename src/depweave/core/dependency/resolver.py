"""Work-list dependency resolver.

Builds a ``ResolutionGraph`` from a root recipe by draining an explicit
frontier of pending ``DependencyEdge``s (no recursion over the call stack):

1. The frontier is seeded with the root recipe's declared dependencies.
2. An edge to a package without a node yet picks a candidate (enabled
   origins, satisfying every recorded constraint, tie broken by the active
   heuristic), creates its node and enqueues the node's own dependencies.
3. An edge to an already resolved package whose version satisfies the edge
   is simply recorded (diamond merge). Otherwise every constraint recorded on
   the package is intersected and a new version is picked from the
   intersection; the node's dependencies are re-enqueued and the stale ones
   discarded, which may cascade further down.
4. An edge whose target already reaches its consumer closes a cycle.
5. When the frontier is empty, unreachable nodes are pruned and every node is
   checked against its incoming edges.

The frontier is FIFO, so edges (and therefore independent conflicts) are
handled in first-declared order. A re-pick only considers versions that
satisfy every constraint recorded at that moment, so a version dropped
earlier becomes eligible again once the edge that ruled it out is gone.
Cascades are bounded by a per-package re-pick budget.

Candidate lookups for every package name waiting in the frontier are fanned
out in parallel before solving; the solve itself is serial.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from depweave.core.dependency.constraints import (
    DependencyEdge,
    VersionConstraint,
    intersect_all,
)
from depweave.core.dependency.graph import DagNode, ResolutionGraph
from depweave.core.dependency.heuristics import Heuristics, _rank
from depweave.core.dependency.provider import (
    ALL_ORIGINS,
    Candidate,
    CandidateGatherer,
    DependencyCache,
    Origin,
    RecipeProvider,
    RootRecipe,
)
from depweave.core.dependency.semver import Semver
from depweave.exceptions import (
    CycleError,
    PinConflict,
    RecipeNotFound,
    ResolutionConflict,
    ResolutionError,
)

logger = logging.getLogger(__name__)

# Re-picks allowed per package in one resolution before giving up.
MAX_REPICKS = 64


@dataclass(frozen=True)
class _Pending:
    """A frontier entry: an edge and the consumer generation that declared it."""

    edge: DependencyEdge
    generation: int


class DependencyResolver:
    """Resolves a root recipe to one version per package.

    Args:
        provider: Source of candidates and dependency declarations.
        heuristics: Tie-break policy, system policy and pins.
        origins: Enabled origins (``--no-network`` / ``--no-system`` remove
            some).
        profile: Build profile handed to the provider; only hashed here.
        options: Option map handed to the provider.
        max_workers: Size of the candidate lookup thread pool.
        cancel_event: Event that cancels in-flight lookups when set.
    """

    def __init__(
        self,
        provider: RecipeProvider,
        *,
        heuristics: Heuristics | None = None,
        origins: Iterable[Origin] = ALL_ORIGINS,
        profile: Any = None,
        options: Mapping[str, Any] | None = None,
        max_workers: int = 8,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._provider = provider
        self._heuristics = heuristics or Heuristics()
        self._origins = frozenset(origins)
        self._profile = profile
        self._options = dict(options or {})
        self._gatherer = CandidateGatherer(
            provider, self._origins, max_workers=max_workers, cancel_event=cancel_event
        )
        self._begin()

    @property
    def heuristics(self) -> Heuristics:
        return self._heuristics

    @property
    def dependency_cache(self) -> DependencyCache:
        return self._deps

    def cancel(self) -> None:
        """Cancel pending candidate lookups; the running call raises
        ``ResolutionCancelled``."""
        self._gatherer.cancel()

    # -- Entry points ---------------------------------------------------------

    def resolve(self, recipe: RootRecipe) -> ResolutionGraph:
        """Resolve ``recipe`` from an empty graph.

        Raises:
            RecipeNotFound, ResolutionConflict, CycleError, PinConflict:
                On the first fatal condition.
            RecipeError, MalformedConstraint: Propagated from the provider.
            ResolutionCancelled: If lookups were cancelled.
        """
        self._begin()
        self._graph = ResolutionGraph(DagNode(recipe.name, recipe.version))
        self._generation[recipe.name] = 0
        logger.debug(
            "Resolving %s@%s (mode=%s, origins=%s)",
            recipe.name,
            recipe.version,
            self._heuristics.mode,
            ",".join(sorted(o.value for o in self._origins)),
        )
        self._enqueue_declared(recipe.name, recipe.dependencies)
        self._drain()
        graph = self._finish()
        for name in sorted(self._heuristics.pins):
            if name not in graph:
                logger.warning("Pin for %s is unused: not a dependency of %s", name, recipe.name)
        return graph

    def repin(
        self, graph: ResolutionGraph, pins: Mapping[str, Semver | str]
    ) -> ResolutionGraph:
        """Apply ``--use`` pins to an already resolved graph.

        Only the pinned packages and whatever cascades from them are
        re-processed; every other node is left exactly as it was.

        Raises:
            PinConflict: If a pin violates a constraint recorded on its
                package.
            ResolutionError: If a pinned package is not in the graph.
        """
        self._begin()
        self._graph = graph
        parsed = {name: Semver.coerce(ver) for name, ver in pins.items()}
        self._heuristics = self._heuristics.with_pins(parsed)

        for name in sorted(parsed):
            pin = parsed[name]
            node = graph.get_node(name)
            if node is None or name == graph.root_name:
                raise ResolutionError(
                    f"Cannot pin {name!r}: not a dependency of {graph.root_name!r}"
                )
            for requirer, constraint in graph.constraints_on(name):
                if not constraint.satisfies(pin):
                    raise PinConflict(name, pin, constraint, requirer)
            if node.version == pin:
                logger.debug("%s already at pinned version %s", name, pin)
                continue
            self._count_repick(name)
            chosen = self._pick(name)
            logger.info("Pinning %s: %s -> %s", name, node.version, chosen)
            graph.drop_outgoing(name)
            self._install(name, chosen)

        self._drain()
        return self._finish()

    # -- Work-list ------------------------------------------------------------

    def _begin(self) -> None:
        self._graph: ResolutionGraph | None = None
        self._frontier: deque[_Pending] = deque()
        self._generation: dict[str, int] = {}
        self._candidates: dict[str, list[Candidate]] = {}
        self._failed_origins: dict[str, list[Origin]] = {}
        self._repicks: dict[str, int] = {}
        self._deps = DependencyCache(self._provider, self._profile, self._options)

    def _enqueue_declared(
        self, consumer: str, declared: Iterable[tuple[str, VersionConstraint]]
    ) -> None:
        merged: dict[str, VersionConstraint] = {}
        for dep_name, constraint in declared:
            if dep_name in merged:
                combined = merged[dep_name].intersect(constraint)
                if combined is None:
                    raise ResolutionConflict(
                        dep_name, [(consumer, merged[dep_name]), (consumer, constraint)]
                    )
                merged[dep_name] = combined
            else:
                merged[dep_name] = constraint
        generation = self._generation.get(consumer, 0)
        for dep_name, constraint in merged.items():
            self._frontier.append(
                _Pending(DependencyEdge(consumer, dep_name, constraint), generation)
            )

    def _drain(self) -> None:
        graph = self._graph
        while self._frontier:
            self._prefetch()
            pending = self._frontier.popleft()
            edge = pending.edge
            if edge.consumer not in graph or self._generation.get(edge.consumer) != pending.generation:
                logger.debug("Discarding stale edge %s -> %s", edge.consumer, edge.dependency)
                continue
            self._process(edge)

    def _prefetch(self) -> None:
        missing = {
            p.edge.dependency
            for p in self._frontier
            if p.edge.dependency not in self._candidates
        }
        if missing:
            self._fetch(missing)

    def _fetch(self, names: Iterable[str]) -> None:
        for name, result in self._gatherer.gather(names).items():
            self._candidates[name] = sorted(result.candidates, key=_rank, reverse=True)
            self._failed_origins[name] = result.failed_origins

    def _process(self, edge: DependencyEdge) -> None:
        graph = self._graph
        dep = edge.dependency

        if dep in graph:
            path = graph.path_between(dep, edge.consumer)
            if path is not None:
                raise CycleError(path + [dep])

        pin = self._heuristics.pin_for(dep)
        if pin is not None and not edge.constraint.satisfies(pin):
            raise PinConflict(dep, pin, edge.constraint, edge.consumer)

        graph.add_edge(edge)
        node = graph.get_node(dep)

        if node is None:
            self._install(dep, self._pick(dep))
            return

        if edge.constraint.satisfies(node.version):
            logger.debug("%s@%s also satisfies %s from %s", dep, node.version, edge.constraint, edge.consumer)
            return

        self._count_repick(dep)
        chosen = self._pick(dep)
        logger.info(
            "Re-picking %s: %s does not satisfy %s from %s, using %s",
            dep, node.version, edge.constraint, edge.consumer, chosen,
        )
        graph.drop_outgoing(dep)
        # packages only the old version needed must not constrain later picks
        orphans = graph.prune_unreachable()
        if orphans:
            logger.debug("Dropped %s after re-picking %s", ", ".join(orphans), dep)
        self._install(dep, chosen)

    # -- Choosing and installing ------------------------------------------------

    def _count_repick(self, name: str) -> None:
        count = self._repicks.get(name, 0) + 1
        if count > MAX_REPICKS:
            raise ResolutionError(
                f"Gave up on {name!r} after {MAX_REPICKS} re-picks; "
                "its constraints keep changing"
            )
        self._repicks[name] = count

    def _pick(self, name: str) -> Candidate:
        graph = self._graph
        if name not in self._candidates:
            self._fetch([name])

        everything = [c for c in self._candidates[name] if self._heuristics.admits(name, c)]
        if not everything:
            failed = self._failed_origins.get(name)
            if failed:
                logger.warning(
                    "No candidate for %s; unavailable origins: %s",
                    name, ", ".join(o.value for o in failed),
                )
            raise RecipeNotFound(name, graph.chain_to(name)[:-1])

        constraints = graph.constraints_on(name)
        available = [str(v) for v in sorted({c.version for c in everything})]
        combined = intersect_all([c for _, c in constraints])
        if combined is None:
            raise ResolutionConflict(name, constraints, available)

        qualifying = [c for c in everything if combined.satisfies(c.version)]
        pin = self._heuristics.pin_for(name)
        if pin is not None:
            qualifying = [c for c in qualifying if c.version == pin]
            if not qualifying:
                raise ResolutionConflict(
                    name, constraints + [("--use", VersionConstraint(f"={pin}"))], available
                )
        if not qualifying:
            raise ResolutionConflict(name, constraints, available)

        chosen = self._heuristics.choose(
            qualifying,
            prebuilt=lambda c: self._provider.has_prebuilt(name, c, self._profile, self._options),
        )
        return chosen

    def _install(self, name: str, candidate: Candidate) -> None:
        self._generation[name] = self._generation.get(name, -1) + 1
        self._graph.set_node(
            DagNode(name, candidate.version, candidate.revision, candidate.origin)
        )
        logger.debug("Resolved %s to %s", name, candidate)
        self._enqueue_declared(name, self._deps.get(name, candidate))

    def _finish(self) -> ResolutionGraph:
        graph = self._graph
        pruned = graph.prune_unreachable()
        if pruned:
            logger.debug("Pruned unreachable packages: %s", ", ".join(pruned))
        problems = graph.violations()
        if problems:
            raise ResolutionError("; ".join(problems))
        return graph
