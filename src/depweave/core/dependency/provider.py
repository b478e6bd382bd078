"""Recipe provider contract, candidate gathering and memoization.

The recipe provider is the resolver's only window onto the outside world:
it lists the versions of a package available from each origin and evaluates
a recipe's (possibly profile- or option-conditioned) dependency
declarations. Implementations may block on I/O.

This module also holds the two pieces the resolver wraps around a provider:

- ``DependencyCache`` memoizes ``dependencies_of`` for one resolution, keyed
  by (name, version, revision, profile hash, options hash).
- ``CandidateGatherer`` fans candidate lookups out on a thread pool, one task
  per (package, origin), isolating origin failures from each other.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from depweave.core.dependency.constraints import VersionConstraint
from depweave.core.dependency.semver import Semver
from depweave.exceptions import ProviderUnavailable, ResolutionCancelled

logger = logging.getLogger(__name__)


class Origin(str, Enum):
    """Where a candidate version can be obtained."""

    SYSTEM = "system"
    LOCAL_CACHE = "localCache"
    REGISTRY = "registry"

    def __str__(self) -> str:
        return self.value


ALL_ORIGINS: frozenset[Origin] = frozenset(Origin)


def enabled_origins(*, network: bool = True, system: bool = True) -> frozenset[Origin]:
    """Origins left after applying ``--no-network`` / ``--no-system``."""
    origins = set(Origin)
    if not network:
        origins.discard(Origin.REGISTRY)
    if not system:
        origins.discard(Origin.SYSTEM)
    return frozenset(origins)


@dataclass(frozen=True)
class Candidate:
    """An available (version, revision, origin) of a package.

    Attributes:
        version: The package version.
        revision: Recipe revision, empty for unmanaged (system) packages.
        origin: Where this candidate comes from.
    """

    version: Semver
    revision: str = ""
    origin: Origin = Origin.REGISTRY

    def __str__(self) -> str:
        rev = f"/{self.revision}" if self.revision else ""
        return f"{self.version}{rev}@{self.origin}"


# ---------------------------------------------------------------------------
# RootRecipe: the package being resolved
# ---------------------------------------------------------------------------


@dataclass
class RootRecipe:
    """The recipe of the package whose dependencies are resolved.

    Attributes:
        name: Package name.
        version: Package version.
        dependencies: Declared ``(name, constraint)`` pairs, in declaration
            order. Declaration order fixes the resolver's frontier order.
        options: Default option values declared by the recipe.
        content: Raw recipe content; its hash identifies the recipe in the
            lock file.
    """

    name: str
    version: Semver
    dependencies: list[tuple[str, VersionConstraint]] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)
    content: str | bytes = ""

    @property
    def content_hash(self) -> str:
        return recipe_hash(self.content)

    @property
    def has_dependencies(self) -> bool:
        return bool(self.dependencies)


def recipe_hash(content: str | bytes) -> str:
    """Hash recipe content as ``sha256:<hex>``."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return f"sha256:{hashlib.sha256(content).hexdigest()}"


# ---------------------------------------------------------------------------
# RecipeProvider: external collaborator contract
# ---------------------------------------------------------------------------


class RecipeProvider(ABC):
    """Supplies candidate versions and per-version dependency declarations.

    Implementations raise ``ProviderUnavailable`` when an origin cannot be
    reached (the resolver carries on with the other origins) and
    ``RecipeError`` when a recipe declares its dependencies incorrectly
    (fatal for that node).
    """

    @abstractmethod
    def candidates(self, name: str, origins: Iterable[Origin]) -> list[Candidate]:
        """List the available candidates of ``name`` from ``origins``.

        Returns:
            Candidates in any order; empty if nothing is available.
        """

    @abstractmethod
    def dependencies_of(
        self,
        name: str,
        version: Semver,
        revision: str,
        profile: Any,
        options: Mapping[str, Any],
    ) -> list[tuple[str, VersionConstraint]]:
        """Evaluate the dependency declarations of one package version.

        Must be a pure function of its arguments.
        """

    def has_prebuilt(
        self,
        name: str,
        candidate: Candidate,
        profile: Any,
        options: Mapping[str, Any],
    ) -> bool:
        """Whether a pre-built artifact exists for this candidate and build inputs."""
        return False


# ---------------------------------------------------------------------------
# DependencyCache: per-resolution memoization
# ---------------------------------------------------------------------------


def _options_hash(options: Mapping[str, Any]) -> str:
    canonical = "\x1e".join(f"{k}\x1f{options[k]}" for k in sorted(options))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _profile_hash(profile: Any) -> str:
    if profile is None:
        return ""
    digest = getattr(profile, "digest_hash", None)
    if digest is not None:
        return str(digest)
    return hashlib.sha256(repr(profile).encode("utf-8")).hexdigest()


class DependencyCache:
    """Memoizes ``RecipeProvider.dependencies_of`` for one resolution.

    The provider is called at most once per distinct (name, version,
    revision, profile hash, options hash) tuple.
    """

    def __init__(self, provider: RecipeProvider, profile: Any, options: Mapping[str, Any]) -> None:
        self._provider = provider
        self._profile = profile
        self._options = dict(options)
        self._profile_hash = _profile_hash(profile)
        self._options_hash = _options_hash(self._options)
        self._cache: dict[tuple[str, str, str, str, str], list[tuple[str, VersionConstraint]]] = {}

    @property
    def calls(self) -> int:
        """Number of distinct lookups forwarded to the provider."""
        return len(self._cache)

    def get(self, name: str, candidate: Candidate) -> list[tuple[str, VersionConstraint]]:
        key = (
            name,
            str(candidate.version),
            candidate.revision,
            self._profile_hash,
            self._options_hash,
        )
        if key not in self._cache:
            self._cache[key] = list(
                self._provider.dependencies_of(
                    name, candidate.version, candidate.revision, self._profile, self._options
                )
            )
        return list(self._cache[key])


# ---------------------------------------------------------------------------
# CandidateGatherer: parallel fan-out of candidate lookups
# ---------------------------------------------------------------------------


@dataclass
class GatherResult:
    """Candidates found for one package, with the origins that failed."""

    candidates: list[Candidate] = field(default_factory=list)
    failed_origins: list[Origin] = field(default_factory=list)


class CandidateGatherer:
    """Looks up candidates for many packages, one task per (package, origin).

    A failing origin (``ProviderUnavailable``) is logged and recorded but does
    not abort the lookups of other origins. Any other exception propagates.
    Results are merged in a fixed order so the outcome does not depend on
    completion order.

    Args:
        provider: The recipe provider to query.
        origins: Enabled origins.
        max_workers: Thread pool size; ``1`` runs lookups inline.
        cancel_event: Optional event; when set, pending lookups are cancelled
            and ``ResolutionCancelled`` is raised.
    """

    def __init__(
        self,
        provider: RecipeProvider,
        origins: Iterable[Origin] = ALL_ORIGINS,
        max_workers: int = 8,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._provider = provider
        self._origins = sorted(set(origins), key=lambda o: list(Origin).index(o))
        self._max_workers = max(1, max_workers)
        self._cancel = cancel_event or threading.Event()

    @property
    def origins(self) -> list[Origin]:
        return list(self._origins)

    def cancel(self) -> None:
        """Request cancellation of in-flight and future lookups."""
        self._cancel.set()

    def _check_cancelled(self) -> None:
        if self._cancel.is_set():
            raise ResolutionCancelled("Candidate lookup cancelled")

    def _lookup(self, name: str, origin: Origin) -> list[Candidate]:
        self._check_cancelled()
        found = self._provider.candidates(name, [origin])
        # a provider may ignore the origin filter
        return [c for c in found if c.origin == origin]

    def gather(self, names: Iterable[str]) -> dict[str, GatherResult]:
        """Fetch candidates for every name in ``names``.

        Returns:
            Mapping of name to its ``GatherResult``.

        Raises:
            ResolutionCancelled: If cancellation was requested.
        """
        unique = sorted(set(names))
        tasks = [(name, origin) for name in unique for origin in self._origins]
        results: dict[tuple[str, Origin], list[Candidate] | ProviderUnavailable] = {}

        if self._max_workers == 1 or len(tasks) <= 1:
            for task in tasks:
                results[task] = self._run_isolated(*task)
        else:
            results = self._gather_parallel(tasks)

        merged: dict[str, GatherResult] = {name: GatherResult() for name in unique}
        for name, origin in tasks:
            outcome = results[(name, origin)]
            if isinstance(outcome, ProviderUnavailable):
                merged[name].failed_origins.append(origin)
            else:
                merged[name].candidates.extend(outcome)
        return merged

    def _run_isolated(self, name: str, origin: Origin) -> list[Candidate] | ProviderUnavailable:
        try:
            return self._lookup(name, origin)
        except ProviderUnavailable as exc:
            logger.warning("Origin %s unavailable for %s: %s", origin, name, exc.reason or exc)
            return exc

    def _gather_parallel(
        self, tasks: list[tuple[str, Origin]]
    ) -> dict[tuple[str, Origin], list[Candidate] | ProviderUnavailable]:
        results: dict[tuple[str, Origin], list[Candidate] | ProviderUnavailable] = {}
        executor = ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(tasks)),
            thread_name_prefix="depweave-gather",
        )
        futures: dict[Future, tuple[str, Origin]] = {
            executor.submit(self._run_isolated, *task): task for task in tasks
        }
        try:
            pending = set(futures)
            while pending:
                done, pending = wait(pending, timeout=0.1, return_when=FIRST_COMPLETED)
                for fut in done:
                    results[futures[fut]] = fut.result()
                self._check_cancelled()
        except BaseException:
            # KeyboardInterrupt, cancellation or a fatal provider error
            self._cancel.set()
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return results
