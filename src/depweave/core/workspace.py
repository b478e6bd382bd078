"""Package directory handling and the top-level ``resolve`` operation.

A package directory holds the root recipe (``depweave.yaml``) and its lock
file (``depweave.lock``). Every read or write of the lock file happens under
an exclusive advisory lock on ``depweave.lock.lck`` so that concurrent
invocations cannot interleave, and the lock file itself is only ever
replaced atomically.

``resolve`` decides between four outcomes:

=============  ==========================================================
Status         When
=============  ==========================================================
unchanged      no flags, the lock file exists and matches the recipe
stale          no flags (or only ``--use``), the lock file exists but was
               produced from a different recipe; nothing is written
written        no lock file yet, ``force``, or an explicit mode
repinned       ``--use`` pins applied to an up-to-date lock file
=============  ==========================================================
"""

from __future__ import annotations

import fcntl
import logging
import os
import threading
import warnings
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from depweave.core.dependency.heuristics import Heuristics, ResolutionMode, SystemPolicy
from depweave.core.dependency.provider import ALL_ORIGINS, Origin, RecipeProvider, RootRecipe
from depweave.core.dependency.resolver import DependencyResolver
from depweave.core.dependency.semver import Semver
from depweave.core.lockfile import Lockfile
from depweave.exceptions import LockfileError, StaleLockWarning

logger = logging.getLogger(__name__)

LOCK_FILENAME = Lockfile.FILENAME
LOCK_GUARD_SUFFIX = ".lck"
RECIPE_FILENAME = "depweave.yaml"
CATALOG_FILENAME = "catalog.yaml"
PROFILE_FILENAME = "profile.yaml"


@contextmanager
def advisory_lock(path: Path, *, blocking: bool = True) -> Iterator[None]:
    """Hold an exclusive ``flock`` on ``path`` for the duration of the block.

    The lock is released on every exit path, including exceptions and
    ``KeyboardInterrupt``.

    Raises:
        LockfileError: If ``blocking`` is False and another process holds
            the lock.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        flags = fcntl.LOCK_EX if blocking else fcntl.LOCK_EX | fcntl.LOCK_NB
        try:
            fcntl.flock(fd, flags)
        except BlockingIOError as exc:
            raise LockfileError(f"{path} is locked by another depweave process") from exc
        logger.debug("Acquired advisory lock %s", path)
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("Released advisory lock %s", path)
    finally:
        os.close(fd)


class PackageDir:
    """A package directory and the well-known files inside it."""

    def __init__(self, path: str | Path = ".") -> None:
        self.path = Path(path)

    @property
    def lock_path(self) -> Path:
        return self.path / LOCK_FILENAME

    @property
    def guard_path(self) -> Path:
        return self.path / (LOCK_FILENAME + LOCK_GUARD_SUFFIX)

    @property
    def recipe_path(self) -> Path:
        return self.path / RECIPE_FILENAME

    @property
    def catalog_path(self) -> Path:
        return self.path / CATALOG_FILENAME

    @property
    def profile_path(self) -> Path:
        return self.path / PROFILE_FILENAME

    def locked(self, *, blocking: bool = True):
        """Context manager holding the directory's advisory lock."""
        return advisory_lock(self.guard_path, blocking=blocking)

    def read_lock(self) -> Lockfile | None:
        """Read the lock file; None if there is none. Caller holds the lock."""
        try:
            return Lockfile.read(self.lock_path)
        except FileNotFoundError:
            return None

    def __repr__(self) -> str:
        return f"PackageDir({str(self.path)!r})"


class ResolveStatus(str, Enum):
    WRITTEN = "written"
    UNCHANGED = "unchanged"
    STALE = "stale"
    REPINNED = "repinned"

    def __str__(self) -> str:
        return self.value


@dataclass
class ResolveResult:
    """Outcome of ``resolve``.

    Attributes:
        lockfile: The lock file now in force (the existing one for
            ``unchanged`` and ``stale``).
        status: What happened.
        path: Where the lock file lives.
        previous: The lock file found before resolving, if any.
    """

    lockfile: Lockfile
    status: ResolveStatus
    path: Path
    previous: Lockfile | None = None

    @property
    def changed(self) -> bool:
        return self.status in (ResolveStatus.WRITTEN, ResolveStatus.REPINNED)

    def diff(self) -> dict[str, Any]:
        """Differences from the previous lock file (everything added if none)."""
        if self.previous is None:
            return {"added": self.lockfile.entry_names, "removed": [], "changed": []}
        return self.previous.diff(self.lockfile)


def _as_package_dir(package_dir: str | Path | PackageDir) -> PackageDir:
    if isinstance(package_dir, PackageDir):
        return package_dir
    return PackageDir(package_dir)


def resolve(
    recipe: RootRecipe,
    provider: RecipeProvider,
    *,
    mode: ResolutionMode | str | None = None,
    origins: Iterable[Origin] = ALL_ORIGINS,
    pins: Mapping[str, Semver | str] | None = None,
    profile: Any = None,
    options: Mapping[str, Any] | None = None,
    force: bool = False,
    package_dir: str | Path | PackageDir = ".",
    system: SystemPolicy | str = SystemPolicy.ALLOW,
    system_list: Iterable[str] = (),
    max_workers: int = 8,
    cancel_event: threading.Event | None = None,
) -> ResolveResult:
    """Resolve ``recipe`` and keep the package directory's lock file current.

    Args:
        recipe: The root recipe.
        provider: Candidate and dependency source.
        mode: Explicit resolution mode; forces a fresh resolution like
            ``force``.
        origins: Enabled origins.
        pins: ``--use`` pins, package name to version.
        profile: Build profile handed to the provider.
        options: Option overrides on top of the recipe's defaults.
        force: Always recompute from an empty graph and overwrite.
        package_dir: Directory holding the lock file.
        system: System package policy.
        system_list: Packages named by the allow/deny list policies.
        max_workers: Candidate lookup thread pool size.
        cancel_event: Event cancelling candidate lookups when set.

    Returns:
        A ``ResolveResult``.

    Raises:
        ResolutionError: Any resolution failure, unwrapped. The lock file
            is left untouched.
        InvalidLockfile: If the existing lock file cannot be parsed.
    """
    pkg = _as_package_dir(package_dir)
    pins = dict(pins or {})
    recompute = force or mode is not None
    effective_options = dict(recipe.options)
    effective_options.update(options or {})
    content_hash = recipe.content_hash

    with pkg.locked():
        existing = pkg.read_lock()

        if existing is not None and not recompute:
            if not existing.matches_recipe(content_hash):
                msg = (
                    f"{pkg.lock_path} was produced from a different {RECIPE_FILENAME}; "
                    "leaving it untouched (use --force to re-resolve)"
                )
                logger.warning(msg)
                warnings.warn(msg, StaleLockWarning, stacklevel=2)
                return ResolveResult(existing, ResolveStatus.STALE, pkg.lock_path, existing)
            if not pins:
                logger.info("%s is up to date", pkg.lock_path)
                return ResolveResult(existing, ResolveStatus.UNCHANGED, pkg.lock_path, existing)

        if mode is None:
            mode = existing.heuristics if existing is not None else ResolutionMode.PREFER_SYSTEM
        heuristics = Heuristics(
            mode=ResolutionMode(mode),
            system=SystemPolicy(system),
            system_list=tuple(system_list),
        )

        if existing is not None and not recompute:
            kept_pins = {n: Semver.parse(v) for n, v in existing.pins.items()}
            resolver = DependencyResolver(
                provider,
                heuristics=heuristics.with_pins(kept_pins),
                origins=origins,
                profile=profile,
                options=effective_options,
                max_workers=max_workers,
                cancel_event=cancel_event,
            )
            graph = resolver.repin(existing.to_graph(), pins)
            lockfile = Lockfile.from_graph(
                graph,
                recipe_hash=content_hash,
                heuristics=heuristics.mode,
                pins=resolver.heuristics.pins,
            )
            status = ResolveStatus.REPINNED
        else:
            parsed_pins = {n: Semver.coerce(v) for n, v in pins.items()}
            resolver = DependencyResolver(
                provider,
                heuristics=heuristics.with_pins(parsed_pins),
                origins=origins,
                profile=profile,
                options=effective_options,
                max_workers=max_workers,
                cancel_event=cancel_event,
            )
            graph = resolver.resolve(recipe)
            lockfile = Lockfile.from_graph(
                graph, recipe_hash=content_hash, heuristics=heuristics.mode, pins=parsed_pins
            )
            status = ResolveStatus.WRITTEN

        lockfile.write(pkg.lock_path)
        logger.info(
            "Wrote %s (%d package(s), %s)", pkg.lock_path, lockfile.entry_count, heuristics.mode
        )
        return ResolveResult(lockfile, status, pkg.lock_path, existing)


def locked_plan(path: str | Path | PackageDir) -> Lockfile | None:
    """Read the lock file of a package directory (or a lock file path).

    Returns:
        The ``Lockfile``, or None if there is none.

    Raises:
        InvalidLockfile: If the lock file cannot be parsed.
    """
    if isinstance(path, PackageDir):
        path = path.lock_path
    path = Path(path)
    if path.is_dir():
        path = path / LOCK_FILENAME
    guard = path.with_name(path.name + LOCK_GUARD_SUFFIX)
    if not path.exists() and not guard.exists():
        return None
    with advisory_lock(guard):
        try:
            return Lockfile.read(path)
        except FileNotFoundError:
            return None
