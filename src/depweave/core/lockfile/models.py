"""Lock file data models: LockEntry, LockRoot and LockfileMetadata.

Defines the data structures held by a ``depweave.lock`` file. These are pure
data holders (dataclasses) with no business logic, so they can be imported
from anywhere without circular-dependency concerns.

Versions, origins and constraints are kept as the exact text found in (or
written to) the lock file, so an entry that is read and written back is
byte-identical.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Recipe hash format: "sha256:<64-hex-characters>"
# ---------------------------------------------------------------------------

_RECIPE_HASH_RE = re.compile(r"^sha256:[0-9a-f]{64}$")

# Format number written after the "# depweave lock-file v" marker.
LOCKFILE_FORMAT = "1"


# ---------------------------------------------------------------------------
# LockEntry: one resolved package
# ---------------------------------------------------------------------------


@dataclass
class LockEntry:
    """A single resolved package in the lock file.

    Attributes:
        name: Package name (e.g., "zlib").
        version: Resolved semantic version (e.g., "1.3.0").
        revision: Recipe revision, empty for system packages.
        origin: Where the version comes from ("system", "localCache",
            "registry").
        dependencies: ``(name, constraint)`` pairs declared by this
            version, with the constraint text as declared.
    """

    name: str
    version: str
    revision: str = ""
    origin: str = "registry"
    dependencies: list[tuple[str, str]] = field(default_factory=list)

    @property
    def dependency_names(self) -> list[str]:
        return [name for name, _ in self.dependencies]


# ---------------------------------------------------------------------------
# LockRoot: the package the lock file was produced for
# ---------------------------------------------------------------------------


@dataclass
class LockRoot:
    """The root package and its declared dependencies.

    Recorded so that a ``--use`` re-resolution can rebuild the full graph
    from the lock file alone.
    """

    name: str
    version: str
    dependencies: list[tuple[str, str]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# LockfileMetadata: header section
# ---------------------------------------------------------------------------


@dataclass
class LockfileMetadata:
    """Header section of the lock file.

    Attributes:
        heuristics: Resolution mode that produced the lock file.
        recipe_hash: Hash of the root recipe content, ``sha256:<hex>``.
            A mismatch with the current recipe makes the lock file stale.
        pins: ``--use`` pins in force, package name to version.
    """

    heuristics: str = "preferSystem"
    recipe_hash: str = ""
    pins: dict[str, str] = field(default_factory=dict)
