"""Lock file core class: entry management, serialization and atomic writes.

The ``Lockfile`` class is the in-memory form of a ``depweave.lock`` file.
It provides:

- **Entry management:** add, get, count and list resolved packages.
- **Recipe hash:** ties the lock file to the root recipe it was produced
  from, so a changed recipe is detected as stale.
- **Serialization:** deterministic ``to_text``, ``to_dict`` and ``write``.

Determinism guarantee: entries are emitted sorted by package name and their
dependencies sorted by name. Two lock files with the same content always
produce byte-identical text.

The text format is line oriented and meant to be read and edited by hand::

    # depweave lock-file v1
    heuristics: preferSystem
    recipe-hash: sha256:9f86d081...
    pin: zlib 1.3.0

    root: app
      version: 1.0.0
      dependency: zlib >=1.2.0

    package: zlib
      version: 1.3.0
      revision: r1
      origin: registry
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

from depweave import _LOCKFILE_MARK
from depweave.core.dependency.provider import recipe_hash
from depweave.core.lockfile.models import (
    LOCKFILE_FORMAT,
    LockEntry,
    LockfileMetadata,
    LockRoot,
)


def atomic_write_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` through a temporary file and a rename.

    Readers see either the old content or the new one, never a partial
    write. Creates parent directories if they do not exist.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class Lockfile:
    """Resolved dependency plan of one package.

    Holds one ``LockEntry`` per resolved package, the root package with its
    declared dependencies and the header metadata (resolution mode, root
    recipe hash, pins).

    Example::

        lf = Lockfile(LockRoot("app", "1.0.0", [("zlib", ">=1.2")]))
        lf.add_entry(LockEntry("zlib", "1.3.0", "r1", "registry"))
        lf.metadata.recipe_hash = Lockfile.compute_recipe_hash(recipe_text)
        lf.write(Path("depweave.lock"))
    """

    LOCKFILE_VERSION: str = LOCKFILE_FORMAT
    FILENAME: str = "depweave.lock"

    def __init__(
        self,
        root: LockRoot | None = None,
        metadata: LockfileMetadata | None = None,
    ) -> None:
        self._root = root
        self._entries: dict[str, LockEntry] = {}
        self._metadata = metadata or LockfileMetadata()

    # -- Entry management ---------------------------------------------------

    def add_entry(self, entry: LockEntry) -> None:
        """Add a resolved package; an entry with the same name is replaced."""
        self._entries[entry.name] = entry

    def get_entry(self, name: str) -> LockEntry | None:
        return self._entries.get(name)

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    @property
    def entry_names(self) -> list[str]:
        """Return sorted list of all package names in the lock file."""
        return sorted(self._entries)

    @property
    def entries(self) -> list[LockEntry]:
        """Entries sorted by package name."""
        return [self._entries[n] for n in self.entry_names]

    @property
    def root(self) -> LockRoot | None:
        return self._root

    @root.setter
    def root(self, value: LockRoot | None) -> None:
        self._root = value

    # -- Recipe hash --------------------------------------------------------

    @staticmethod
    def compute_recipe_hash(content: str | bytes) -> str:
        """Hash root recipe content as ``sha256:<hex>``."""
        return recipe_hash(content)

    @property
    def recipe_hash(self) -> str:
        return self._metadata.recipe_hash

    @property
    def heuristics(self) -> str:
        return self._metadata.heuristics

    @property
    def pins(self) -> dict[str, str]:
        return dict(self._metadata.pins)

    def matches_recipe(self, content_hash: str) -> bool:
        """Whether this lock file was produced from a recipe with this hash."""
        return bool(self._metadata.recipe_hash) and self._metadata.recipe_hash == content_hash

    # -- Serialization ------------------------------------------------------

    @staticmethod
    def _entry_lines(keyword: str, name: str, fields: list[tuple[str, str]],
                     dependencies: list[tuple[str, str]]) -> list[str]:
        lines = [f"{keyword}: {name}"]
        lines.extend(f"  {key}: {value}" for key, value in fields if value)
        for dep_name, constraint in sorted(dependencies, key=lambda d: d[0]):
            lines.append(f"  dependency: {dep_name} {constraint}")
        return lines

    def to_text(self) -> str:
        """Serialize to the line-oriented lock file format.

        Returns:
            Deterministic text, ending with a newline.
        """
        meta = self._metadata
        lines = [f"{_LOCKFILE_MARK}{self.LOCKFILE_VERSION}"]
        lines.append(f"heuristics: {meta.heuristics}")
        if meta.recipe_hash:
            lines.append(f"recipe-hash: {meta.recipe_hash}")
        for name in sorted(meta.pins):
            lines.append(f"pin: {name} {meta.pins[name]}")

        if self._root is not None:
            lines.append("")
            lines.extend(
                self._entry_lines(
                    "root", self._root.name,
                    [("version", self._root.version)],
                    self._root.dependencies,
                )
            )
        for entry in self.entries:
            lines.append("")
            lines.extend(
                self._entry_lines(
                    "package", entry.name,
                    [("version", entry.version), ("revision", entry.revision),
                     ("origin", entry.origin)],
                    entry.dependencies,
                )
            )
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dict (for JSON output).

        The output is deterministic: packages are sorted by name and
        dependency maps by key.
        """
        packages: dict[str, Any] = {}
        for entry in self.entries:
            item: dict[str, Any] = {
                "version": entry.version,
                "origin": entry.origin,
                "dependencies": dict(sorted(entry.dependencies)),
            }
            if entry.revision:
                item["revision"] = entry.revision
            packages[entry.name] = item

        data: dict[str, Any] = {
            "lockfile_version": self.LOCKFILE_VERSION,
            "generated_by": "depweave",
            "heuristics": self._metadata.heuristics,
            "recipe_hash": self._metadata.recipe_hash,
            "pins": dict(sorted(self._metadata.pins.items())),
            "packages": packages,
        }
        if self._root is not None:
            data["root"] = {
                "name": self._root.name,
                "version": self._root.version,
                "dependencies": dict(sorted(self._root.dependencies)),
            }
        return data

    def write(self, path: Path) -> None:
        """Write the lock file to disk atomically.

        Args:
            path: Filesystem path to write (e.g., Path("depweave.lock")).
        """
        atomic_write_text(Path(path), self.to_text())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Lockfile):
            return NotImplemented
        return self.to_text() == other.to_text()

    __hash__ = None  # type: ignore[assignment]

    # -- Metadata access ----------------------------------------------------

    @property
    def metadata(self) -> LockfileMetadata:
        """Return the lock file metadata."""
        return self._metadata

    @metadata.setter
    def metadata(self, value: LockfileMetadata) -> None:
        self._metadata = value
