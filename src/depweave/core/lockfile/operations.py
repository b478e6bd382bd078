"""Lock file operations: parsing, validation and diffing.

This module extends the ``Lockfile`` class (defined in ``lockfile.py``) with
classmethods and instance methods for:

- **Parsing:** ``from_text``, ``from_dict``, ``read`` (disk).
- **Validation:** internal consistency checks (dependencies, constraints,
  DAG, hash format).
- **Diffing:** structured comparison of two lock files.

These are attached to the ``Lockfile`` class at import time (in
``__init__.py``) to keep each source file focused while presenting a single
unified API to callers.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from depweave import _LOCKFILE_MARK
from depweave.core.dependency.constraints import VersionConstraint
from depweave.core.dependency.heuristics import ResolutionMode
from depweave.core.dependency.provider import Origin
from depweave.core.dependency.semver import Semver
from depweave.core.lockfile.models import (
    LockEntry,
    LockfileMetadata,
    LOCKFILE_FORMAT,
    LockRoot,
    _RECIPE_HASH_RE,
)
from depweave.exceptions import (
    DepweaveError,
    InvalidLockfile,
    MalformedConstraint,
    MalformedVersion,
)

_MODES = {m.value for m in ResolutionMode}
_ORIGINS = {o.value for o in Origin}
_ENTRY_FIELDS = ("version", "revision", "origin", "dependency")


class _Parser:
    """Line-by-line reader of the lock file text format."""

    def __init__(self, text: str, path: str | None) -> None:
        self.text = text
        self.path = path
        self.metadata = LockfileMetadata()
        self.root: LockRoot | None = None
        self.entries: dict[str, LockEntry] = {}
        self._current: LockRoot | LockEntry | None = None
        self._current_line = 0
        self._lineno = 0

    def fail(self, reason: str, line: int | None = None) -> InvalidLockfile:
        return InvalidLockfile(self.path, self._lineno if line is None else line, reason)

    def parse(self) -> None:
        for self._lineno, raw in enumerate(self.text.splitlines(), start=1):
            line = raw.strip()
            if line.startswith(_LOCKFILE_MARK):
                self._check_format(line)
                continue
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition(":")
            if not sep:
                raise self.fail(f"expected 'key: value', got {line!r}")
            self._handle(key.strip(), value.strip())
        self._close_section()

    def _check_format(self, line: str) -> None:
        found = line[len(_LOCKFILE_MARK):].strip()
        if found != LOCKFILE_FORMAT:
            raise self.fail(f"unsupported lock-file format version {found!r}")

    def _handle(self, key: str, value: str) -> None:
        if key == "heuristics":
            if value not in _MODES:
                raise self.fail(f"unknown heuristics {value!r}")
            self.metadata.heuristics = value
        elif key == "recipe-hash":
            self.metadata.recipe_hash = value
        elif key == "pin":
            name, version = self._split_pair(value, "pin")
            self._check_version(version)
            self.metadata.pins[name] = version
        elif key == "root":
            self._close_section()
            if self.root is not None:
                raise self.fail("duplicate root section")
            self.root = LockRoot(self._require_name(value), "")
            self._open(self.root)
        elif key == "package":
            self._close_section()
            name = self._require_name(value)
            if name in self.entries:
                raise self.fail(f"duplicate package {name!r}")
            entry = LockEntry(name, "")
            self.entries[name] = entry
            self._open(entry)
        elif key in _ENTRY_FIELDS:
            self._handle_field(key, value)
        else:
            raise self.fail(f"unknown key {key!r}")

    def _open(self, section: LockRoot | LockEntry) -> None:
        self._current = section
        self._current_line = self._lineno

    def _close_section(self) -> None:
        section = self._current
        if section is not None and not section.version:
            kind = "root" if isinstance(section, LockRoot) else "package"
            raise self.fail(f"{kind} {section.name!r} has no version", self._current_line)
        self._current = None

    def _handle_field(self, key: str, value: str) -> None:
        section = self._current
        if section is None:
            raise self.fail(f"{key!r} outside of a root or package section")
        if key == "version":
            self._check_version(value)
            section.version = value
        elif key == "dependency":
            name, constraint = self._split_pair(value, "dependency")
            try:
                VersionConstraint(constraint)
            except MalformedConstraint as exc:
                raise self.fail(str(exc)) from exc
            section.dependencies.append((name, constraint))
        elif isinstance(section, LockRoot):
            raise self.fail(f"{key!r} is not allowed in the root section")
        elif key == "revision":
            section.revision = value
        else:
            if value not in _ORIGINS:
                raise self.fail(f"unknown origin {value!r}")
            section.origin = value

    def _require_name(self, value: str) -> str:
        if not value or " " in value:
            raise self.fail(f"invalid package name {value!r}")
        return value

    def _split_pair(self, value: str, what: str) -> tuple[str, str]:
        name, _, rest = value.partition(" ")
        rest = rest.strip()
        if not name or not rest:
            raise self.fail(f"{what} needs a name and a version")
        return name, rest

    def _check_version(self, value: str) -> None:
        try:
            Semver.parse(value)
        except MalformedVersion as exc:
            raise self.fail(str(exc)) from exc


def _from_text(cls: type, text: str, path: str | None = None) -> Any:
    """Parse a lock file from its text form.

    Args:
        text: Lock file content.
        path: File name used in error messages.

    Returns:
        A new ``Lockfile`` instance.

    Raises:
        InvalidLockfile: On the first malformed line, with its line number.
    """
    parser = _Parser(text, path)
    parser.parse()
    lf = cls(parser.root, parser.metadata)
    for entry in parser.entries.values():
        lf.add_entry(entry)
    return lf


def _from_dict(cls: type, data: dict[str, Any]) -> Any:
    """Deserialize a lock file from the dict produced by ``to_dict()``.

    Fields not present in the dict use default values.
    """
    meta = LockfileMetadata(
        heuristics=data.get("heuristics", ResolutionMode.PREFER_SYSTEM.value),
        recipe_hash=data.get("recipe_hash", ""),
        pins=dict(data.get("pins", {})),
    )
    root = None
    root_data = data.get("root")
    if root_data:
        root = LockRoot(
            name=root_data["name"],
            version=root_data.get("version", ""),
            dependencies=list(root_data.get("dependencies", {}).items()),
        )
    lf = cls(root, meta)
    for name, entry in data.get("packages", {}).items():
        lf.add_entry(
            LockEntry(
                name=name,
                version=entry.get("version", ""),
                revision=entry.get("revision", ""),
                origin=entry.get("origin", Origin.REGISTRY.value),
                dependencies=list(entry.get("dependencies", {}).items()),
            )
        )
    return lf


def _read(cls: type, path: Path) -> Any:
    """Read a lock file from disk.

    Raises:
        FileNotFoundError: If the file does not exist.
        InvalidLockfile: If the file cannot be parsed.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    return cls.from_text(text, str(path))


def _validate(self: Any) -> list[str]:
    """Validate the lock file for internal consistency.

    Performs the following checks:

    1. **Dependency completeness:** every dependency named by the root or an
       entry is itself an entry.
    2. **Constraint satisfaction:** every entry's version satisfies every
       constraint declared on it.
    3. **No circular dependencies:** the entries form a DAG.
    4. **Recipe hash format:** ``sha256:<64-hex-chars>`` when present.
    5. **Version non-empty.**

    Returns:
        List of validation error messages. Empty means the lock file is
        valid.
    """
    errors: list[str] = []
    entries = self._entries

    declarers: list[tuple[str, list[tuple[str, str]]]] = []
    if self._root is not None:
        declarers.append((self._root.name, self._root.dependencies))
    declarers.extend((e.name, e.dependencies) for e in self.entries)

    # 1 and 2
    for consumer, dependencies in declarers:
        for dep_name, constraint in dependencies:
            target = entries.get(dep_name)
            if target is None:
                errors.append(
                    f"Package {consumer!r} depends on {dep_name!r} which is "
                    f"not in the lock-file"
                )
                continue
            try:
                ok = VersionConstraint(constraint).satisfies(target.version)
            except DepweaveError as exc:
                errors.append(f"Package {consumer!r}: {exc}")
                continue
            if not ok:
                errors.append(
                    f"{dep_name}@{target.version} does not satisfy {constraint} "
                    f"required by {consumer!r}"
                )

    # 3. DFS coloring
    WHITE, GRAY, BLACK = 0, 1, 2
    color: dict[str, int] = {name: WHITE for name in entries}

    def _dfs(u: str) -> bool:
        color[u] = GRAY
        for dep_name in entries[u].dependency_names:
            if dep_name not in color:
                continue
            if color[dep_name] == GRAY:
                errors.append(
                    f"Circular dependency detected involving {u!r} and {dep_name!r}"
                )
                return True
            if color[dep_name] == WHITE and _dfs(dep_name):
                return True
        color[u] = BLACK
        return False

    for name in sorted(entries):
        if color[name] == WHITE:
            _dfs(name)

    # 4
    recipe_hash = self._metadata.recipe_hash
    if recipe_hash and not _RECIPE_HASH_RE.match(recipe_hash):
        errors.append(f"Invalid recipe hash format: {recipe_hash!r}")

    # 5
    for entry in self.entries:
        if not entry.version:
            errors.append(f"Package {entry.name!r} has empty version string")

    return errors


def _diff(self: Any, other: Any) -> dict[str, Any]:
    """Compare two lock files and return differences.

    - **added**: packages present in ``other`` but not in ``self``.
    - **removed**: packages present in ``self`` but not in ``other``.
    - **changed**: packages present in both with a different version,
      revision, origin or dependency list.

    Args:
        other: The lock file to compare against (typically the newer one).

    Returns:
        Dict with keys 'added', 'removed', 'changed'.
    """
    self_names = set(self._entries)
    other_names = set(other._entries)

    changes: list[dict[str, Any]] = []
    for name in sorted(self_names & other_names):
        old = self._entries[name]
        new = other._entries[name]
        for field_name in ("version", "revision", "origin"):
            before, after = getattr(old, field_name), getattr(new, field_name)
            if before != after:
                changes.append({"name": name, "field": field_name, "old": before, "new": after})
        if sorted(old.dependencies) != sorted(new.dependencies):
            changes.append({
                "name": name,
                "field": "dependencies",
                "old": [f"{n} {c}" for n, c in sorted(old.dependencies)],
                "new": [f"{n} {c}" for n, c in sorted(new.dependencies)],
            })

    return {
        "added": sorted(other_names - self_names),
        "removed": sorted(self_names - other_names),
        "changed": changes,
    }
