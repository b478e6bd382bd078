"""Lock file: the persisted, reproducible dependency plan.

This package implements the ``depweave.lock`` format. The lock file captures
the exact resolved state of a package's dependencies (every package at its
resolved version, revision and origin, with the dependencies it declares)
plus the hash of the root recipe it was produced from.

The package is split into focused submodules:

- ``models``: Data classes (``LockEntry``, ``LockRoot``,
  ``LockfileMetadata``).
- ``lockfile``: The ``Lockfile`` class with entry management, serialization
  and atomic writes.
- ``operations``: Parsing (``from_text``, ``from_dict``, ``read``),
  validation and diffing.
- ``factory``: ``from_graph`` and ``to_graph`` conversions between lock
  files and resolution graphs.

All public names are re-exported here so that imports like
``from depweave.core.lockfile import Lockfile`` work.
"""

# Re-export data models
from depweave.core.lockfile.models import (
    LOCKFILE_FORMAT,
    LockEntry,
    LockfileMetadata,
    LockRoot,
    _RECIPE_HASH_RE,
)

# Re-export the Lockfile class
from depweave.core.lockfile.lockfile import Lockfile, atomic_write_text

# Attach operations to Lockfile as methods/classmethods
from depweave.core.lockfile import operations as _ops
from depweave.core.lockfile import factory as _factory

Lockfile.from_text = classmethod(_ops._from_text)
Lockfile.from_dict = classmethod(_ops._from_dict)
Lockfile.read = classmethod(_ops._read)
Lockfile.validate = _ops._validate
Lockfile.diff = _ops._diff
Lockfile.from_graph = classmethod(_factory._from_graph)
Lockfile.to_graph = _factory._to_graph

__all__ = [
    "LOCKFILE_FORMAT",
    "Lockfile",
    "LockEntry",
    "LockRoot",
    "LockfileMetadata",
    "atomic_write_text",
    "_RECIPE_HASH_RE",
]
