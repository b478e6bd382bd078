"""Shared fixtures for lock file tests."""

from __future__ import annotations

import pytest

from depweave.core.lockfile import LockEntry, Lockfile, LockfileMetadata, LockRoot


@pytest.fixture
def sample_lockfile() -> Lockfile:
    """app -> libpng -> zlib, app -> fmt, with a pin on zlib."""
    lf = Lockfile(
        LockRoot("app", "1.0.0", [("libpng", "^1.6"), ("fmt", ">=9")]),
        LockfileMetadata(
            heuristics="pickHighest",
            recipe_hash=Lockfile.compute_recipe_hash("name: app\n"),
            pins={"zlib": "1.3.0"},
        ),
    )
    lf.add_entry(LockEntry("zlib", "1.3.0", "r1", "registry"))
    lf.add_entry(LockEntry("libpng", "1.6.43", "r1", "localCache", [("zlib", ">=1.3")]))
    lf.add_entry(LockEntry("fmt", "10.2.1", "", "system"))
    return lf
