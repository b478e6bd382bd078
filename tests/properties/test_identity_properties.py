"""Property-based tests for the build identity.

Verifies that the digest depends only on the logical content of its inputs
(not their order) and that any single changed field changes it.
"""
from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from depweave.core.identity import build_identity
from depweave.core.lockfile import LockEntry

_keys = st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=8)
_values = st.one_of(st.booleans(), st.integers(0, 99), _keys)

_entries = st.dictionaries(
    _keys,
    st.tuples(
        st.builds(lambda a, b, c: f"{a}.{b}.{c}", st.integers(0, 9), st.integers(0, 9), st.integers(0, 9)),
        st.sampled_from(["", "r1", "r2"]),
        st.sampled_from(["system", "localCache", "registry"]),
    ),
    max_size=6,
)


def _as_entries(data: dict) -> list[LockEntry]:
    return [LockEntry(name, v, rev, origin) for name, (v, rev, origin) in data.items()]


@given(
    profile=st.dictionaries(_keys, _keys, max_size=5),
    options=st.dictionaries(_keys, _values, max_size=5),
    entries=_entries,
    seed=st.randoms(use_true_random=False),
)
def test_permutation_invariance(profile: dict, options: dict, entries: dict, seed) -> None:
    items = _as_entries(entries)
    shuffled = list(items)
    seed.shuffle(shuffled)
    reordered_options = dict(reversed(list(options.items())))
    reordered_profile = dict(reversed(list(profile.items())))
    assert build_identity(profile, options, items) == build_identity(
        reordered_profile, reordered_options, shuffled
    )


@given(
    options=st.dictionaries(_keys, _values, max_size=5),
    entries=_entries.filter(bool),
    new_version=st.integers(10, 20),
)
def test_changed_version_changes_digest(options: dict, entries: dict, new_version: int) -> None:
    profile = {"os": "linux", "arch": "x86_64"}
    items = _as_entries(entries)
    changed = list(items)
    first = changed[0]
    changed[0] = LockEntry(first.name, f"{new_version}.0.0", first.revision, first.origin)
    assert build_identity(profile, options, items) != build_identity(profile, options, changed)


@given(options=st.dictionaries(_keys, _values, min_size=1, max_size=5), extra=_keys)
def test_added_option_changes_digest(options: dict, extra: str) -> None:
    profile = {"os": "linux", "arch": "x86_64"}
    key = extra + "_x" if extra in options else extra
    widened = dict(options)
    widened[key] = "on"
    assert build_identity(profile, options, []) != build_identity(profile, widened, [])
