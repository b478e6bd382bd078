"""Semantic versions with SemVer 2.0.0 precedence.

``Semver`` is an immutable value type. Equality, hashing and ordering ignore
build metadata (SemVer section 10) while ``str()`` preserves it, so a version
read from a lock file serializes back unchanged.

References
----------
.. [SemVer] Preston-Werner, T. (2013). "Semantic Versioning 2.0.0."
   https://semver.org/
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import total_ordering

from depweave.exceptions import MalformedVersion

_IDENT_RE = re.compile(r"^[0-9A-Za-z-]+$")
_NUMERIC_RE = re.compile(r"^(0|[1-9]\d*)$")


def _split_idents(section: str, text: str, what: str) -> tuple[str, ...]:
    if not section:
        raise MalformedVersion(text, f"{what} section may not be empty")
    idents = tuple(section.split("."))
    for ident in idents:
        if not _IDENT_RE.match(ident):
            raise MalformedVersion(text, f"{what} section contains invalid identifier {ident!r}")
    return idents


def _compare_prerelease(lhs: tuple[str, ...], rhs: tuple[str, ...]) -> int:
    # SemVer 11.3: a release has higher precedence than any of its prereleases.
    if lhs and not rhs:
        return -1
    if rhs and not lhs:
        return 1
    for left, right in zip(lhs, rhs):
        if left == right:
            continue
        left_num = left.isdigit()
        right_num = right.isdigit()
        if left_num and right_num:
            return -1 if int(left) < int(right) else 1
        if left_num != right_num:
            # numeric identifiers sort below alphanumeric ones
            return -1 if left_num else 1
        return -1 if left < right else 1
    if len(lhs) == len(rhs):
        return 0
    return -1 if len(lhs) < len(rhs) else 1


@total_ordering
@dataclass(frozen=True, eq=False)
class Semver:
    """A semantic version ``major.minor.patch[-prerelease][+build]``.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        prerelease: Dot-separated prerelease identifiers (e.g. ``("rc", "1")``).
        build: Build metadata identifiers. Ignored for ordering.
    """

    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if min(self.major, self.minor, self.patch) < 0:
            raise MalformedVersion(str(self), "version numbers must be positive")

    @classmethod
    def parse(cls, text: str) -> Semver:
        """Parse a version string.

        Raises:
            MalformedVersion: If ``text`` is not a valid semantic version.
        """
        raw = text.strip()
        main, plus, build_part = raw.partition("+")
        main, hyphen, pre_part = main.partition("-")

        numbers = main.split(".")
        if len(numbers) != 3:
            raise MalformedVersion(text, "expected 3 parts in main section")
        for num in numbers:
            if not _NUMERIC_RE.match(num):
                raise MalformedVersion(text, f"invalid numeric component {num!r}")

        prerelease = _split_idents(pre_part, text, "pre-release") if hyphen else ()
        build = _split_idents(build_part, text, "build-metadata") if plus else ()
        for ident in prerelease:
            if ident.isdigit() and not _NUMERIC_RE.match(ident):
                raise MalformedVersion(text, f"numeric identifier {ident!r} has leading zeros")

        major, minor, patch = (int(n) for n in numbers)
        return cls(major, minor, patch, prerelease, build)

    @classmethod
    def coerce(cls, value: Semver | str) -> Semver:
        """Return ``value`` as a ``Semver``, parsing it if it is a string."""
        if isinstance(value, Semver):
            return value
        return cls.parse(value)

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    @property
    def release(self) -> tuple[int, int, int]:
        return self.major, self.minor, self.patch

    def compare(self, other: Semver) -> int:
        """Three-way comparison: negative, zero or positive."""
        if self.release != other.release:
            return -1 if self.release < other.release else 1
        return _compare_prerelease(self.prerelease, other.prerelease)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Semver):
            return NotImplemented
        return self.release == other.release and self.prerelease == other.prerelease

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Semver):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash((self.release, self.prerelease))

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + ".".join(self.build)
        return text

    def __repr__(self) -> str:
        return f"Semver({str(self)!r})"
