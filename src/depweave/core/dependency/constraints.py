"""Version constraints and dependency edges.

A ``VersionConstraint`` is a conjunction of comparator clauses. Every clause
form maps onto a single version interval, so a constraint is stored as its
tightest lower and upper bound; ``intersect`` is then a bound comparison and
``satisfies`` a pair of comparisons.

Supported clauses:

- Exact match: ``=1.0.0``, ``==1.0.0`` or a bare ``1.0.0``
- Minimum: ``>=1.0.0`` (inclusive), ``>1.0.0`` (exclusive)
- Maximum: ``<=2.0.0`` (inclusive), ``<2.0.0`` (exclusive)
- Compatible range: ``~>1.2`` (``>=1.2.0 <2.0.0``), ``~>1.2.3``
  (``>=1.2.3 <1.3.0``)
- Caret: ``^1.2.3`` (``>=1.2.3 <2.0.0``); ``^0.x.y`` pins the exact version
- Wildcard: ``*``

Clauses are separated by whitespace or commas: ``>=1.2 <3``,
``>=1.2.0,<3.0.0``. Versions with fewer than three components are expanded
with zeros.

A prerelease version only satisfies a constraint whose lower bound itself
carries a prerelease, so ``>=1.0.0`` never selects ``2.0.0-beta``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from depweave.core.dependency.semver import Semver
from depweave.exceptions import MalformedConstraint, MalformedVersion

# One clause: optional operator followed by a version token.
_CLAUSE_RE = re.compile(r"(?P<op>~>|\^|==|=|>=|<=|>|<)?\s*(?P<ver>[^\s,<>=~^*]+)")
_SEPARATOR_RE = re.compile(r"[\s,]*")

Bound = tuple[Semver | None, bool]


def _expand(token: str) -> tuple[str, int]:
    """Expand ``1`` / ``1.2`` to ``1.0.0`` / ``1.2.0``.

    Returns the expanded version text and the number of components that
    were written explicitly.
    """
    split_at = len(token)
    for sep in ("-", "+"):
        idx = token.find(sep)
        if idx != -1:
            split_at = min(split_at, idx)
    main, rest = token[:split_at], token[split_at:]
    comps = main.split(".")
    if not 1 <= len(comps) <= 3:
        return token, len(comps)
    return ".".join(comps + ["0"] * (3 - len(comps))) + rest, len(comps)


def _clause_bounds(op: str, ver: Semver, comps: int, text: str) -> tuple[Bound, Bound]:
    if op in ("", "=", "=="):
        return (ver, True), (ver, True)
    if op == ">=":
        return (ver, True), (None, True)
    if op == ">":
        return (ver, False), (None, True)
    if op == "<=":
        return (None, True), (ver, True)
    if op == "<":
        return (None, True), (ver, False)
    if op == "~>":
        if comps == 3:
            return (ver, True), (Semver(ver.major, ver.minor + 1, 0), False)
        if comps == 2:
            return (ver, True), (Semver(ver.major + 1, 0, 0), False)
        raise MalformedConstraint(text, "'~>' needs two or three version components")
    if op == "^":
        if ver.major == 0:
            return (ver, True), (ver, True)
        return (ver, True), (Semver(ver.major + 1, 0, 0), False)
    raise MalformedConstraint(text, f"unknown operator {op!r}")  # pragma: no cover


def _tighter_lower(a: Bound, b: Bound) -> Bound:
    if a[0] is None:
        return b
    if b[0] is None:
        return a
    cmp = a[0].compare(b[0])
    if cmp == 0:
        return a[0], a[1] and b[1]
    return a if cmp > 0 else b


def _tighter_upper(a: Bound, b: Bound) -> Bound:
    if a[0] is None:
        return b
    if b[0] is None:
        return a
    cmp = a[0].compare(b[0])
    if cmp == 0:
        return a[0], a[1] and b[1]
    return a if cmp < 0 else b


def _render(lower: Bound, upper: Bound) -> str:
    lo, lo_inc = lower
    up, up_inc = upper
    if lo is None and up is None:
        return "*"
    if lo is not None and up is not None and lo == up and lo_inc and up_inc:
        return f"={lo}"
    parts = []
    if lo is not None:
        parts.append(f"{'>=' if lo_inc else '>'}{lo}")
    if up is not None:
        parts.append(f"{'<=' if up_inc else '<'}{up}")
    return " ".join(parts)


@dataclass(frozen=True)
class VersionConstraint:
    """A version requirement, e.g. ``VersionConstraint(">=1.2 <2")``.

    The constraint is parsed eagerly; equality compares the resulting
    interval, not the authored text.

    Attributes:
        raw: The constraint string as authored.
        lower: Lower bound, or None when unbounded.
        lower_inclusive: Whether ``lower`` itself is admitted.
        upper: Upper bound, or None when unbounded.
        upper_inclusive: Whether ``upper`` itself is admitted.

    Raises:
        MalformedConstraint: If ``raw`` cannot be parsed.
    """

    raw: str = field(compare=False)
    lower: Semver | None = field(init=False, default=None)
    lower_inclusive: bool = field(init=False, default=True)
    upper: Semver | None = field(init=False, default=None)
    upper_inclusive: bool = field(init=False, default=True)

    def __post_init__(self) -> None:
        lower, upper = self._parse(self.raw)
        object.__setattr__(self, "lower", lower[0])
        object.__setattr__(self, "lower_inclusive", lower[1])
        object.__setattr__(self, "upper", upper[0])
        object.__setattr__(self, "upper_inclusive", upper[1])
        if self._is_empty():
            raise MalformedConstraint(self.raw, "constraint admits no version")

    @staticmethod
    def _parse(text: str) -> tuple[Bound, Bound]:
        stripped = text.strip()
        if not stripped:
            raise MalformedConstraint(text, "constraint cannot be empty")

        lower: Bound = (None, True)
        upper: Bound = (None, True)
        pos = 0
        while pos < len(stripped):
            pos = _SEPARATOR_RE.match(stripped, pos).end()
            if pos >= len(stripped):
                break
            if stripped[pos] == "*":
                pos += 1
                continue
            m = _CLAUSE_RE.match(stripped, pos)
            if not m:
                raise MalformedConstraint(text, f"unexpected input at {stripped[pos:]!r}")
            op = m.group("op") or ""
            expanded, comps = _expand(m.group("ver"))
            try:
                ver = Semver.parse(expanded)
            except MalformedVersion as exc:
                raise MalformedConstraint(text, exc.reason or str(exc)) from exc
            clause_lower, clause_upper = _clause_bounds(op, ver, comps, text)
            lower = _tighter_lower(lower, clause_lower)
            upper = _tighter_upper(upper, clause_upper)
            pos = m.end()
        return lower, upper

    @classmethod
    def _from_bounds(cls, lower: Bound, upper: Bound) -> VersionConstraint:
        return cls(_render(lower, upper))

    def _is_empty(self) -> bool:
        if self.lower is None or self.upper is None:
            return False
        cmp = self.lower.compare(self.upper)
        if cmp > 0:
            return True
        return cmp == 0 and not (self.lower_inclusive and self.upper_inclusive)

    @property
    def is_wildcard(self) -> bool:
        return self.lower is None and self.upper is None

    def satisfies(self, version: Semver | str) -> bool:
        """Check whether ``version`` satisfies every clause of this constraint.

        Args:
            version: A ``Semver`` or a version string.

        Raises:
            MalformedVersion: If ``version`` is a string that does not parse.
        """
        ver = Semver.coerce(version)
        if ver.is_prerelease and not (self.lower is not None and self.lower.is_prerelease):
            return False
        if self.lower is not None:
            cmp = self.lower.compare(ver)
            if cmp > 0 or (cmp == 0 and not self.lower_inclusive):
                return False
        if self.upper is not None:
            cmp = self.upper.compare(ver)
            if cmp < 0 or (cmp == 0 and not self.upper_inclusive):
                return False
        return True

    def intersect(self, other: VersionConstraint) -> VersionConstraint | None:
        """Merge two constraints into the tightest constraint admitting both.

        Returns:
            The combined constraint, or None when no version can satisfy
            both (the constraints are unsatisfiable together).
        """
        lower = _tighter_lower(
            (self.lower, self.lower_inclusive), (other.lower, other.lower_inclusive)
        )
        upper = _tighter_upper(
            (self.upper, self.upper_inclusive), (other.upper, other.upper_inclusive)
        )
        lo, up = lower[0], upper[0]
        if lo is not None and up is not None:
            cmp = lo.compare(up)
            if cmp > 0 or (cmp == 0 and not (lower[1] and upper[1])):
                return None
        return self._from_bounds(lower, upper)

    @property
    def canonical(self) -> str:
        """Normalized text of this constraint (e.g. ``>=1.2.0 <2.0.0``)."""
        return _render(
            (self.lower, self.lower_inclusive), (self.upper, self.upper_inclusive)
        )

    def __str__(self) -> str:
        return self.raw.strip()

    def __repr__(self) -> str:
        return f"VersionConstraint({self.raw!r})"


ANY = VersionConstraint("*")


def intersect_all(constraints: list[VersionConstraint]) -> VersionConstraint | None:
    """Intersect a list of constraints; None if they cannot all hold."""
    result: VersionConstraint | None = ANY
    for constraint in constraints:
        result = result.intersect(constraint)
        if result is None:
            return None
    return result


# ---------------------------------------------------------------------------
# DependencyEdge: consumer -> dependency
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DependencyEdge:
    """A directed edge from a consumer package to one of its dependencies.

    Represents: "``consumer`` at its resolved version requires
    ``dependency`` at some version satisfying ``constraint``."

    Several edges may target the same dependency (diamond); the graph keeps
    one resolved version per name that satisfies all of them.

    Attributes:
        consumer: Name of the package declaring the dependency.
        dependency: Name of the required package.
        constraint: Version constraint the dependency must satisfy.
    """

    consumer: str
    dependency: str
    constraint: VersionConstraint
