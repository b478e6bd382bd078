"""Resolution heuristics: choosing one candidate among qualifying ones.

Each resolution mode is an ordered list of rules. A rule looks at the
qualifying candidates and either picks one or passes; the first rule that
picks wins. New modes are added by composing rule lists rather than by
growing a conditional.

===============  =====================================================
Mode             Rules
===============  =====================================================
preferSystem     highest system candidate, then highest overall
preferCached     highest candidate with a pre-built artifact, then
                 highest overall
preferLocal      highest local-cache candidate, then highest overall
pickHighest      highest overall
===============  =====================================================

"Highest overall" breaks ties between identical versions from several
origins by preferring the local cache, then the system, then the registry.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum

from depweave.core.dependency.provider import Candidate, Origin
from depweave.core.dependency.semver import Semver


class ResolutionMode(str, Enum):
    """Policy used to break ties among qualifying candidates."""

    PREFER_SYSTEM = "preferSystem"
    PREFER_CACHED = "preferCached"
    PREFER_LOCAL = "preferLocal"
    PICK_HIGHEST = "pickHighest"

    def __str__(self) -> str:
        return self.value


class SystemPolicy(str, Enum):
    """Which packages may be taken from the system."""

    ALLOW = "allow"
    DISALLOW = "disallow"
    ALLOW_LIST = "allowList"
    DENY_LIST = "denyList"

    def __str__(self) -> str:
        return self.value


PrebuiltCheck = Callable[[Candidate], bool]
Rule = Callable[[Sequence[Candidate], PrebuiltCheck], "Candidate | None"]

_ORIGIN_TIE_BREAK: dict[Origin, int] = {
    Origin.LOCAL_CACHE: 2,
    Origin.SYSTEM: 1,
    Origin.REGISTRY: 0,
}


def _rank(candidate: Candidate) -> tuple[Semver, int, str]:
    return candidate.version, _ORIGIN_TIE_BREAK[candidate.origin], candidate.revision


def highest(candidates: Sequence[Candidate], _prebuilt: PrebuiltCheck) -> Candidate | None:
    """Pick the maximum version regardless of origin."""
    if not candidates:
        return None
    return max(candidates, key=_rank)


def highest_from(origin: Origin) -> Rule:
    """Build a rule picking the highest candidate of one origin."""

    def rule(candidates: Sequence[Candidate], prebuilt: PrebuiltCheck) -> Candidate | None:
        return highest([c for c in candidates if c.origin == origin], prebuilt)

    rule.__name__ = f"highest_from_{origin.value}"
    return rule


def highest_prebuilt(candidates: Sequence[Candidate], prebuilt: PrebuiltCheck) -> Candidate | None:
    """Pick the highest candidate with an existing pre-built artifact."""
    return highest([c for c in candidates if prebuilt(c)], prebuilt)


MODE_RULES: dict[ResolutionMode, tuple[Rule, ...]] = {
    ResolutionMode.PREFER_SYSTEM: (highest_from(Origin.SYSTEM), highest),
    ResolutionMode.PREFER_CACHED: (highest_prebuilt, highest),
    ResolutionMode.PREFER_LOCAL: (highest_from(Origin.LOCAL_CACHE), highest),
    ResolutionMode.PICK_HIGHEST: (highest,),
}


def _never_prebuilt(_candidate: Candidate) -> bool:
    return False


@dataclass(frozen=True)
class Heuristics:
    """The active resolution policy.

    Attributes:
        mode: Tie-break mode.
        system: Which packages may come from the system.
        system_list: Package list used by the allow/deny list policies.
        pins: ``--use`` pins forcing a package to an exact version.
    """

    mode: ResolutionMode = ResolutionMode.PREFER_SYSTEM
    system: SystemPolicy = SystemPolicy.ALLOW
    system_list: tuple[str, ...] = ()
    pins: Mapping[str, Semver] = field(default_factory=dict)

    def allow_system_for(self, name: str) -> bool:
        if self.system is SystemPolicy.ALLOW:
            return True
        if self.system is SystemPolicy.DISALLOW:
            return False
        if self.system is SystemPolicy.ALLOW_LIST:
            return name in self.system_list
        return name not in self.system_list

    def admits(self, name: str, candidate: Candidate) -> bool:
        """Whether ``candidate`` may be used at all for ``name``."""
        if candidate.origin is Origin.SYSTEM:
            return self.allow_system_for(name)
        return True

    def pin_for(self, name: str) -> Semver | None:
        return self.pins.get(name)

    def with_pins(self, pins: Mapping[str, Semver]) -> Heuristics:
        merged = dict(self.pins)
        merged.update(pins)
        return replace(self, pins=merged)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return MODE_RULES[self.mode]

    def choose(
        self,
        candidates: Sequence[Candidate],
        prebuilt: PrebuiltCheck | None = None,
    ) -> Candidate | None:
        """Choose among already-qualified candidates.

        ``candidates`` must already satisfy the constraints and be admitted;
        this only breaks ties. Returns None for an empty sequence.
        """
        check = prebuilt or _never_prebuilt
        for rule in self.rules:
            chosen = rule(candidates, check)
            if chosen is not None:
                return chosen
        return None
