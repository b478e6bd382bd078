"""YAML-backed recipe provider.

``CatalogProvider`` answers the resolver's questions from a ``catalog.yaml``
file listing, for each package, the versions available from each origin::

    unavailable: [registry]          # origins that fail to answer
    packages:
      zlib:
        - version: 1.2.13
          origin: system
        - version: 1.3.0
          revision: r1
          origin: registry
          prebuilt: true
          dependencies:
            - name: libunwind
              version: "^1.6"
              when: {os: linux}

``origin`` defaults to ``registry``. ``dependencies`` follows the same rules
as in a root recipe (see ``depweave.catalog.recipes``) and is evaluated
lazily, once per (version, revision, profile, options), so a broken
declaration only fails the package that uses it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from depweave.catalog.recipes import parse_dependencies
from depweave.core.dependency.constraints import VersionConstraint
from depweave.core.dependency.provider import Candidate, Origin, RecipeProvider
from depweave.core.dependency.semver import Semver
from depweave.exceptions import MalformedVersion, ProviderUnavailable, RecipeError

logger = logging.getLogger(__name__)


class CatalogProvider(RecipeProvider):
    """Recipe provider reading a static catalog.

    Args:
        data: The catalog mapping (as loaded from YAML).
        source: Where the catalog came from, for messages.

    Raises:
        RecipeError: If the catalog is not shaped as documented.
    """

    def __init__(self, data: Mapping[str, Any] | None = None, source: str = "<catalog>") -> None:
        data = data or {}
        if not isinstance(data, Mapping):
            raise RecipeError(source, None, "catalog must be a mapping")
        self.source = source
        self._unavailable = self._parse_origins(data.get("unavailable") or [])
        self._packages: dict[str, list[tuple[Candidate, Mapping[str, Any]]]] = {}
        self._lock = threading.Lock()
        self._lookups = 0

        packages = data.get("packages") or {}
        if not isinstance(packages, Mapping):
            raise RecipeError(source, None, "'packages' must be a mapping")
        for name, versions in packages.items():
            self._packages[str(name)] = self._parse_versions(str(name), versions)

    @classmethod
    def load(cls, path: Path) -> CatalogProvider:
        """Read a catalog from a YAML file.

        Raises:
            RecipeError: If the file is missing or not valid YAML.
        """
        path = Path(path)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise RecipeError(str(path), None, "catalog file not found") from exc
        except yaml.YAMLError as exc:
            raise RecipeError(str(path), None, f"invalid YAML: {exc}") from exc
        logger.debug("Loaded catalog from %s", path)
        return cls(data, source=str(path))

    def _parse_origins(self, raw: Any) -> frozenset[Origin]:
        if not isinstance(raw, list):
            raise RecipeError(self.source, None, "'unavailable' must be a list of origins")
        try:
            return frozenset(Origin(o) for o in raw)
        except ValueError as exc:
            raise RecipeError(self.source, None, f"unknown origin in 'unavailable': {exc}") from exc

    def _parse_versions(self, name: str, raw: Any) -> list[tuple[Candidate, Mapping[str, Any]]]:
        if not isinstance(raw, list):
            raise RecipeError(name, None, "catalog entry must be a list of versions")
        parsed = []
        for item in raw:
            if not isinstance(item, Mapping) or "version" not in item:
                raise RecipeError(name, None, "every catalog version needs a 'version'")
            try:
                version = Semver.parse(str(item["version"]))
                origin = Origin(item.get("origin", Origin.REGISTRY.value))
            except (MalformedVersion, ValueError) as exc:
                raise RecipeError(name, str(item["version"]), str(exc)) from exc
            candidate = Candidate(version, str(item.get("revision", "")), origin)
            parsed.append((candidate, item))
        return parsed

    # -- RecipeProvider -------------------------------------------------------

    @property
    def lookups(self) -> int:
        """Number of ``candidates`` calls served."""
        return self._lookups

    @property
    def package_names(self) -> list[str]:
        return sorted(self._packages)

    def candidates(self, name: str, origins: Iterable[Origin]) -> list[Candidate]:
        wanted = set(origins)
        with self._lock:
            self._lookups += 1
        down = sorted(wanted & self._unavailable, key=lambda o: o.value)
        if down:
            raise ProviderUnavailable(name, down[0], f"marked unavailable in {self.source}")
        return [c for c, _ in self._packages.get(name, []) if c.origin in wanted]

    def _find(
        self, name: str, version: Semver, revision: str, origin: Origin | None = None
    ) -> Mapping[str, Any]:
        for candidate, item in self._packages.get(name, []):
            if candidate.version != version or candidate.revision != revision:
                continue
            if origin is None or candidate.origin is origin:
                return item
        raise RecipeError(name, str(version), f"revision {revision!r} not in {self.source}")

    def dependencies_of(
        self,
        name: str,
        version: Semver,
        revision: str,
        profile: Any,
        options: Mapping[str, Any],
    ) -> list[tuple[str, VersionConstraint]]:
        item = self._find(name, version, revision)
        return parse_dependencies(
            item.get("dependencies"),
            recipe=f"{name}@{version}",
            profile=profile,
            options=options,
        )

    def has_prebuilt(
        self,
        name: str,
        candidate: Candidate,
        profile: Any,
        options: Mapping[str, Any],
    ) -> bool:
        try:
            item = self._find(name, candidate.version, candidate.revision, candidate.origin)
        except RecipeError:
            return False
        return bool(item.get("prebuilt", False))
