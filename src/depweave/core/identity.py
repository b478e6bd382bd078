"""Build profiles and the build identity digest.

A build identity is the single cache key of a build: a SHA-256 digest over
the build profile, the option map and the locked dependency plan. It is
computed from a canonical form, so the same logical inputs always produce
the same digest regardless of the order they were given in, and changing any
single field (a compiler version, an option value, a dependency version)
changes it.

Canonical form::

    depweave-build-id/1
    RS profile  US <key> US <value>        (profile items, sorted by key)
    RS option   US <key> US <value>        (options, sorted by key)
    RS package  US <name> US <version> US <revision> US <origin>
                                           (entries, sorted by name)

with ``US`` the unit separator (``\\x1f``) and ``RS`` the record separator
(``\\x1e``).
"""

from __future__ import annotations

import hashlib
import logging
import platform
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from depweave.core.lockfile import LockEntry, Lockfile
from depweave.exceptions import ProfileError

logger = logging.getLogger(__name__)

UNIT_SEP = "\x1f"
RECORD_SEP = "\x1e"
_IDENTITY_TAG = "depweave-build-id/1"


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Compiler:
    """A compiler used for one language."""

    language: str
    name: str
    version: str
    abi: str = ""


@dataclass(frozen=True)
class Profile:
    """Description of the host and toolchain a package is built with.

    The resolver only ever hashes a profile; recipes (through the provider)
    are the ones that interpret it.

    Attributes:
        name: Profile name, informational only.
        host_os: Operating system (e.g. "linux").
        host_arch: CPU architecture (e.g. "x86_64").
        build_type: Build mode (e.g. "debug", "release").
        compilers: One compiler per language.
    """

    host_os: str
    host_arch: str
    build_type: str = "debug"
    compilers: tuple[Compiler, ...] = ()
    name: str = field(default="default", compare=False)

    @classmethod
    def default(cls) -> Profile:
        """A minimal profile for the running host, without compilers."""
        return cls(platform.system().lower() or "unknown", platform.machine().lower() or "unknown")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Profile:
        """Build a profile from its YAML/dict form.

        Raises:
            ProfileError: If a required field is missing or malformed.
        """
        if not isinstance(data, Mapping):
            raise ProfileError("Profile must be a mapping")
        missing = [key for key in ("os", "arch") if not data.get(key)]
        if missing:
            raise ProfileError(f"Profile is missing required field(s): {', '.join(missing)}")

        compilers: list[Compiler] = []
        raw_compilers = data.get("compilers") or {}
        if not isinstance(raw_compilers, Mapping):
            raise ProfileError("'compilers' must map a language to a compiler")
        for language, entry in raw_compilers.items():
            if not isinstance(entry, Mapping) or not entry.get("name") or not entry.get("version"):
                raise ProfileError(f"Compiler for {language!r} needs a name and a version")
            compilers.append(
                Compiler(str(language), str(entry["name"]), str(entry["version"]), str(entry.get("abi", "")))
            )

        return cls(
            host_os=str(data["os"]),
            host_arch=str(data["arch"]),
            build_type=str(data.get("build_type", "debug")),
            compilers=tuple(sorted(compilers, key=lambda c: c.language)),
            name=str(data.get("name", "default")),
        )

    @classmethod
    def load(cls, path: Path) -> Profile:
        """Read a profile from a YAML file.

        Raises:
            ProfileError: If the file is missing, not YAML, or incomplete.
        """
        path = Path(path)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ProfileError(f"Profile not found: {path}") from exc
        except yaml.YAMLError as exc:
            raise ProfileError(f"Invalid YAML in profile {path}: {exc}") from exc
        logger.debug("Loaded profile from %s", path)
        return cls.from_dict(data or {})

    def with_overrides(
        self,
        *,
        host_os: str | None = None,
        host_arch: str | None = None,
        build_type: str | None = None,
    ) -> Profile:
        """Return a copy with the given fields replaced (``--os`` etc.)."""
        changes = {
            key: value
            for key, value in (("host_os", host_os), ("host_arch", host_arch), ("build_type", build_type))
            if value
        }
        return replace(self, **changes) if changes else self

    def items(self) -> list[tuple[str, str]]:
        """Flattened ``(key, value)`` pairs, sorted by key."""
        pairs = [
            ("arch", self.host_arch),
            ("build_type", self.build_type),
            ("os", self.host_os),
        ]
        for comp in self.compilers:
            prefix = f"compiler.{comp.language}"
            pairs.append((f"{prefix}.name", comp.name))
            pairs.append((f"{prefix}.version", comp.version))
            pairs.append((f"{prefix}.abi", comp.abi))
        return sorted(pairs)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "os": self.host_os,
            "arch": self.host_arch,
            "build_type": self.build_type,
        }
        if self.compilers:
            data["compilers"] = {
                c.language: {"name": c.name, "version": c.version, "abi": c.abi}
                for c in self.compilers
            }
        return data

    @property
    def digest_hash(self) -> str:
        """SHA-256 over the profile items alone."""
        canonical = RECORD_SEP.join(UNIT_SEP.join(pair) for pair in self.items())
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Build identity
# ---------------------------------------------------------------------------


def _canonical_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _profile_items(profile: Profile | Mapping[str, Any]) -> list[tuple[str, str]]:
    if isinstance(profile, Profile):
        return profile.items()
    if isinstance(profile, Mapping):
        return sorted((str(k), _canonical_value(v)) for k, v in profile.items())
    raise TypeError(f"Unsupported profile type: {type(profile).__name__}")


def build_identity(
    profile: Profile | Mapping[str, Any],
    options: Mapping[str, Any],
    locked: Lockfile | Iterable[LockEntry],
) -> str:
    """Compute the build identity digest.

    Args:
        profile: A ``Profile`` or a plain mapping of profile fields.
        options: Option map (key to value).
        locked: A ``Lockfile`` or its entries.

    Returns:
        Lowercase hex SHA-256 digest.
    """
    entries = locked.entries if isinstance(locked, Lockfile) else list(locked)

    records = [_IDENTITY_TAG]
    records.extend(UNIT_SEP.join(("profile", k, v)) for k, v in _profile_items(profile))
    records.extend(
        UNIT_SEP.join(("option", str(k), _canonical_value(options[k])))
        for k in sorted(options, key=str)
    )
    records.extend(
        UNIT_SEP.join(("package", e.name, e.version, e.revision, e.origin))
        for e in sorted(entries, key=lambda e: e.name)
    )
    return hashlib.sha256(RECORD_SEP.join(records).encode("utf-8")).hexdigest()
