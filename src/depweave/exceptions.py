"""depweave exception hierarchy.

All public exceptions inherit from DepweaveError, giving callers a single
base class to catch when they want to handle any depweave-specific failure
without swallowing unrelated errors.

Resolution failures carry the context needed to act on them (chain of
requiring packages, every contributing constraint) as attributes as well as
in the message, so callers never need to re-run in verbose mode.
"""

from __future__ import annotations

from typing import Any


class DepweaveError(Exception):
    """Base exception for all depweave errors."""


class MalformedVersion(DepweaveError, ValueError):
    """Raised when a string is not a valid semantic version."""

    def __init__(self, text: str, reason: str = "") -> None:
        self.text = text
        self.reason = reason
        msg = f"{text!r} is not a valid semantic version"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class MalformedConstraint(DepweaveError, ValueError):
    """Raised when a version constraint cannot be parsed.

    ``recipe`` and ``field`` are filled in by the code that read the
    constraint from a recipe, so the report points at the offending
    declaration.
    """

    def __init__(
        self,
        text: str,
        reason: str = "",
        *,
        recipe: str | None = None,
        field: str | None = None,
    ) -> None:
        self.text = text
        self.reason = reason
        self.recipe = recipe
        self.field = field
        msg = f"Malformed version constraint {text!r}"
        if recipe:
            msg += f" in recipe {recipe!r}"
        if field:
            msg += f" (field {field!r})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)

    def with_context(self, recipe: str, field: str) -> MalformedConstraint:
        """Return a copy of this error tagged with its recipe and field."""
        return MalformedConstraint(self.text, self.reason, recipe=recipe, field=field)


class RecipeError(DepweaveError):
    """Raised when a recipe declares its dependencies incorrectly.

    Fatal for the node being expanded.
    """

    def __init__(self, name: str, version: str | None, reason: str) -> None:
        self.name = name
        self.version = version
        self.reason = reason
        where = f"{name}@{version}" if version else name
        super().__init__(f"Invalid recipe for {where}: {reason}")


class ProviderUnavailable(DepweaveError):
    """Raised by a recipe provider when an origin is excluded or unreachable.

    Not fatal by itself: the resolver logs it and carries on with the other
    origins.
    """

    def __init__(self, name: str, origin: Any, reason: str = "") -> None:
        self.name = name
        self.origin = origin
        self.reason = reason
        msg = f"Origin {origin} unavailable while looking up {name!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ProfileError(DepweaveError):
    """Raised when a build profile cannot be loaded or is incomplete."""


# ---------------------------------------------------------------------------
# Resolution failures
# ---------------------------------------------------------------------------


class ResolutionError(DepweaveError):
    """Raised when dependency resolution fails.

    Covers unsatisfiable version constraints, circular dependencies,
    missing packages and pin violations.
    """


class RecipeNotFound(ResolutionError):
    """No candidate for ``name`` across all enabled origins."""

    def __init__(self, name: str, chain: list[str] | None = None) -> None:
        self.name = name
        self.chain = list(chain or [])
        msg = f"No candidate found for {name!r} in any enabled origin"
        if self.chain:
            msg += f" (required by {' -> '.join(self.chain)})"
        super().__init__(msg)


class ResolutionConflict(ResolutionError):
    """The constraints collected on ``name`` admit no available version.

    Attributes:
        name: The package whose constraints conflict.
        constraints: Every contributing ``(requirer, constraint)`` pair.
        available: Versions that were available for ``name``.
    """

    def __init__(
        self,
        name: str,
        constraints: list[tuple[str, Any]],
        available: list[str] | None = None,
    ) -> None:
        self.name = name
        self.constraints = list(constraints)
        self.available = list(available or [])
        parts = ", ".join(f"{req} requires {c}" for req, c in self.constraints)
        msg = f"Conflicting constraints on {name!r}: {parts}"
        if self.available:
            msg += f" (available: {', '.join(self.available)})"
        super().__init__(msg)

    @property
    def requirers(self) -> list[str]:
        """Names of the packages that contributed a constraint."""
        return [req for req, _ in self.constraints]


class CycleError(ResolutionError):
    """The dependency graph contains a cycle, reported as the full path."""

    def __init__(self, path: list[str]) -> None:
        self.path = list(path)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.path)}")


class PinConflict(ResolutionError):
    """A ``--use`` pin violates a constraint collected for the package."""

    def __init__(
        self,
        name: str,
        version: Any,
        failing_constraint: Any,
        requirer: str | None = None,
    ) -> None:
        self.name = name
        self.version = version
        self.failing_constraint = failing_constraint
        self.requirer = requirer
        msg = f"Pin {name}={version} violates constraint {failing_constraint}"
        if requirer:
            msg += f" required by {requirer!r}"
        super().__init__(msg)


class ResolutionCancelled(ResolutionError):
    """Resolution was cancelled while candidate lookups were in flight."""


# ---------------------------------------------------------------------------
# Lock file failures
# ---------------------------------------------------------------------------


class LockfileError(DepweaveError):
    """Raised for lock file read, write or integrity failures."""


class InvalidLockfile(LockfileError):
    """Raised when a lock file cannot be parsed."""

    def __init__(self, path: str | None, line: int, reason: str) -> None:
        self.path = path
        self.line = line
        self.reason = reason
        where = path or "lock-file"
        super().__init__(f"{where}({line}): invalid lock-file - {reason}")


class StaleLockWarning(UserWarning):
    """The lock file was produced from a different root recipe.

    Emitted on a plain ``resolve``; the lock file is left untouched and an
    explicit ``--force`` (or mode flag) is needed to overwrite it.
    """
