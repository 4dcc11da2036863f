"""Exception hierarchy for hiveforge.

Hive-wide structural errors (``ConflictingMetaKeys``, ``MetaValidationFailed``,
``InvalidNodeDefinition``) abort an evaluation before any node is attempted.
Node-level errors (``ValidationFailed``, ``BuildFailed``, package set errors
raised while resolving one node) are isolated to that node.
"""

from __future__ import annotations


class HiveError(Exception):
    """Base exception for all hiveforge errors.

    Attributes:
        message: Human-readable error message
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(HiveError):
    """Configuration-related errors (hive input, meta, node layers)."""


class ConflictingMetaKeys(ConfigError):
    """Both ``meta`` and its legacy spelling ``network`` are present."""

    def __init__(self) -> None:
        super().__init__(
            "Only one of `network` and `meta` may be specified. "
            "`meta` should be used as `network` is kept for compatibility."
        )


class MetaValidationFailed(ConfigError):
    """The hive ``meta`` block failed option validation."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = list(violations)
        super().__init__(
            "Invalid hive meta:\n" + "\n".join(f"  - {v}" for v in self.violations)
        )


class InvalidNodeDefinition(ConfigError):
    """A top-level node entry is not a configuration layer."""


class InvalidPackageSetReference(ConfigError):
    """A package set field is neither a path, a constructor nor a literal."""

    def __init__(self, context_label: str, detail: str = "") -> None:
        self.context_label = context_label
        message = (
            f"{context_label} must be one of:\n"
            "  - A path to a package set (pathlib.Path or {\"path\": ...})\n"
            "  - A package set constructor (callable taking an override mapping)\n"
            "  - A package set value (mapping or PackageSet)"
        )
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)


class PackageSetRedirectionError(ConfigError):
    """A chain of package set paths did not terminate within the depth bound."""

    def __init__(self, context_label: str, chain: list[str]) -> None:
        self.context_label = context_label
        self.chain = list(chain)
        super().__init__(
            f"{context_label}: package set path redirection exceeded "
            f"{len(self.chain) - 1} hops: {' -> '.join(self.chain)}"
        )


class ValidationFailed(ConfigError):
    """One or more option or key violations for a single node."""

    def __init__(self, node: str, violations: list[str]) -> None:
        self.node = node
        self.violations = list(violations)
        super().__init__(
            f"Node '{node}' failed validation:\n"
            + "\n".join(f"  - {v}" for v in self.violations)
        )


class BuildFailed(HiveError):
    """The build system raised while building one node."""

    def __init__(self, node: str, detail: str) -> None:
        self.node = node
        super().__init__(f"Node '{node}' failed to build: {detail}")


class UnresolvedArtifact(HiveError):
    """A selection references a node whose build did not complete."""

    def __init__(self, node: str, cause: BaseException | None = None) -> None:
        self.node = node
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Node '{node}' has no build artifact{detail}")


class ArtifactIntegrityError(HiveError):
    """Raised when a stored artifact's hash does not match its address."""
