"""Build artifact, resolved node and selection models (immutable)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hiveforge.core.hasher import canonical_json_bytes
from hiveforge.models.deployment import DeploymentOptions


class BuildArtifactRef(BaseModel):
    """A reference to a node's build output.

    The content_address is the SHA-256 hex digest of the artifact bytes;
    ``path`` is where the build system placed them.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    content_address: str  # "sha256:<hex>"
    path: str
    size_bytes: int = 0


class ResolvedNode(BaseModel):
    """One node after layered resolution and building."""

    model_config = ConfigDict(frozen=True)

    name: str
    deployment: DeploymentOptions
    build_artifact: BuildArtifactRef
    config: dict[str, Any]
    config_hash: str = ""
    warnings: tuple[str, ...] = ()


class SelectionResult(BaseModel):
    """The artifact paths of a selected subset of nodes.

    ``selected_artifacts`` is keyed by node name, never by position, so the
    same set of names always yields the same content.
    """

    model_config = ConfigDict(frozen=True)

    hive_name: str
    bundle_name: str
    selected_artifacts: dict[str, str] = Field(default_factory=dict)
    bundle_address: str = ""

    def to_json_bytes(self) -> bytes:
        """Canonical serialization of the artifact mapping."""
        return canonical_json_bytes(self.selected_artifacts)
