"""Pluggable build-system backends.

Defines the ``BuildSystem`` Protocol that turns a resolved node
configuration into a ``BuildArtifactRef``, along with the default
content-addressed implementation.

The ``deployment`` section of a configuration (which holds key material)
is never part of a build artifact.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from hiveforge.config import settings
from hiveforge.core.artifact_store import ContentAddressedStore
from hiveforge.core.hasher import canonical_json_bytes, to_jsonable
from hiveforge.models.artifacts import BuildArtifactRef

# Configuration sections that are deployment metadata, not system content.
EXCLUDED_SECTIONS: frozenset[str] = frozenset({"deployment"})


@runtime_checkable
class BuildSystem(Protocol):
    """Protocol for build backends.

    Any object with a ``build(config) -> BuildArtifactRef`` method satisfies
    this protocol.  Implementations are expected to be deterministic: equal
    configurations produce equal artifact references.
    """

    def build(self, config: Mapping[str, Any]) -> BuildArtifactRef:
        """Build a node configuration and return a reference to the output."""
        ...


def system_payload(config: Mapping[str, Any]) -> dict[str, Any]:
    """The part of a configuration that ends up in a build artifact."""
    return {
        key: value
        for key, value in to_jsonable(config).items()
        if key not in EXCLUDED_SECTIONS
    }


class StoreBuildSystem:
    """Writes the canonical JSON of each configuration to a content-addressed store.

    Parameters
    ----------
    store:
        Target store.  Defaults to one at ``settings.artifact_store_path``.
    artifact_name:
        Name given to every artifact (part of the stored file name).
    """

    def __init__(
        self,
        store: ContentAddressedStore | None = None,
        artifact_name: str = "system",
    ) -> None:
        self.store = store or ContentAddressedStore(Path(settings.artifact_store_path))
        self.artifact_name = artifact_name

    def build(self, config: Mapping[str, Any]) -> BuildArtifactRef:
        """Persist the system payload of *config*."""
        data = canonical_json_bytes(system_payload(config))
        return self.store.store(data, name=self.artifact_name)
