"""Hive models — meta, the shared defaults layer and node layers."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hiveforge.models.package_set import LiteralRef, PackageSet, PackageSetRef

# Top-level keys that never name a node.
RESERVED_NAMES: frozenset[str] = frozenset({"defaults", "network", "meta"})


class HiveMeta(BaseModel):
    """Hive-wide metadata, validated from the ``meta`` (or ``network``) block."""

    model_config = ConfigDict(frozen=True)

    name: str = "hive"
    description: str = "A hiveforge hive"
    package_set: PackageSetRef = Field(
        default_factory=lambda: LiteralRef(package_set=PackageSet())
    )
    node_package_sets: dict[str, PackageSetRef] = Field(default_factory=dict)
    machines_file: str | None = None


class Hive(BaseModel):
    """A whole fleet: meta, the ``defaults`` layer and one layer per node.

    Layers are mappings, or callables returning a mapping when called with
    ``name`` and ``package_set`` keyword arguments.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    meta: HiveMeta = Field(default_factory=HiveMeta)
    defaults: Any = Field(default_factory=dict)
    nodes: dict[str, Any] = Field(default_factory=dict)

    @property
    def node_names(self) -> list[str]:
        """Node names in sorted order."""
        return sorted(self.nodes)
