"""Option declarations for hive meta and for nodes.

``META_SCHEMA`` validates the ``meta`` block and rejects unknown keys.
``NODE_SCHEMA`` covers the options hiveforge itself consumes
(``deployment.*``, ``nixpkgs.*``, ``warnings``); everything else in a node
layer is freeform configuration handed to the build system.  Unknown
``deployment.*`` options are rejected.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import Field

from hiveforge.core.schema import MergeStrategy, OptionSchema, OptionSpec
from hiveforge.models.deployment import KeySpec

UnsignedInt = Annotated[int, Field(ge=0)]


def _path_or_none(value: Path | None) -> str | None:
    return None if value is None else str(value)


META_OPTIONS: list[OptionSpec] = [
    OptionSpec(
        path="name",
        annotation=str,
        default="hive",
        strategy=MergeStrategy.UNIQUE,
        description="Name of the configuration.",
    ),
    OptionSpec(
        path="description",
        annotation=str,
        default="A hiveforge hive",
        strategy=MergeStrategy.UNIQUE,
        description="A short description for the configuration.",
    ),
    OptionSpec(
        path="nixpkgs",
        annotation=Any,
        default_factory=lambda ctx: ctx.get("default_package_set") or {},
        description=(
            "Pinned package set: a path, a constructor taking an override "
            "mapping, or a package set value."
        ),
    ),
    OptionSpec(
        path="nodeNixpkgs",
        annotation=dict[str, Any],
        default_factory=lambda ctx: {},
        strategy=MergeStrategy.MERGE,
        description="Node-specific package set overrides.",
    ),
    OptionSpec(
        path="machinesFile",
        annotation=Path | None,
        default=None,
        apply=_path_or_none,
        description="Builder machines file passed to the build system.",
    ),
]

DEPLOYMENT_OPTIONS: list[OptionSpec] = [
    OptionSpec(
        path="deployment.targetHost",
        annotation=str | None,
        default_factory=lambda ctx: ctx["name"],
        description=(
            "The target host for deployment.  Defaults to the node name; "
            "null means only local deployment is possible."
        ),
    ),
    OptionSpec(
        path="deployment.targetPort",
        annotation=UnsignedInt | None,
        default=None,
        description="The target SSH port.  Null uses the standard port.",
    ),
    OptionSpec(
        path="deployment.targetUser",
        annotation=str,
        default="root",
        description="The user to log into the remote node as.",
    ),
    OptionSpec(
        path="deployment.allowLocalDeployment",
        annotation=bool,
        default=False,
        description="Allow the configuration to be applied on the local host.",
    ),
    OptionSpec(
        path="deployment.tags",
        annotation=list[str],
        default_factory=lambda ctx: [],
        strategy=MergeStrategy.APPEND,
        description="Tags used to select groups of nodes.",
    ),
    OptionSpec(
        path="deployment.keys",
        annotation=dict[str, KeySpec],
        default_factory=lambda ctx: {},
        strategy=MergeStrategy.MERGE,
        description=(
            "Secrets deployed to the node out of band.  They never end up in "
            "persisted build output."
        ),
    ),
    OptionSpec(
        path="deployment.replaceUnknownProfiles",
        annotation=bool,
        default=True,
        description="Allow replacing a profile hiveforge has no knowledge of.",
    ),
]

PACKAGE_OPTIONS: list[OptionSpec] = [
    OptionSpec(
        path="nixpkgs.overlays",
        annotation=list[str],
        default_factory=lambda ctx: [],
        strategy=MergeStrategy.APPEND,
        description="Overlays applied to the node's package set, in order.",
    ),
    OptionSpec(
        path="nixpkgs.config",
        annotation=dict[str, Any],
        default_factory=lambda ctx: {},
        strategy=MergeStrategy.MERGE,
        description="Package set configuration.",
    ),
]

NODE_OPTIONS: list[OptionSpec] = [
    *DEPLOYMENT_OPTIONS,
    *PACKAGE_OPTIONS,
    OptionSpec(
        path="warnings",
        annotation=list[str],
        default_factory=lambda ctx: [],
        strategy=MergeStrategy.APPEND,
        description="Non-fatal messages reported after resolution.",
    ),
]

META_SCHEMA = OptionSchema(META_OPTIONS, freeform=False)
NODE_SCHEMA = OptionSchema(NODE_OPTIONS, closed_groups=["deployment"])
