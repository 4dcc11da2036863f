"""hiveforge data models — all Pydantic v2, all frozen (immutable)."""

from hiveforge.models.artifacts import BuildArtifactRef, ResolvedNode, SelectionResult
from hiveforge.models.deployment import DeploymentOptions, KeySpec
from hiveforge.models.hive import RESERVED_NAMES, Hive, HiveMeta
from hiveforge.models.package_set import (
    ConstructorRef,
    LiteralRef,
    PackageSet,
    PackageSetRef,
    PathRef,
    coerce_package_set_ref,
)

__all__ = [
    # package sets
    "PackageSet",
    "PackageSetRef",
    "PathRef",
    "ConstructorRef",
    "LiteralRef",
    "coerce_package_set_ref",
    # deployment
    "DeploymentOptions",
    "KeySpec",
    # hive
    "RESERVED_NAMES",
    "Hive",
    "HiveMeta",
    # artifacts
    "BuildArtifactRef",
    "ResolvedNode",
    "SelectionResult",
]
