"""Read-only access to resolved hive structures for caller-supplied functions."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import TypeVar

from hiveforge.core.schema import OptionSchema
from hiveforge.models.artifacts import ResolvedNode
from hiveforge.models.package_set import PackageSet

T = TypeVar("T")


def introspect(
    fn: Callable[[PackageSet, OptionSchema, Mapping[str, ResolvedNode]], T],
    package_set: PackageSet,
    schema: OptionSchema,
    nodes: Mapping[str, ResolvedNode],
) -> T:
    """Call ``fn(package_set, schema, nodes)`` once and return its result.

    ``fn`` receives deep copies of the package set and of every resolved
    node, and ``nodes`` is a read-only view, so nothing it does reaches the
    cached hive state.
    """
    view = MappingProxyType(
        {name: node.model_copy(deep=True) for name, node in nodes.items()}
    )
    return fn(package_set.model_copy(deep=True), schema, view)
