"""Hive loading — split raw input into meta, defaults and node layers.

``load`` is a pure transform: it validates the meta block and classifies
package set references, but never loads a package set or resolves a node.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from hiveforge.config import HiveforgeSettings, settings as default_settings
from hiveforge.core.errors import (
    ConflictingMetaKeys,
    InvalidNodeDefinition,
    MetaValidationFailed,
)
from hiveforge.core.options import META_SCHEMA
from hiveforge.core.schema import ConfigLayer
from hiveforge.models.hive import RESERVED_NAMES, Hive, HiveMeta
from hiveforge.models.package_set import coerce_package_set_ref

logger = logging.getLogger(__name__)


def load(
    raw_input: Mapping[str, Any], *, settings: HiveforgeSettings | None = None
) -> Hive:
    """Build a ``Hive`` from a raw hive description.

    Parameters
    ----------
    raw_input:
        ``{meta|network?: {...}, defaults?: layer, <node>: layer, ...}``
    settings:
        Supplies ``default_package_set`` for a meta block without
        ``nixpkgs``.  Uses the module-level singleton if not provided.

    Raises
    ------
    ConflictingMetaKeys
        If both ``meta`` and ``network`` are present (checked first).
    MetaValidationFailed
        If the meta block violates its option schema.
    InvalidPackageSetReference
        If a meta package set field has none of the accepted shapes.
    InvalidNodeDefinition
        If the input is not a mapping or a node entry is not a layer.
    """
    if not isinstance(raw_input, Mapping):
        raise InvalidNodeDefinition(
            f"A hive must be a mapping, got {type(raw_input).__name__}"
        )
    if "meta" in raw_input and "network" in raw_input:
        raise ConflictingMetaKeys()

    settings = settings or default_settings
    meta = _load_meta(
        raw_input.get("meta", raw_input.get("network", {})), settings.default_package_set
    )

    defaults = raw_input.get("defaults", {})
    _check_layer("defaults", defaults)

    nodes: dict[str, Any] = {}
    for name, layer in raw_input.items():
        if name in RESERVED_NAMES:
            continue
        _check_layer(str(name), layer)
        nodes[str(name)] = layer

    hive = Hive(meta=meta, defaults=defaults, nodes=nodes)
    logger.info("Loaded hive '%s' with %d nodes", meta.name, len(nodes))
    return hive


def _load_meta(raw_meta: Any, default_package_set: Path | None) -> HiveMeta:
    if not isinstance(raw_meta, Mapping):
        raise MetaValidationFailed(
            [f"meta: expected a mapping, got {type(raw_meta).__name__}"]
        )

    result = META_SCHEMA.merge_layers(
        [ConfigLayer(name="meta", values=dict(raw_meta))],
        context={"default_package_set": default_package_set},
        prefix="meta",
    )
    if not result.ok:
        raise MetaValidationFailed(result.violations)

    value = result.value
    return HiveMeta(
        name=value["name"],
        description=value["description"],
        package_set=coerce_package_set_ref(value["nixpkgs"], "meta.nixpkgs"),
        node_package_sets={
            node: coerce_package_set_ref(ref, f"meta.nodeNixpkgs.{node}")
            for node, ref in value["nodeNixpkgs"].items()
        },
        machines_file=value["machinesFile"],
    )


def _check_layer(name: str, layer: Any) -> None:
    if isinstance(layer, Mapping) or callable(layer):
        return
    raise InvalidNodeDefinition(
        f"{name}: a node must be a mapping or a callable returning one, "
        f"got {type(layer).__name__}"
    )
