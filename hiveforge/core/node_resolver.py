"""Node resolution — layered merge, key validation and build for one node.

Layer order, lowest precedence first:

1. key assertions (contribute no values, checked on the merged result)
2. the node's package set (overlays first, config as option default)
3. deployment option defaults (``targetHost`` = node name, ...)
4. the hive-wide ``defaults`` layer
5. the node's own layer

Nodes never observe each other, so ``resolve_all`` runs one task per node
on a bounded thread pool.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from hiveforge.build.executors import BuildSystem
from hiveforge.config import settings
from hiveforge.core.errors import BuildFailed, HiveError, ValidationFailed
from hiveforge.core.hasher import compute_config_hash, to_jsonable
from hiveforge.core.keys import validate_keys
from hiveforge.core.options import NODE_SCHEMA
from hiveforge.core.package_sets import (
    PackageSetResolver,
    ignored_config_warning,
    package_layer,
)
from hiveforge.core.schema import ConfigLayer, OptionSchema
from hiveforge.models.artifacts import ResolvedNode
from hiveforge.models.deployment import DeploymentOptions
from hiveforge.models.hive import Hive
from hiveforge.models.package_set import PackageSet

logger = logging.getLogger(__name__)


class NodeResolver:
    """Resolves node layers into ``ResolvedNode``s.

    Parameters
    ----------
    build_system:
        The capability turning a merged configuration into a build artifact.
    package_sets:
        Shared resolver; one instance per hive so references are resolved
        at most once.
    schema:
        Node option schema.  Defaults to ``NODE_SCHEMA``.
    """

    def __init__(
        self,
        build_system: BuildSystem,
        package_sets: PackageSetResolver | None = None,
        schema: OptionSchema | None = None,
    ) -> None:
        self.build_system = build_system
        self.package_sets = package_sets or PackageSetResolver()
        self.schema = schema or NODE_SCHEMA

    def resolve_node(self, name: str, node_layer: Any, hive: Hive) -> ResolvedNode:
        """Resolve one node and build it.

        Raises
        ------
        ValidationFailed
            With every option and key violation of the node, or if a layer
            function raises.  The build system is not invoked.
        BuildFailed
            If the build system raises.
        InvalidPackageSetReference, PackageSetRedirectionError
            If the node's package set cannot be resolved.
        """
        package_set = self.package_sets.for_node(hive, name)

        layers = [
            package_layer(package_set),
            _call_layer("defaults", hive.defaults, name, package_set),
            _call_layer(name, node_layer, name, package_set),
        ]
        result = self.schema.merge_layers(layers, context={"name": name}, prefix=name)

        violations = list(result.violations)
        keys = result.value["deployment"]["keys"]
        if keys is not None:
            violations.extend(validate_keys(name, keys))
        if violations:
            raise ValidationFailed(name, violations)

        config = result.value
        warnings = list(config.get("warnings", []))
        ignored = ignored_config_warning(name, package_set, config["nixpkgs"]["config"])
        if ignored is not None:
            warnings.append(ignored)
        for warning in warnings:
            if warning.startswith(f"{name}."):
                logger.warning("%s", warning)
            else:
                logger.warning("%s: %s", name, warning)

        deployment = DeploymentOptions.model_validate(config["deployment"])
        try:
            artifact = self.build_system.build(config)
        except HiveError:
            raise
        except Exception as exc:
            raise BuildFailed(name, f"{type(exc).__name__}: {exc}") from exc

        logger.info("Resolved node %s -> %s", name, artifact.content_address)
        return ResolvedNode(
            name=name,
            deployment=deployment,
            build_artifact=artifact,
            config=config,
            config_hash=compute_config_hash(name, to_jsonable(config)),
            warnings=tuple(warnings),
        )

    def resolve_all(
        self,
        hive: Hive,
        names: Iterable[str] | None = None,
        *,
        max_workers: int | None = None,
    ) -> dict[str, ResolvedNode | HiveError]:
        """Resolve many nodes in parallel.

        Returns a mapping of node name to its ``ResolvedNode`` or to the
        ``HiveError`` that stopped it, so one node's failure never hides the
        others.
        """
        selected = sorted(hive.nodes if names is None else set(names) & set(hive.nodes))
        workers = max(1, min(max_workers or settings.max_workers, len(selected) or 1))

        results: dict[str, ResolvedNode | HiveError] = {}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="hiveforge") as pool:
            futures = {
                name: pool.submit(self.resolve_node, name, hive.nodes[name], hive)
                for name in selected
            }
            for name, future in futures.items():
                try:
                    results[name] = future.result()
                except HiveError as exc:
                    logger.error("Node %s failed: %s", name, exc.message)
                    results[name] = exc
        return results


def _call_layer(
    label: str, layer: Any, name: str, package_set: PackageSet
) -> ConfigLayer:
    if callable(layer):
        try:
            produced = layer(name=name, package_set=package_set)
        except Exception as exc:
            raise ValidationFailed(
                name, [f"{label}: layer function raised {type(exc).__name__}: {exc}"]
            ) from exc
        if not isinstance(produced, Mapping):
            raise ValidationFailed(
                name,
                [f"{label}: layer function returned {type(produced).__name__}, not a mapping"],
            )
        layer = produced
    return ConfigLayer(name=label, values=dict(layer))

