"""Hive evaluator — the central entry point for evaluating a hive.

The ``HiveEvaluator`` wires together hive loading, package set resolution,
node resolution, selection builds and introspection.  It exposes the
values external tooling consumes:

- ``nodes`` / ``failures``   resolved nodes and the errors of failed ones
- ``deployment_config()``    node name -> deployment options (JSON types)
- ``toplevel()``             node name -> build artifact reference
- ``build_all()`` / ``build_selected(names)``
- ``introspect(fn)``
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any, TypeVar

from hiveforge.build.executors import BuildSystem, StoreBuildSystem
from hiveforge.config import HiveforgeSettings, settings as default_settings
from hiveforge.core import introspect as introspection
from hiveforge.core.artifact_store import ContentAddressedStore
from hiveforge.core.errors import HiveError
from hiveforge.core.hasher import canonical_json_bytes
from hiveforge.core.hive_file import read_hive_file
from hiveforge.core.hive_model import load
from hiveforge.core.node_resolver import NodeResolver
from hiveforge.core.package_sets import PackageSetResolver
from hiveforge.core.schema import OptionSchema
from hiveforge.core.selection import build_selection
from hiveforge.models.artifacts import BuildArtifactRef, ResolvedNode, SelectionResult
from hiveforge.models.hive import Hive, HiveMeta
from hiveforge.models.package_set import PackageSet

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HiveEvaluator:
    """Evaluates one hive.

    The hive is loaded (and its meta validated) at construction time; nodes
    are resolved once, on first access, and cached.

    Parameters
    ----------
    raw_hive:
        The raw hive description.
    build_system:
        Build backend.  Defaults to a ``StoreBuildSystem`` at
        ``settings.artifact_store_path``.
    settings:
        Runtime settings.  Uses the module-level singleton if not provided.
    """

    def __init__(
        self,
        raw_hive: Mapping[str, Any],
        *,
        build_system: BuildSystem | None = None,
        settings: HiveforgeSettings | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.hive: Hive = load(raw_hive, settings=self.settings)
        self.build_system = build_system or StoreBuildSystem(
            ContentAddressedStore(self.settings.artifact_store_path)
        )
        self.package_sets = PackageSetResolver(self.settings.max_redirect_depth)
        self.resolver = NodeResolver(self.build_system, self.package_sets)

        self._lock = threading.Lock()
        self._results: dict[str, ResolvedNode | HiveError] | None = None

    @classmethod
    def from_file(cls, path: Path, **kwargs: Any) -> HiveEvaluator:
        """Evaluate the hive stored in a ``.json`` or ``.py`` hive file."""
        return cls(read_hive_file(path), **kwargs)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    @property
    def meta(self) -> HiveMeta:
        return self.hive.meta

    @property
    def node_names(self) -> list[str]:
        return self.hive.node_names

    def results(self) -> dict[str, ResolvedNode | HiveError]:
        """Resolve every node (once) and return the per-node outcomes."""
        with self._lock:
            if self._results is None:
                logger.info(
                    "Evaluating hive '%s' (%d nodes, max_workers=%d)",
                    self.meta.name,
                    len(self.hive.nodes),
                    self.settings.max_workers,
                )
                self._results = self.resolver.resolve_all(
                    self.hive, max_workers=self.settings.max_workers
                )
            return dict(self._results)

    @property
    def nodes(self) -> dict[str, ResolvedNode]:
        """Successfully resolved nodes."""
        return {
            name: entry
            for name, entry in self.results().items()
            if isinstance(entry, ResolvedNode)
        }

    @property
    def failures(self) -> dict[str, HiveError]:
        """Errors of nodes that failed to resolve."""
        return {
            name: entry
            for name, entry in self.results().items()
            if not isinstance(entry, ResolvedNode)
        }

    # ------------------------------------------------------------------
    # Exported values
    # ------------------------------------------------------------------

    def deployment_config(self) -> dict[str, dict[str, Any]]:
        """Node name -> deployment options, with JSON-compatible values."""
        return {
            name: node.deployment.to_json_dict() for name, node in self.nodes.items()
        }

    def deployment_config_json(self) -> str:
        """Canonical JSON of ``deployment_config()``."""
        return canonical_json_bytes(self.deployment_config()).decode("utf-8")

    def toplevel(self) -> dict[str, BuildArtifactRef]:
        """Node name -> build artifact reference."""
        return {name: node.build_artifact for name, node in self.nodes.items()}

    def build_all(self) -> SelectionResult:
        """Selection build over every node of the hive."""
        return self.build_selected(self.node_names)

    def build_selected(self, names: Iterable[str]) -> SelectionResult:
        """Selection build over *names*; unknown names are ignored.

        The bundle (the canonical artifact mapping) is written through the
        build system's store when it has one.

        Raises
        ------
        UnresolvedArtifact
            If a selected node failed to resolve.
        """
        selection = build_selection(
            self.hive, self.results(), names, tool_name=self.settings.tool_name
        )
        store = getattr(self.build_system, "store", None)
        if store is None:
            return selection

        bundle = store.store(selection.to_json_bytes(), name=selection.bundle_name)
        return selection.model_copy(update={"bundle_address": bundle.content_address})

    def introspect(
        self, fn: Callable[[PackageSet, OptionSchema, Mapping[str, ResolvedNode]], T]
    ) -> T:
        """Call ``fn(package_set, schema, nodes)`` with read-only hive values."""
        package_set = self.package_sets.resolve(self.meta.package_set, "meta.nixpkgs")
        return introspection.introspect(fn, package_set, self.resolver.schema, self.nodes)

