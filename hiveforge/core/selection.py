"""Selection builds — package the artifacts of a subset of nodes.

The artifact mapping is keyed by node name and serialized with sorted
keys, so the order in which names are requested never changes the output.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from hiveforge.config import settings
from hiveforge.core.errors import HiveError, UnresolvedArtifact
from hiveforge.models.artifacts import ResolvedNode, SelectionResult
from hiveforge.models.hive import Hive

logger = logging.getLogger(__name__)


def bundle_name(hive: Hive, tool_name: str | None = None) -> str:
    """Name of a hive's selection bundle, ``<tool>-<hive name>``."""
    return f"{tool_name or settings.tool_name}-{hive.meta.name}"


def build_selection(
    hive: Hive,
    resolved_nodes: Mapping[str, ResolvedNode | HiveError],
    names: Iterable[str],
    *,
    tool_name: str | None = None,
) -> SelectionResult:
    """Collect the artifact paths of the named nodes.

    Parameters
    ----------
    hive:
        The hive the nodes belong to (names the bundle).
    resolved_nodes:
        Node name to ``ResolvedNode``, or to the error that stopped it.
    names:
        Requested node names.  Names not in *resolved_nodes* are ignored.
    tool_name:
        Bundle name prefix.  Defaults to ``settings.tool_name``.

    Raises
    ------
    UnresolvedArtifact
        If a selected node failed to resolve or build.
    """
    wanted = set(names)
    selected: dict[str, str] = {}
    for name in sorted(wanted & set(resolved_nodes)):
        entry = resolved_nodes[name]
        if not isinstance(entry, ResolvedNode):
            raise UnresolvedArtifact(name, entry)
        selected[name] = entry.build_artifact.path

    ignored = wanted - set(resolved_nodes)
    if ignored:
        logger.debug("Selection ignores unknown nodes: %s", ", ".join(sorted(ignored)))

    logger.info("Selected %d of %d nodes", len(selected), len(resolved_nodes))
    return SelectionResult(
        hive_name=hive.meta.name,
        bundle_name=bundle_name(hive, tool_name),
        selected_artifacts=selected,
    )
