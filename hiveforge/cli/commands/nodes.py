"""``hiveforge nodes`` — resolve every node and show the outcome.

Failed nodes are listed next to the resolved ones; the command exits
non-zero when any node failed.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from hiveforge.cli.loading import open_hive
from hiveforge.monitor.renderer import HiveRenderer

console = Console()


def nodes_cmd(
    hive: Path = typer.Option(
        None,
        "--hive",
        "-H",
        help="Path to the hive file (default: nearest hive.py / hive.json).",
    ),
) -> None:
    """Show every node of the hive with its deployment target and artifact."""
    evaluator = open_hive(hive)
    results = evaluator.results()

    HiveRenderer(console=console).print_nodes(evaluator.meta, results)
    if evaluator.failures:
        raise typer.Exit(code=1)
