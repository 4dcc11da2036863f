"""``hiveforge meta`` — show the validated hive meta."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from hiveforge.cli.loading import open_hive
from hiveforge.monitor.renderer import HiveRenderer

console = Console()


def meta_cmd(
    hive: Path = typer.Option(
        None,
        "--hive",
        "-H",
        help="Path to the hive file (default: nearest hive.py / hive.json).",
    ),
) -> None:
    """Show the hive's name, description and package set configuration."""
    evaluator = open_hive(hive)
    console.print(HiveRenderer(console=console).render_meta(evaluator.meta))
    console.print(f"[bold]Nodes:[/bold] {', '.join(evaluator.node_names) or '-'}")
