"""``hiveforge build`` — selection build over some or all nodes.

Prints the bundle's artifact mapping (canonical JSON) on stdout; with
``--show`` a Rich summary is printed as well.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from hiveforge.cli.loading import err_console, open_hive
from hiveforge.core.errors import UnresolvedArtifact
from hiveforge.monitor.renderer import HiveRenderer

console = Console()


def build_cmd(
    on: str = typer.Option(
        None,
        "--on",
        "-o",
        help="Comma-separated node names to build (default: all nodes).",
    ),
    show: bool = typer.Option(
        False,
        "--show",
        "-s",
        help="Also print a summary table of the selection.",
    ),
    hive: Path = typer.Option(
        None,
        "--hive",
        "-H",
        help="Path to the hive file (default: nearest hive.py / hive.json).",
    ),
) -> None:
    """Build the selected nodes and print the bundle's artifact mapping."""
    evaluator = open_hive(hive)

    try:
        if on:
            names = [name.strip() for name in on.split(",") if name.strip()]
            selection = evaluator.build_selected(names)
        else:
            selection = evaluator.build_all()
    except UnresolvedArtifact as exc:
        err_console.print(f"[bold red]Build failed:[/bold red] {exc.message}")
        raise typer.Exit(code=1) from exc

    if show:
        HiveRenderer(console=console).print_selection(selection)
    typer.echo(selection.to_json_bytes().decode("utf-8"))
