"""``hiveforge deployment`` — print the deployment configuration as JSON."""

from __future__ import annotations

from pathlib import Path

import typer

from hiveforge.cli.loading import err_console, open_hive


def deployment_cmd(
    hive: Path = typer.Option(
        None,
        "--hive",
        "-H",
        help="Path to the hive file (default: nearest hive.py / hive.json).",
    ),
) -> None:
    """Print node name -> deployment options for every resolved node.

    Nodes that failed to resolve are reported on stderr and left out.
    """
    evaluator = open_hive(hive)
    for name, error in sorted(evaluator.failures.items()):
        err_console.print(f"[bold red]{name}:[/bold red] {error.message}")

    typer.echo(evaluator.deployment_config_json())
