"""Hive file lookup shared by the CLI commands."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from hiveforge.core.errors import HiveError
from hiveforge.core.evaluator import HiveEvaluator
from hiveforge.core.hive_file import DEFAULT_HIVE_FILES, find_hive_file

err_console = Console(stderr=True)


def open_hive(hive_path: Path | None) -> HiveEvaluator:
    """Evaluate the hive at *hive_path*, or the nearest hive file upwards.

    Exits with code 1 (after printing the reason) when no hive file is
    found or the hive fails to load.
    """
    path = hive_path or find_hive_file()
    if path is None:
        err_console.print(
            "[bold red]No hive file found[/bold red] "
            f"(looked for {', '.join(DEFAULT_HIVE_FILES)} in this and parent directories)"
        )
        raise typer.Exit(code=1)

    try:
        return HiveEvaluator.from_file(path)
    except HiveError as exc:
        err_console.print(f"[bold red]Hive error:[/bold red] {exc.message}")
        raise typer.Exit(code=1) from exc
