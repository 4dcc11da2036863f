"""Main Typer application — imports and registers all CLI commands.

Entry point: ``hiveforge`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer

from hiveforge.cli.commands.build import build_cmd
from hiveforge.cli.commands.deployment import deployment_cmd
from hiveforge.cli.commands.meta import meta_cmd
from hiveforge.cli.commands.nodes import nodes_cmd
from hiveforge.config import settings

app = typer.Typer(
    name="hiveforge",
    help="hiveforge: evaluate hive descriptions into per-node deployment configs and builds.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="nodes", help="Resolve and list every node of the hive.")(nodes_cmd)
app.command(name="deployment", help="Print the deployment configuration as JSON.")(
    deployment_cmd
)
app.command(name="build", help="Build some or all nodes and print the bundle.")(build_cmd)
app.command(name="meta", help="Show the hive meta.")(meta_cmd)


def effective_log_level(level: str | None = None) -> str:
    """An explicit *level*, else DEBUG when ``settings.debug``, else ``settings.log_level``."""
    if level:
        return level.upper()
    if settings.debug:
        return "DEBUG"
    return settings.log_level.upper()


def configure_logging(level: str | None = None) -> None:
    """Route library logging to stderr."""
    logging.basicConfig(
        level=effective_log_level(level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    """CLI entry point."""
    configure_logging()
    app()


if __name__ == "__main__":
    main()
