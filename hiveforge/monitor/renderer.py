"""Rich terminal renderer for evaluated hives.

Color scheme
------------
- green   : node resolved and built
- red     : node failed (the error message is shown)
- yellow  : resolution warnings
"""

from __future__ import annotations

from collections.abc import Mapping

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from hiveforge.core.errors import HiveError
from hiveforge.models.artifacts import ResolvedNode, SelectionResult
from hiveforge.models.hive import HiveMeta


class HiveRenderer:
    """Renders hive evaluation results as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def render_nodes(
        self,
        meta: HiveMeta,
        results: Mapping[str, ResolvedNode | HiveError],
    ) -> Panel:
        """Render every node outcome as a Panel holding a Table."""
        table = Table(
            show_header=True,
            header_style="bold cyan",
            expand=True,
            pad_edge=True,
        )
        table.add_column("Node", min_width=12)
        table.add_column("State", justify="center", min_width=8)
        table.add_column("Target", min_width=16)
        table.add_column("Tags")
        table.add_column("Artifact / Error", min_width=24)

        failed = 0
        warnings: list[str] = []
        for name in sorted(results):
            entry = results[name]
            if isinstance(entry, ResolvedNode):
                deployment = entry.deployment
                target = deployment.target_host or "[dim]local[/dim]"
                if deployment.target_port is not None:
                    target = f"{target}:{deployment.target_port}"
                table.add_row(
                    f"[bold green]{name}[/bold green]",
                    "[green]OK[/green]",
                    f"{deployment.target_user}@{target}",
                    ", ".join(deployment.tags) or "[dim]-[/dim]",
                    f"[dim]{entry.build_artifact.content_address[:19]}...[/dim]",
                )
                warnings.extend(f"{name}: {w}" for w in entry.warnings)
            else:
                failed += 1
                table.add_row(
                    f"[bold red]{name}[/bold red]",
                    "[bold red]FAILED[/bold red]",
                    "[dim]-[/dim]",
                    "[dim]-[/dim]",
                    f"[red]{entry.message}[/red]",
                )

        summary = (
            f"[bold]Nodes:[/bold] {len(results)}  |  "
            f"[bold]Resolved:[/bold] {len(results) - failed}  |  "
            f"[bold]Failed:[/bold] "
            + (f"[bold red]{failed}[/bold red]" if failed else "0")
        )
        parts: list[Table | Text] = [table, Text(""), Text.from_markup(summary)]
        for warning in warnings:
            parts.append(Text(f"warning: {warning}", style="yellow"))

        return Panel(
            Group(*parts),
            title=f"[bold]Hive {meta.name}[/bold]",
            subtitle=meta.description,
            border_style="red" if failed else "blue",
            padding=(1, 2),
        )

    def print_nodes(
        self,
        meta: HiveMeta,
        results: Mapping[str, ResolvedNode | HiveError],
    ) -> None:
        self.console.print(self.render_nodes(meta, results))

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def render_selection(self, selection: SelectionResult) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Node", style="cyan")
        table.add_column("Artifact path")
        for name, path in selection.selected_artifacts.items():
            table.add_row(name, path)

        lines = [table]
        if selection.bundle_address:
            lines.append(Text(""))
            lines.append(
                Text.from_markup(f"[bold]Bundle:[/bold] {selection.bundle_address}")
            )
        return Panel(
            Group(*lines),
            title=f"[bold]{selection.bundle_name}[/bold]",
            border_style="green",
            padding=(1, 2),
        )

    def print_selection(self, selection: SelectionResult) -> None:
        self.console.print(self.render_selection(selection))

    # ------------------------------------------------------------------
    # Meta
    # ------------------------------------------------------------------

    def render_meta(self, meta: HiveMeta) -> Panel:
        node_sets = ", ".join(sorted(meta.node_package_sets)) or "[dim]none[/dim]"
        lines = [
            f"[bold]Name:[/bold]              {meta.name}",
            f"[bold]Description:[/bold]       {meta.description}",
            f"[bold]Package set:[/bold]       {meta.package_set.kind}",
            f"[bold]Node package sets:[/bold] {node_sets}",
            f"[bold]Machines file:[/bold]     {meta.machines_file or '[dim]none[/dim]'}",
        ]
        return Panel(
            "\n".join(lines),
            title="[bold]Hive meta[/bold]",
            border_style="blue",
            padding=(1, 2),
        )
