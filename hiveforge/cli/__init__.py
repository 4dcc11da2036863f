"""hiveforge CLI — Typer-based command-line interface.

Provides the ``hiveforge`` command with subcommands for listing resolved
nodes, exporting the deployment configuration, running selection builds
and showing hive meta.

Tables and panels use Rich; machine-readable output (JSON) is printed
plainly for scripting.
"""
