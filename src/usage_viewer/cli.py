# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Command line entry point: `cursor-usage`.
"""

import asyncio
import json
import logging
import webbrowser
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from cursor_usage.config import UsageSettings
from cursor_usage.usage.monitor import UsageMonitor

from .viewer import UsageViewer, build_summary, fetch_snapshot

app = typer.Typer(help="Cursor usage and spend monitor.")
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_ERROR = 1


def setup_logging(verbose: bool = False) -> None:
    """Route library logs through rich (WARNING, or DEBUG with --verbose)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging"
    ),
    env_file: Optional[Path] = typer.Option(
        None, "--env-file", help="Load settings from this .env file"
    ),
):
    """Cursor usage monitor. Runs the interactive viewer by default."""
    setup_logging(verbose)
    ctx.obj = UsageSettings.from_env(env_file)
    if ctx.invoked_subcommand is None:
        watch(ctx)


@app.command()
def watch(ctx: typer.Context):
    """Interactive viewer with periodic refresh."""
    viewer = UsageViewer(UsageMonitor(ctx.obj), console=console)
    asyncio.run(viewer.run())


@app.command()
def show(
    ctx: typer.Context,
    as_json: bool = typer.Option(
        False, "--json", help="Print the usage data as JSON"
    ),
):
    """Fetch usage once and print it."""
    snapshot = asyncio.run(fetch_snapshot(UsageMonitor(ctx.obj)))

    if snapshot.data is None:
        console.print(f"[red]Error:[/] {snapshot.error or 'no usage data'}")
        raise typer.Exit(EXIT_CODE_ERROR)

    if as_json:
        typer.echo(json.dumps(snapshot.data.to_dict(), indent=2))
    else:
        console.print(build_summary(snapshot))


@app.command()
def dashboard(ctx: typer.Context):
    """Open the Cursor usage dashboard in the default browser."""
    settings: UsageSettings = ctx.obj
    webbrowser.open(settings.dashboard_url)
    console.print(f"Opened {settings.dashboard_url}")


if __name__ == "__main__":
    app()
