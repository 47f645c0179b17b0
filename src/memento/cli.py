"""memento CLI - inspect and run session context injection."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from memento import __version__
from memento.config import config_path
from memento.context.models import LogEntry
from memento.plugin import CompactionOutput, SessionContextPlugin

app = typer.Typer(
    name="memento",
    help="Inject prior session context into AI agent compactions.",
    no_args_is_help=True,
)
mcp_app = typer.Typer(help="MCP server management.")

app.add_typer(mcp_app, name="mcp")

console = Console()
logger = logging.getLogger(__name__)

PathOption = Annotated[Path, typer.Option("--path", "-p", help="Project path")]


def version_callback(value: bool) -> None:
    if value:
        console.print(f"memento {__version__}")
        raise typer.Exit()


def _cli_sink(entry: LogEntry) -> None:
    logger.debug("%s: %s %s", entry.level, entry.message, entry.extra)


def _start(project_path: Path) -> SessionContextPlugin:
    return asyncio.run(SessionContextPlugin.start(project_path.resolve(), sink=_cli_sink))


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-V", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """memento - carry prior session context across compactions."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@app.command("status")
def status(project_path: PathOption = Path(".")) -> None:
    """Show configuration and activation state for a project."""
    plugin = _start(project_path)
    config = plugin.config

    table = Table(title=f"memento: {plugin.project_path}", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    cfg_file = config_path(plugin.project_dir)
    table.add_row("Config file", str(cfg_file) if cfg_file.exists() else "[dim]defaults[/dim]")
    table.add_row("Backend", config.backend)
    table.add_row("Location", str(plugin.source.location))
    table.add_row("Prior sessions", str(plugin.gate.session_count))
    table.add_row("Min sessions", str(config.min_sessions))
    table.add_row("Search limit", str(config.search_limit))
    table.add_row(
        "Injection",
        "[green]active[/green]" if plugin.active else "[yellow]inactive[/yellow]",
    )
    console.print(table)


@app.command("sessions")
def sessions(
    project_path: PathOption = Path("."),
    limit: Annotated[
        Optional[int], typer.Option("--limit", "-n", help="Max sessions (default: searchLimit)")
    ] = None,
) -> None:
    """List the most recent prior sessions for a project."""
    plugin = _start(project_path)
    if limit is None:
        limit = plugin.config.search_limit

    ranked = plugin.source.recent(plugin.project_path, limit)
    if not ranked:
        console.print(f"[dim]No prior sessions found in {plugin.source.location}[/dim]")
        return

    table = Table(title="Recent Sessions")
    table.add_column("ID", style="green")
    table.add_column("Date", style="cyan")
    table.add_column("Summary")
    for s in ranked:
        table.add_row(s.id, s.date, s.summary or f"[dim]{plugin.source.placeholder}[/dim]")
    console.print(table)


@app.command("context")
def context(
    project_path: PathOption = Path("."),
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Build the block even when inactive")
    ] = False,
) -> None:
    """Print the context block the compaction hook would inject."""
    plugin = _start(project_path)
    if not (force or plugin.active):
        console.print(
            f"[yellow]Inactive:[/yellow] {plugin.gate.session_count} prior sessions, "
            f"need {plugin.config.min_sessions}. Use --force to build anyway."
        )
        raise typer.Exit(1)

    block = plugin.build_context(force=force)
    if block is None:
        console.print("[dim]Nothing to inject.[/dim]")
        return
    typer.echo(block)


@app.command("hook")
def hook() -> None:
    """Pre-compaction hook: read the host's JSON payload on stdin, print context."""
    try:
        payload = json.loads(sys.stdin.read() or "{}")
    except json.JSONDecodeError as exc:
        logger.warning("Ignoring malformed hook input: %s", exc)
        return
    if not isinstance(payload, dict):
        return

    cwd = payload.get("cwd") or payload.get("directory") or "."
    if not isinstance(cwd, str):
        logger.debug("Ignoring hook input with non-string cwd: %r", cwd)
        return
    plugin = asyncio.run(SessionContextPlugin.start(Path(cwd), sink=_cli_sink))

    output = CompactionOutput()
    asyncio.run(plugin.on_compacting(payload, output))
    for block in output.context:
        typer.echo(block)


# ── MCP commands ─────────────────────────────────────────────────


@mcp_app.command("serve")
def mcp_serve() -> None:
    """Start the MCP server (stdio transport)."""
    from memento.mcp.server import mcp

    mcp.run()
