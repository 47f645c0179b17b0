"""MCP server exposing compaction context tools."""

import asyncio
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from memento.plugin import SessionContextPlugin

mcp = FastMCP("memento")

# One plugin per project for the server's lifetime, so each gate is evaluated once.
# Entries live until the server exits.
_plugins: dict[str, SessionContextPlugin] = {}


async def _plugin_for(project_path: str) -> SessionContextPlugin:
    key = str(Path(project_path).expanduser())
    if key not in _plugins:
        _plugins[key] = await SessionContextPlugin.start(key)
    return _plugins[key]


@mcp.tool()
async def compaction_context(project_path: str, force: bool = False) -> str:
    """Get the prior-session context block for a project.

    Call this before summarizing or compacting a long session so the summary
    keeps recent work, project conventions and notes in view.

    Args:
        project_path: Absolute path to the project root
        force: Build the block even if the project has too few prior sessions
    """
    plugin = await _plugin_for(project_path)
    block = await asyncio.to_thread(plugin.build_context, force)
    if block is None:
        if not plugin.active and not force:
            return (
                f"Context injection inactive for {project_path} "
                f"({plugin.gate.session_count}/{plugin.config.min_sessions} sessions)"
            )
        return f"No context available for {project_path}"
    return block


@mcp.tool()
async def recent_sessions(project_path: str, limit: int | None = None) -> list[dict]:
    """List the most recent prior sessions for a project, newest first.

    Args:
        project_path: Absolute path to the project root
        limit: Maximum results to return (defaults to the project's searchLimit)
    """
    plugin = await _plugin_for(project_path)
    if limit is None:
        limit = plugin.config.search_limit
    ranked = await asyncio.to_thread(plugin.source.recent, plugin.project_path, limit)
    return [s.model_dump() for s in ranked]
