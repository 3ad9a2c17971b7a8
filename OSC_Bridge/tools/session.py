"""Whole-session overview tool handlers."""
import json
from mcp.server.fastmcp import Context

from OSC_Bridge.connections.session import get_session
from OSC_Bridge.tools._base import _tool_handler
from OSC_Bridge.tools._queries import build_session_snapshot, build_session_stats


def register_tools(mcp):
    """Register session overview tools with the MCP server."""

    @mcp.tool()
    @_tool_handler("building session snapshot")
    async def session_snapshot(ctx: Context) -> str:
        """Get a complete session snapshot.

        Includes transport state and every track with its clips, devices,
        routing and grouping. Device parameters, note data, return tracks
        and the master track are not included.
        """
        return json.dumps(await build_session_snapshot(get_session()))

    @mcp.tool()
    @_tool_handler("building session stats")
    async def session_stats(ctx: Context) -> str:
        """Get aggregate project statistics.

        Track counts by type (midi/audio/group), total clip count, device
        summary, tempo and time signature. Lighter than session_snapshot.
        """
        return json.dumps(await build_session_stats(get_session()))
