"""Connection status and server-mode tool handlers."""
import json
from mcp.server.fastmcp import Context

import OSC_Bridge.state as state
from OSC_Bridge.connections.errors import ErrorKind, is_port_in_use
from OSC_Bridge.connections.session import get_session
from OSC_Bridge.constants import TIMEOUTS
from OSC_Bridge.tools._base import _tool_handler, tool_error


def register_tools(mcp):
    """Register health and server-mode tools with the MCP server."""

    @mcp.tool()
    async def ableton_status(ctx: Context) -> str:
        """Check Ableton Live connectivity and return connection status.

        Call this before starting a session to verify Ableton is reachable.
        """
        return await check_ableton_status()

    @mcp.tool()
    @_tool_handler("getting server capabilities")
    async def get_server_capabilities(ctx: Context) -> str:
        """Report server version, connection state, read-only mode and tool count."""
        from OSC_Bridge import __version__
        return json.dumps({
            "server_version": __version__,
            "connection": get_session().status(),
            "read_only": state.read_only,
            "tool_count": len(mcp._tool_manager._tools) if hasattr(mcp, "_tool_manager") else 0,
        })

    @mcp.tool()
    @_tool_handler("setting read-only mode")
    async def set_read_only(ctx: Context, enabled: bool) -> str:
        """Enable or disable read-only mode.

        While enabled, every tool that changes the Live set is blocked.

        Parameters:
        - enabled: True to block writes, False to allow them
        """
        state.read_only = bool(enabled)
        return json.dumps({"read_only": state.read_only})


async def check_ableton_status() -> str:
    """Run the liveness sentinel through the session and report the outcome.

    Skips the reconnect sequence so that a failed check reports the
    classified cause instead of a reconnect summary.
    """
    session = get_session()
    try:
        healthy = await session.check_health()
    except Exception as e:
        return _classified_failure(session, e)

    config = session.config
    if healthy:
        return json.dumps({
            "connected": True,
            "host": config.host,
            "send_port": config.send_port,
            "receive_port": config.receive_port,
        })
    return tool_error(
        f"Ableton not reachable on port {config.send_port}. "
        f"Ensure Ableton Live is running with AbletonOSC.",
        code="CONNECTION_FAILED",
    )


def _classified_failure(session, err: BaseException) -> str:
    receive_port = session.config.receive_port
    # a bind conflict happens before the client is ready, so check it first
    if is_port_in_use(err):
        return tool_error(
            f"Port {receive_port} already in use. "
            f"Close other OSC clients or change OSC_RECEIVE_PORT.",
            code="PORT_CONFLICT",
        )
    client = session.client
    if client is None or not client.is_ready:
        return tool_error(
            f"OSC client not ready on port {receive_port}: {err}",
            code="CONNECTION_FAILED",
        )
    if client.classify_error(err).kind is ErrorKind.TIMEOUT:
        return tool_error(
            f"No response from Ableton within {TIMEOUTS['HEALTH_CHECK']}ms",
            code="TIMEOUT",
        )
    return tool_error(str(err), code="INTERNAL_ERROR")
