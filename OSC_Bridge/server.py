"""paranoid-ableton MCP server: main entry point.

Wires the modules together.
Tool handlers live in OSC_Bridge/tools/*.py
The OSC client and connection gate live in OSC_Bridge/connections/*.py
Dashboard lives in OSC_Bridge/dashboard/*.py
All mutable runtime state lives in OSC_Bridge/state.py
"""

# ---------------------------------------------------------------------------
# Standard library
# ---------------------------------------------------------------------------
import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict

# ---------------------------------------------------------------------------
# MCP framework
# ---------------------------------------------------------------------------
from mcp.server.fastmcp import FastMCP

# ---------------------------------------------------------------------------
# Internal modules
# ---------------------------------------------------------------------------
import OSC_Bridge.state as state
from OSC_Bridge.connections.session import get_session
from OSC_Bridge.dashboard.server import (
    start_dashboard_server,
    stop_dashboard_server,
    DashboardLogHandler,
    summarize_args,
)
from OSC_Bridge.tools import register_all_tools

# ---------------------------------------------------------------------------
# Logging (stdout carries the MCP stdio transport, so log to stderr)
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=getattr(logging, state.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("ParanoidAbleton")


# ===================================================================
# Server lifespan: startup / shutdown
# ===================================================================

@asynccontextmanager
async def server_lifespan(server: FastMCP) -> AsyncIterator[Dict[str, Any]]:
    """Manage server startup and shutdown lifecycle."""
    try:
        logger.info("paranoid-ableton server starting up")
        state.server_start_time = time.time()

        if state.DASHBOARD_ENABLED:
            try:
                start_dashboard_server()
            except Exception as e:
                logger.warning("Dashboard failed to start: %s", e)

        session = get_session()
        try:
            await session.ensure_connected()
            logger.info("Connected to Ableton on startup")
        except Exception as e:
            logger.warning("Could not connect to Ableton on startup: %s", e)
            logger.warning("Make sure Ableton Live is running with AbletonOSC enabled")

        yield {}

    finally:
        stop_dashboard_server()

        if state.osc_session is not None:
            logger.info("Closing OSC session on shutdown")
            await state.osc_session.close()
            state.osc_session = None

        logger.info("paranoid-ableton server shut down")


# ===================================================================
# Create the MCP server instance
# ===================================================================

mcp = FastMCP("paranoid-ableton", lifespan=server_lifespan)
state.mcp_instance = mcp

register_all_tools(mcp)


# ===================================================================
# Tool call instrumentation for the dashboard
# ===================================================================

_original_call_tool = mcp.call_tool


async def _instrumented_call_tool(name: str, arguments: dict) -> Any:
    """Wrap every tool call to record metrics for the dashboard."""
    start = time.time()
    error_msg = None
    try:
        return await _original_call_tool(name, arguments)
    except Exception as e:
        error_msg = str(e)
        raise
    finally:
        entry = {
            "tool": name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "duration_ms": round((time.time() - start) * 1000, 1),
            "error": error_msg,
            "args_summary": summarize_args(arguments),
        }
        with state.tool_call_lock:
            state.tool_call_log.append(entry)
            state.tool_call_counts[name] = state.tool_call_counts.get(name, 0) + 1


mcp.call_tool = _instrumented_call_tool

logging.getLogger().addHandler(DashboardLogHandler())


def main():
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
