"""Web status dashboard HTTP server for paranoid-ableton.

Serves a single status page and a JSON API endpoint from a
Starlette/Uvicorn server running on its own thread and event loop.
All mutable state is read from ``OSC_Bridge.state``.
"""

import asyncio
import logging
import threading
import time
from datetime import datetime
from typing import Any, Dict

import OSC_Bridge.state as state
from OSC_Bridge.dashboard.html import DASHBOARD_HTML

logger = logging.getLogger("ParanoidAbleton")


class DashboardLogHandler(logging.Handler):
    """Captures log records into the dashboard ring buffer.

    Stores (created, levelname, message) tuples; timestamps are formatted
    only when the dashboard is viewed.
    """

    def emit(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            message = str(record.msg)
        with state.server_log_lock:
            state.server_log_buffer.append((record.created, record.levelname, message))


def summarize_args(args: dict) -> str:
    """Create a short summary of tool arguments for the dashboard log."""
    if not args:
        return ""
    parts = []
    for k, v in list(args.items())[:3]:
        sv = str(v)
        if len(sv) > 40:
            sv = sv[:37] + "..."
        parts.append(f"{k}={sv}")
    suffix = f" +{len(args) - 3} more" if len(args) > 3 else ""
    return ", ".join(parts) + suffix


def build_status_json() -> Dict[str, Any]:
    """Collect dashboard status data into a JSON-serializable dict."""
    from OSC_Bridge import __version__

    session = state.osc_session
    connection = session.status() if session is not None else {"state": "uninitialized"}

    with state.tool_call_lock:
        recent = list(state.tool_call_log)
        total = sum(state.tool_call_counts.values())
        top_tools = sorted(state.tool_call_counts.items(), key=lambda x: x[1], reverse=True)[:10]

    with state.server_log_lock:
        server_logs = [
            {"ts": datetime.fromtimestamp(ts).strftime("%H:%M:%S"), "level": lvl, "msg": msg}
            for ts, lvl, msg in state.server_log_buffer
        ]

    mcp = state.mcp_instance
    tool_count = len(mcp._tool_manager._tools) if mcp is not None and hasattr(mcp, "_tool_manager") else 0

    return {
        "version": __version__,
        "uptime_seconds": round(time.time() - state.server_start_time, 1) if state.server_start_time else 0,
        "connection": connection,
        "read_only": state.read_only,
        "pending_deletes": sorted(state.pending_deletes),
        "total_tool_calls": total,
        "top_tools": top_tools,
        "recent_calls": recent,
        "server_logs": server_logs,
        "tool_count": tool_count,
    }


def start_dashboard_server():
    """Start the dashboard HTTP server on a background thread."""
    from starlette.applications import Starlette
    from starlette.responses import HTMLResponse, JSONResponse
    from starlette.routing import Route
    import uvicorn

    async def dashboard_page(request):
        return HTMLResponse(DASHBOARD_HTML)

    async def api_status(request):
        return JSONResponse(build_status_json())

    app = Starlette(routes=[
        Route("/", dashboard_page),
        Route("/api/status", api_status),
    ])

    config = uvicorn.Config(
        app,
        host="127.0.0.1",
        port=state.DASHBOARD_PORT,
        log_level="warning",
        access_log=False,
    )
    server = uvicorn.Server(config)
    state.dashboard_server = server

    def _run():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        loop.run_until_complete(server.serve())

    threading.Thread(target=_run, daemon=True, name="dashboard-http").start()
    logger.info("Dashboard started at http://127.0.0.1:%d", state.DASHBOARD_PORT)


def stop_dashboard_server():
    """Signal the dashboard server to shut down."""
    if state.dashboard_server:
        state.dashboard_server.should_exit = True
        state.dashboard_server = None
        logger.info("Dashboard server stopped")
