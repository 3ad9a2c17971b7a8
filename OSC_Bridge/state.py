"""Centralized global mutable state for the paranoid-ableton MCP server.

All runtime state lives here so every module can reach it through a single
``import OSC_Bridge.state as state``.

Variable names have **no** underscore prefix -- they are accessed as e.g.
``state.osc_session``, ``state.read_only``, etc.
"""

import os
import threading
from collections import deque
from typing import Any, Dict, Optional

# ---------------------------------------------------------------------------
# Connection state
# ---------------------------------------------------------------------------
osc_session: Optional[Any] = None  # ConnectionSession | None

# ---------------------------------------------------------------------------
# Write gating
# ---------------------------------------------------------------------------
read_only: bool = False
pending_deletes: Dict[int, Dict[str, Any]] = {}  # track index -> snapshot taken at staging

# ---------------------------------------------------------------------------
# Dashboard / telemetry state
# ---------------------------------------------------------------------------
server_start_time: float = 0.0
tool_call_log: deque = deque(maxlen=50)
tool_call_counts: Dict[str, int] = {}
tool_call_lock: threading.Lock = threading.Lock()
dashboard_server: Optional[Any] = None  # uvicorn.Server | None
server_log_buffer: deque = deque(maxlen=200)
server_log_lock: threading.Lock = threading.Lock()

# ---------------------------------------------------------------------------
# Config (from environment or defaults)
# ---------------------------------------------------------------------------
DASHBOARD_PORT: int = int(os.environ.get("OSC_BRIDGE_DASHBOARD_PORT", "9880"))
DASHBOARD_ENABLED: bool = os.environ.get("OSC_BRIDGE_DASHBOARD", "1") != "0"
LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()

# ---------------------------------------------------------------------------
# MCP server instance (set by server.py after creating the FastMCP object)
# ---------------------------------------------------------------------------
mcp_instance: Optional[Any] = None  # FastMCP | None
