"""Pure constants for the paranoid-ableton MCP server.

Nothing in this module is mutable at runtime. Every module can do
``from OSC_Bridge.constants import ...`` without circular imports.
"""

from typing import Dict

# ---------------------------------------------------------------------------
# OSC endpoint defaults (overridable via OSC_HOST / OSC_SEND_PORT / OSC_RECEIVE_PORT)
# ---------------------------------------------------------------------------
DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_SEND_PORT: int = 11001
DEFAULT_RECEIVE_PORT: int = 11000

ENV_HOST: str = "OSC_HOST"
ENV_SEND_PORT: str = "OSC_SEND_PORT"
ENV_RECEIVE_PORT: str = "OSC_RECEIVE_PORT"

# ---------------------------------------------------------------------------
# Operation-class timeouts, in milliseconds
# ---------------------------------------------------------------------------
TIMEOUTS: Dict[str, int] = {
    "QUERY": 5000,        # plain getters
    "COMMAND": 7000,      # commands that trigger processing in Live
    "LOAD_DEVICE": 10000,
    "LOAD_SAMPLE": 10000,
    "HEALTH_CHECK": 3000,
}

# ---------------------------------------------------------------------------
# Liveness sentinel
# ---------------------------------------------------------------------------
HEALTH_CHECK_ADDRESS: str = "/live/test"
HEALTH_CHECK_RESPONSE: str = "ok"

# ---------------------------------------------------------------------------
# Reconnect policy for the connection session
# ---------------------------------------------------------------------------
RECONNECT_ATTEMPTS: int = 3
RECONNECT_DELAY: float = 1.0  # seconds between attempts

# ---------------------------------------------------------------------------
# Live object model value tables
# ---------------------------------------------------------------------------
DEVICE_TYPE_NAMES: Dict[int, str] = {1: "audio_effect", 2: "instrument", 4: "midi_effect"}

# session_record_status values that mean "recording"
RECORDING_STATUSES: frozenset = frozenset([1, 2])

# Tools that change the Live set; all of them are blocked in read-only mode
WRITE_TOOLS: frozenset = frozenset([
    "transport_play", "transport_stop", "transport_continue", "transport_record",
    "transport_set_tempo", "transport_set_position", "transport_set_metronome",
    "mixer_set_volume", "mixer_set_pan", "mixer_set_mute", "mixer_set_solo",
    "mixer_set_send",
    "track_create", "track_select", "track_set_arm", "track_rename", "track_delete",
    "clip_create", "clip_delete", "clip_set_name", "clip_add_notes",
    "clip_remove_notes", "clip_set_loop",
    "device_toggle", "device_set_parameter", "device_select", "device_delete",
    "device_load",
    "scene_launch", "scene_stop", "scene_create", "scene_rename",
    "clip_launch", "clip_stop",
])

READ_TOOLS: frozenset = frozenset([
    "ableton_status", "get_server_capabilities", "set_read_only",
    "transport_get_tempo", "transport_get_position", "transport_get_metronome",
    "mixer_get_volume", "mixer_get_pan", "mixer_get_send",
    "track_list", "clip_get", "clip_get_notes",
    "device_list", "device_get", "device_get_parameters", "device_get_parameter",
    "scene_list", "session_snapshot", "session_stats",
])
