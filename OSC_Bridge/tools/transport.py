"""Transport tool handlers: playback, recording, tempo, position, metronome."""
import json
from mcp.server.fastmcp import Context
from typing import Union

from OSC_Bridge.connections.session import get_session
from OSC_Bridge.constants import RECORDING_STATUSES
from OSC_Bridge.tools._base import _tool_handler, guard_write
from OSC_Bridge.tools._queries import build_transport_snapshot, get_value
from OSC_Bridge.validation import _validate_range, parse_tempo_input


def register_tools(mcp):
    """Register transport tools with the MCP server."""

    @mcp.tool()
    @_tool_handler("starting playback")
    async def transport_play(ctx: Context) -> str:
        """Start playback from the current position."""
        guard_write("transport_play")
        conn = get_session()
        await conn.send("/live/song/start_playing")
        return json.dumps(await build_transport_snapshot(conn))

    @mcp.tool()
    @_tool_handler("stopping playback")
    async def transport_stop(ctx: Context) -> str:
        """Stop playback. Also stops recording if active."""
        guard_write("transport_stop")
        conn = get_session()
        await conn.send("/live/song/stop_playing")
        return json.dumps(await build_transport_snapshot(conn))

    @mcp.tool()
    @_tool_handler("continuing playback")
    async def transport_continue(ctx: Context) -> str:
        """Continue playback from where it was stopped."""
        guard_write("transport_continue")
        conn = get_session()
        await conn.send("/live/song/continue_playing")
        return json.dumps(await build_transport_snapshot(conn))

    @mcp.tool()
    @_tool_handler("starting session record")
    async def transport_record(ctx: Context) -> str:
        """Start session recording, unless a recording is already running."""
        guard_write("transport_record")
        conn = get_session()
        record_status = await get_value(conn, "/live/song/get/session_record_status")
        if record_status in RECORDING_STATUSES:
            snapshot = await build_transport_snapshot(conn)
            snapshot["note"] = "Already recording"
            return json.dumps(snapshot)
        await conn.send("/live/song/trigger_session_record")
        return json.dumps(await build_transport_snapshot(conn))

    @mcp.tool()
    @_tool_handler("getting tempo")
    async def transport_get_tempo(ctx: Context) -> str:
        """Get the current session tempo in BPM."""
        tempo = await get_value(get_session(), "/live/song/get/tempo")
        return json.dumps({"tempo": tempo})

    @mcp.tool()
    @_tool_handler("setting tempo")
    async def transport_set_tempo(ctx: Context, tempo: Union[float, str]) -> str:
        """Set the session tempo.

        Parameters:
        - tempo: Absolute BPM (20-999), or a relative change: "+5", "-10", "double", "half"
        """
        guard_write("transport_set_tempo")
        conn = get_session()
        current = await get_value(conn, "/live/song/get/tempo")
        new_tempo = parse_tempo_input(tempo, current)
        await conn.send("/live/song/set/tempo", [new_tempo])
        return json.dumps(await build_transport_snapshot(conn))

    @mcp.tool()
    @_tool_handler("getting playback position")
    async def transport_get_position(ctx: Context) -> str:
        """Get the current playback position in beats."""
        position = await get_value(get_session(), "/live/song/get/current_song_time")
        return json.dumps({"position_beats": position})

    @mcp.tool()
    @_tool_handler("setting playback position")
    async def transport_set_position(ctx: Context, position: float) -> str:
        """Set the playback position.

        Parameters:
        - position: Position in beats (>= 0)
        """
        guard_write("transport_set_position")
        _validate_range(position, "position", 0.0, float("inf"))
        conn = get_session()
        await conn.send("/live/song/set/current_song_time", [float(position)])
        return json.dumps(await build_transport_snapshot(conn))

    @mcp.tool()
    @_tool_handler("getting metronome")
    async def transport_get_metronome(ctx: Context) -> str:
        """Get the metronome on/off state."""
        metronome = await get_value(get_session(), "/live/song/get/metronome")
        return json.dumps({"metronome": bool(metronome)})

    @mcp.tool()
    @_tool_handler("setting metronome")
    async def transport_set_metronome(ctx: Context, enabled: bool) -> str:
        """Enable or disable the metronome.

        Parameters:
        - enabled: True to enable, False to disable
        """
        guard_write("transport_set_metronome")
        conn = get_session()
        await conn.send("/live/song/set/metronome", [1 if enabled else 0])
        return json.dumps(await build_transport_snapshot(conn))
