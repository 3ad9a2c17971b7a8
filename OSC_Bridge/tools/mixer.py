"""Mixer tool handlers: volume, pan, mute, solo and sends."""
import json
from mcp.server.fastmcp import Context
from typing import Union

from OSC_Bridge.connections.session import get_session
from OSC_Bridge.tools._base import _tool_handler, guard_write
from OSC_Bridge.tools._queries import build_track_snapshot, get_value, resolve_track_index
from OSC_Bridge.validation import (
    _validate_index, _validate_range, float_pan_to_midi, format_db,
    normalized_to_db, parse_pan_input, parse_volume_input,
)


def register_tools(mcp):
    """Register mixer tools with the MCP server."""

    @mcp.tool()
    @_tool_handler("getting track volume")
    async def mixer_get_volume(ctx: Context, track: Union[int, str]) -> str:
        """Get track volume in both normalized (0.0-1.0) and dB formats.

        Parameters:
        - track: Track index (0-based) or exact track name
        """
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        volume = await get_value(conn, "/live/track/get/volume", track_index)
        return json.dumps({
            "track": track_index,
            "volume": {"normalized": volume, "db": format_db(normalized_to_db(volume))},
        })

    @mcp.tool()
    @_tool_handler("setting track volume")
    async def mixer_set_volume(ctx: Context, track: Union[int, str], volume: Union[float, str]) -> str:
        """Set track volume.

        Parameters:
        - track: Track index (0-based) or exact track name
        - volume: Normalized float (0.0-1.0) or dB string ("-6dB", "0dB", "-inf")
        """
        guard_write("mixer_set_volume")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        normalized = parse_volume_input(volume)
        await conn.send("/live/track/set/volume", [track_index, normalized])
        return json.dumps(await build_track_snapshot(conn, track_index))

    @mcp.tool()
    @_tool_handler("getting track pan")
    async def mixer_get_pan(ctx: Context, track: Union[int, str]) -> str:
        """Get track pan in both normalized (-1.0 to 1.0) and MIDI (0-127) formats.

        Parameters:
        - track: Track index (0-based) or exact track name
        """
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        panning = await get_value(conn, "/live/track/get/panning", track_index)
        return json.dumps({
            "track": track_index,
            "pan": {"normalized": panning, "midi": float_pan_to_midi(panning)},
        })

    @mcp.tool()
    @_tool_handler("setting track pan")
    async def mixer_set_pan(ctx: Context, track: Union[int, str], pan: int) -> str:
        """Set track pan using MIDI convention.

        Parameters:
        - track: Track index (0-based) or exact track name
        - pan: 0 = hard left, 64 = center, 127 = hard right
        """
        guard_write("mixer_set_pan")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        panning = parse_pan_input(pan)
        await conn.send("/live/track/set/panning", [track_index, panning])
        return json.dumps(await build_track_snapshot(conn, track_index))

    @mcp.tool()
    @_tool_handler("setting track mute")
    async def mixer_set_mute(ctx: Context, track: Union[int, str], muted: bool) -> str:
        """Mute or unmute a track.

        Parameters:
        - track: Track index (0-based) or exact track name
        - muted: True to mute, False to unmute
        """
        guard_write("mixer_set_mute")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        await conn.send("/live/track/set/mute", [track_index, 1 if muted else 0])
        return json.dumps(await build_track_snapshot(conn, track_index))

    @mcp.tool()
    @_tool_handler("setting track solo")
    async def mixer_set_solo(ctx: Context, track: Union[int, str], soloed: bool) -> str:
        """Solo or unsolo a track.

        Parameters:
        - track: Track index (0-based) or exact track name
        - soloed: True to solo, False to unsolo
        """
        guard_write("mixer_set_solo")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        await conn.send("/live/track/set/solo", [track_index, 1 if soloed else 0])
        return json.dumps(await build_track_snapshot(conn, track_index))

    @mcp.tool()
    @_tool_handler("getting track send")
    async def mixer_get_send(ctx: Context, track: Union[int, str], send: int) -> str:
        """Get the send level from a track to a return track.

        Parameters:
        - track: Track index (0-based) or exact track name
        - send: Send index (0 = Send A, 1 = Send B, etc.)
        """
        _validate_index(send, "send")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        level = await get_value(conn, "/live/track/get/send", track_index, send)
        return json.dumps({"track": track_index, "send_index": send, "level": level})

    @mcp.tool()
    @_tool_handler("setting track send")
    async def mixer_set_send(ctx: Context, track: Union[int, str], send: int, level: float) -> str:
        """Set the send level from a track to a return track.

        Parameters:
        - track: Track index (0-based) or exact track name
        - send: Send index (0 = Send A, 1 = Send B, etc.)
        - level: Send level (0.0 to 1.0)
        """
        guard_write("mixer_set_send")
        _validate_index(send, "send")
        _validate_range(level, "level", 0.0, 1.0)
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        await conn.send("/live/track/set/send", [track_index, send, float(level)])
        return json.dumps(await build_track_snapshot(conn, track_index))
