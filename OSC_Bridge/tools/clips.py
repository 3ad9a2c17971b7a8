"""Clip tool handlers: clip slots, names, loop points and MIDI notes."""
import json
from mcp.server.fastmcp import Context
from typing import Any, Dict, List, Optional, Union

from OSC_Bridge.connections.session import get_session
from OSC_Bridge.constants import TIMEOUTS
from OSC_Bridge.tools._base import _tool_handler, guard_write, tool_error
from OSC_Bridge.tools._queries import (
    build_clip_snapshot, flat_to_notes, get_value,
    note_filter_args, notes_to_flat, resolve_track_index,
)
from OSC_Bridge.validation import _validate_index, _validate_notes

# notes per /live/clip/add/notes message
NOTE_CHUNK_SIZE = 100


def register_tools(mcp):
    """Register clip tools with the MCP server."""

    @mcp.tool()
    @_tool_handler("creating clip")
    async def clip_create(ctx: Context, track: Union[int, str], scene: int,
                          length: float = 4.0, name: Optional[str] = None) -> str:
        """Create an empty MIDI clip in a clip slot.

        Only MIDI tracks can hold new clips, and the slot must be empty.

        Parameters:
        - track: Track index (0-based) or exact track name
        - scene: Clip slot index (0-based)
        - length: Clip length in beats (4.0 is one bar of 4/4)
        - name: Optional clip name
        """
        guard_write("clip_create")
        _validate_index(scene, "scene")
        if not isinstance(length, (int, float)) or isinstance(length, bool) or length <= 0:
            raise ValueError(f"length must be a positive number, got {length}.")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)

        if not await get_value(conn, "/live/track/get/has_midi_input", track_index):
            return tool_error(
                f"Track {track_index} is not a MIDI track. Can only create MIDI clips on MIDI tracks.",
                code="INVALID_TRACK",
            )
        if await get_value(conn, "/live/clip_slot/get/has_clip", track_index, scene):
            return tool_error(
                f"Clip slot [{track_index}, {scene}] already contains a clip. "
                f"Delete it first or use a different slot.",
                code="SLOT_NOT_EMPTY",
            )

        await conn.send("/live/clip_slot/create_clip", [track_index, scene, length])
        if name:
            await conn.send("/live/clip/set/name", [track_index, scene, name])
        return json.dumps(await build_clip_snapshot(conn, track_index, scene))

    @mcp.tool()
    @_tool_handler("deleting clip")
    async def clip_delete(ctx: Context, track: Union[int, str], scene: int) -> str:
        """Delete the clip in a clip slot.

        Parameters:
        - track: Track index (0-based) or exact track name
        - scene: Clip slot index (0-based)
        """
        guard_write("clip_delete")
        _validate_index(scene, "scene")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        await conn.send("/live/clip_slot/delete_clip", [track_index, scene])
        return json.dumps({"deleted": True, "track_index": track_index, "clip_index": scene})

    @mcp.tool()
    @_tool_handler("getting clip info")
    async def clip_get(ctx: Context, track: Union[int, str], scene: int) -> str:
        """Get clip name, length, loop points, MIDI flag and note count.

        Parameters:
        - track: Track index (0-based) or exact track name
        - scene: Clip slot index (0-based)
        """
        _validate_index(scene, "scene")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        return json.dumps(await build_clip_snapshot(conn, track_index, scene))

    @mcp.tool()
    @_tool_handler("renaming clip")
    async def clip_set_name(ctx: Context, track: Union[int, str], scene: int, name: str) -> str:
        """Rename a clip.

        Parameters:
        - track: Track index (0-based) or exact track name
        - scene: Clip slot index (0-based)
        - name: New clip name
        """
        guard_write("clip_set_name")
        _validate_index(scene, "scene")
        if not isinstance(name, str):
            raise ValueError("name must be a string.")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        await conn.send("/live/clip/set/name", [track_index, scene, name])
        return json.dumps(await build_clip_snapshot(conn, track_index, scene))

    @mcp.tool()
    @_tool_handler("adding notes")
    async def clip_add_notes(ctx: Context, track: Union[int, str], scene: int,
                             notes: List[Dict[str, Any]]) -> str:
        """Add MIDI notes to an existing clip. Existing notes are kept.

        Parameters:
        - track: Track index (0-based) or exact track name
        - scene: Clip slot index (0-based)
        - notes: List of {"pitch", "start_time", "duration", "velocity", "mute"} dicts.
          pitch is 0-127 (60 = C4), times are in beats from the clip start,
          velocity is 1-127 (default 100), mute defaults to false.
        """
        guard_write("clip_add_notes")
        _validate_index(scene, "scene")
        _validate_notes(notes)
        conn = get_session()
        track_index = await resolve_track_index(conn, track)

        for start in range(0, len(notes), NOTE_CHUNK_SIZE):
            chunk = notes_to_flat(notes[start:start + NOTE_CHUNK_SIZE])
            await conn.send("/live/clip/add/notes", [track_index, scene] + chunk)

        snapshot = await build_clip_snapshot(conn, track_index, scene)
        snapshot["notes_added"] = len(notes)
        return json.dumps(snapshot)

    @mcp.tool()
    @_tool_handler("removing notes")
    async def clip_remove_notes(ctx: Context, track: Union[int, str], scene: int,
                                pitch_start: Optional[int] = None, pitch_span: Optional[int] = None,
                                time_start: Optional[float] = None,
                                time_span: Optional[float] = None) -> str:
        """Remove MIDI notes by pitch and/or time range.

        Leaving every range parameter out removes ALL notes from the clip.

        Parameters:
        - track: Track index (0-based) or exact track name
        - scene: Clip slot index (0-based)
        - pitch_start: Lowest pitch to remove (default 0)
        - pitch_span: Number of pitches from pitch_start (default 128)
        - time_start: Range start in beats (default 0)
        - time_span: Range length in beats (default 16384)
        """
        guard_write("clip_remove_notes")
        _validate_index(scene, "scene")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        filters = note_filter_args(pitch_start, pitch_span, time_start, time_span)
        await conn.send("/live/clip/remove/notes", [track_index, scene] + filters)
        return json.dumps(await build_clip_snapshot(conn, track_index, scene))

    @mcp.tool()
    @_tool_handler("reading notes")
    async def clip_get_notes(ctx: Context, track: Union[int, str], scene: int,
                             pitch_start: Optional[int] = None, pitch_span: Optional[int] = None,
                             time_start: Optional[float] = None,
                             time_span: Optional[float] = None) -> str:
        """Read the MIDI notes of a clip, optionally limited to a pitch and time range.

        Parameters:
        - track: Track index (0-based) or exact track name
        - scene: Clip slot index (0-based)
        - pitch_start: Lowest pitch to include (default 0)
        - pitch_span: Number of pitches from pitch_start (default 128)
        - time_start: Range start in beats (default 0)
        - time_span: Range length in beats (default 16384)
        """
        _validate_index(scene, "scene")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        filters = note_filter_args(pitch_start, pitch_span, time_start, time_span)
        response = await conn.query("/live/clip/get/notes", [track_index, scene] + filters,
                                    TIMEOUTS["QUERY"])
        notes = flat_to_notes(list(response[2:]))
        return json.dumps({
            "track_index": track_index,
            "clip_index": scene,
            "note_count": len(notes),
            "notes": notes,
        })

    @mcp.tool()
    @_tool_handler("setting clip loop")
    async def clip_set_loop(ctx: Context, track: Union[int, str], scene: int,
                            loop_start: Optional[float] = None, loop_end: Optional[float] = None,
                            looping: Optional[bool] = None) -> str:
        """Set clip loop points (in beats) and/or toggle looping.

        When both points move, they are applied in whichever order keeps
        loop_start below loop_end at every step.

        Parameters:
        - track: Track index (0-based) or exact track name
        - scene: Clip slot index (0-based)
        - loop_start: Loop start in beats
        - loop_end: Loop end in beats
        - looping: True to enable looping, False to disable
        """
        guard_write("clip_set_loop")
        _validate_index(scene, "scene")
        if loop_start is None and loop_end is None and looping is None:
            raise ValueError("At least one of loop_start, loop_end or looping must be provided.")
        if loop_start is not None and loop_end is not None and loop_start >= loop_end:
            raise ValueError(f"loop_start ({loop_start}) must be less than loop_end ({loop_end}).")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)

        if looping is not None:
            await conn.send("/live/clip/set/looping", [track_index, scene, 1 if looping else 0])

        if loop_start is not None and loop_end is not None:
            current_end = await get_value(conn, "/live/clip/get/loop_end", track_index, scene)
            if loop_end > current_end:
                order = [("loop_end", loop_end), ("loop_start", loop_start)]
            else:
                order = [("loop_start", loop_start), ("loop_end", loop_end)]
        elif loop_start is not None:
            order = [("loop_start", loop_start)]
        elif loop_end is not None:
            order = [("loop_end", loop_end)]
        else:
            order = []

        for prop, value in order:
            await conn.send(f"/live/clip/set/{prop}", [track_index, scene, value])
        return json.dumps(await build_clip_snapshot(conn, track_index, scene))
