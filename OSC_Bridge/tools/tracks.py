"""Track tool handlers for paranoid-ableton."""
import json
from mcp.server.fastmcp import Context
from typing import Union

import OSC_Bridge.state as state
from OSC_Bridge.connections.session import get_session
from OSC_Bridge.tools._base import _tool_handler, guard_write, tool_error
from OSC_Bridge.tools._queries import build_track_snapshot, get_value, resolve_track_index

TRACK_TYPES = ("midi", "audio")


def register_tools(mcp):
    """Register track tools with the MCP server."""

    @mcp.tool()
    @_tool_handler("listing tracks")
    async def track_list(ctx: Context) -> str:
        """List all tracks with name, type, volume, pan, mute/solo/arm and device count."""
        conn = get_session()
        num_tracks = await get_value(conn, "/live/song/get/num_tracks")
        tracks = [await build_track_snapshot(conn, i) for i in range(num_tracks)]
        return json.dumps({"track_count": num_tracks, "tracks": tracks})

    @mcp.tool()
    @_tool_handler("creating track")
    async def track_create(ctx: Context, track_type: str, index: int = -1) -> str:
        """Create a new MIDI or audio track.

        Parameters:
        - track_type: "midi" or "audio"
        - index: Insert position (0-based); -1 appends at the end
        """
        guard_write("track_create")
        if track_type not in TRACK_TYPES:
            raise ValueError(f'track_type must be "midi" or "audio", got {track_type!r}.')
        if not isinstance(index, int) or isinstance(index, bool) or index < -1:
            raise ValueError(f"index must be -1 or a non-negative integer, got {index}.")
        conn = get_session()
        await conn.send(f"/live/song/create_{track_type}_track", [index])
        num_tracks = await get_value(conn, "/live/song/get/num_tracks")
        new_index = num_tracks - 1 if index == -1 else index
        return json.dumps({"created": True, "track": await build_track_snapshot(conn, new_index)})

    @mcp.tool()
    @_tool_handler("selecting track")
    async def track_select(ctx: Context, track: Union[int, str]) -> str:
        """Select a track in Live's session view.

        Parameters:
        - track: Track index (0-based) or exact track name
        """
        guard_write("track_select")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        await conn.send("/live/view/set/selected_track", [track_index])
        return json.dumps({"selected": True, "track": await build_track_snapshot(conn, track_index)})

    @mcp.tool()
    @_tool_handler("setting track arm")
    async def track_set_arm(ctx: Context, track: Union[int, str], armed: bool) -> str:
        """Arm or disarm a track for recording.

        Parameters:
        - track: Track index (0-based) or exact track name
        - armed: True to arm, False to disarm
        """
        guard_write("track_set_arm")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        await conn.send("/live/track/set/arm", [track_index, 1 if armed else 0])
        return json.dumps(await build_track_snapshot(conn, track_index))

    @mcp.tool()
    @_tool_handler("renaming track")
    async def track_rename(ctx: Context, track: Union[int, str], name: str) -> str:
        """Rename a track.

        Parameters:
        - track: Track index (0-based) or exact track name
        - name: New name for the track
        """
        guard_write("track_rename")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("name must be a non-empty string.")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        await conn.send("/live/track/set/name", [track_index, name])
        return json.dumps(await build_track_snapshot(conn, track_index))

    @mcp.tool()
    @_tool_handler("deleting track")
    async def track_delete(ctx: Context, track: Union[int, str], confirm: bool = False) -> str:
        """Delete a track in two steps.

        Call once without confirm to review the track and stage the delete,
        then again with confirm=True to delete it.

        Parameters:
        - track: Track index (0-based) or exact track name
        - confirm: False to stage the delete, True to execute a staged delete
        """
        guard_write("track_delete")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)

        if not confirm:
            snapshot = await build_track_snapshot(conn, track_index)
            state.pending_deletes[track_index] = snapshot
            return json.dumps({
                "pending_delete": True,
                "warning": "Track will be permanently deleted. Call again with confirm=true to proceed.",
                "track": snapshot,
            })

        pending = state.pending_deletes.get(track_index)
        if pending is None:
            return tool_error(
                f"No pending delete for track {track_index}. "
                f"Call track_delete without confirm first to review track contents.",
                code="NO_PENDING_DELETE",
            )
        await conn.send("/live/song/delete_track", [track_index])
        state.pending_deletes.pop(track_index, None)
        return json.dumps({
            "deleted": True,
            "track_index": track_index,
            "track_name": pending.get("name"),
        })
