"""Scene and clip-launch tool handlers."""
import json
from mcp.server.fastmcp import Context
from typing import Union

from OSC_Bridge.connections.session import get_session
from OSC_Bridge.tools._base import _tool_handler, guard_write
from OSC_Bridge.tools._queries import get_value, resolve_track_index
from OSC_Bridge.validation import _validate_index


def register_tools(mcp):
    """Register scene and clip-launch tools with the MCP server."""

    @mcp.tool()
    @_tool_handler("listing scenes")
    async def scene_list(ctx: Context, include_clips: bool = True) -> str:
        """List scenes, optionally with the tracks that hold a clip in each scene.

        Parameters:
        - include_clips: Include per-scene clip occupancy (slower on large sets)
        """
        conn = get_session()
        num_scenes = await get_value(conn, "/live/song/get/num_scenes")
        num_tracks = await get_value(conn, "/live/song/get/num_tracks")

        track_names = {}
        scenes = []
        for s in range(num_scenes):
            scene = {"index": s, "name": await get_value(conn, "/live/scene/get/name", s)}
            if include_clips:
                clips = []
                for t in range(num_tracks):
                    if await get_value(conn, "/live/clip_slot/get/has_clip", t, s):
                        if t not in track_names:
                            track_names[t] = await get_value(conn, "/live/track/get/name", t)
                        clips.append({"track_index": t, "track_name": track_names[t]})
                scene["clips"] = clips
            scenes.append(scene)

        return json.dumps({"scene_count": num_scenes, "track_count": num_tracks, "scenes": scenes})

    @mcp.tool()
    @_tool_handler("launching scene")
    async def scene_launch(ctx: Context, scene: int) -> str:
        """Launch every clip slot in a scene.

        Parameters:
        - scene: Scene index (0-based)
        """
        guard_write("scene_launch")
        _validate_index(scene, "scene")
        await get_session().send("/live/scene/fire", [scene])
        return json.dumps({"launched": True, "scene": scene})

    @mcp.tool()
    @_tool_handler("stopping all clips")
    async def scene_stop(ctx: Context) -> str:
        """Stop all playing clips."""
        guard_write("scene_stop")
        await get_session().send("/live/song/stop_all_clips")
        return json.dumps({"stopped": True})

    @mcp.tool()
    @_tool_handler("launching clip")
    async def clip_launch(ctx: Context, track: Union[int, str], scene: int) -> str:
        """Launch a single clip.

        Parameters:
        - track: Track index (0-based) or exact track name
        - scene: Scene (clip slot) index
        """
        guard_write("clip_launch")
        _validate_index(scene, "scene")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        await conn.send("/live/clip/fire", [track_index, scene])
        return json.dumps({"launched": True, "track": track_index, "scene": scene})

    @mcp.tool()
    @_tool_handler("stopping clip")
    async def clip_stop(ctx: Context, track: Union[int, str], scene: int) -> str:
        """Stop a single clip.

        Parameters:
        - track: Track index (0-based) or exact track name
        - scene: Scene (clip slot) index
        """
        guard_write("clip_stop")
        _validate_index(scene, "scene")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        await conn.send("/live/clip/stop", [track_index, scene])
        return json.dumps({"stopped": True, "track": track_index, "scene": scene})

    @mcp.tool()
    @_tool_handler("creating scene")
    async def scene_create(ctx: Context, index: int = -1) -> str:
        """Create a new scene.

        Parameters:
        - index: Insert position; -1 appends at the end
        """
        guard_write("scene_create")
        if not isinstance(index, int) or isinstance(index, bool) or index < -1:
            raise ValueError(f"index must be -1 or a non-negative integer, got {index}.")
        conn = get_session()
        await conn.send("/live/song/create_scene", [index])
        num_scenes = await get_value(conn, "/live/song/get/num_scenes")
        return json.dumps({"created": True, "total_scenes": num_scenes})

    @mcp.tool()
    @_tool_handler("renaming scene")
    async def scene_rename(ctx: Context, scene: int, name: str) -> str:
        """Rename a scene.

        Parameters:
        - scene: Scene index (0-based)
        - name: New name for the scene
        """
        guard_write("scene_rename")
        _validate_index(scene, "scene")
        await get_session().send("/live/scene/set/name", [scene, name])
        return json.dumps({"renamed": True, "scene": scene, "name": name})
