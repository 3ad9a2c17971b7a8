"""Query helpers shared by the tool modules.

AbletonOSC getters echo their index arguments before the value, e.g.
``/live/track/get/name 3`` answers ``[3, "Bass"]``. ``get_value`` and
``get_values`` strip that echo.
"""
from typing import Any, Dict, List, Optional, Union

from OSC_Bridge.constants import DEVICE_TYPE_NAMES, RECORDING_STATUSES, TIMEOUTS
from OSC_Bridge.validation import DEFAULT_NOTE_VELOCITY, float_pan_to_midi, format_db, normalized_to_db


async def get_values(conn, address: str, *indices: int, timeout_ms: int = TIMEOUTS["QUERY"]) -> List[Any]:
    response = await conn.query(address, list(indices), timeout_ms)
    return list(response[len(indices):])


async def get_value(conn, address: str, *indices: int, timeout_ms: int = TIMEOUTS["QUERY"]) -> Any:
    values = await get_values(conn, address, *indices, timeout_ms=timeout_ms)
    if not values:
        raise RuntimeError(f"Empty response from {address}")
    return values[0]


async def resolve_track_index(conn, track: Union[int, str]) -> int:
    """Resolve a 0-based index or an exact track name to a track index."""
    if isinstance(track, bool):
        raise ValueError("track must be an index or a track name.")
    if isinstance(track, int):
        if track < 0:
            raise ValueError(f"track index must be non-negative, got {track}.")
        return track
    if not isinstance(track, str):
        raise ValueError(f"track must be an index or a track name, got {type(track).__name__}.")

    num_tracks = await get_value(conn, "/live/song/get/num_tracks")
    for index in range(num_tracks):
        if await get_value(conn, "/live/track/get/name", index) == track:
            return index
    raise ValueError(f'No track named "{track}".')


async def build_transport_snapshot(conn) -> Dict[str, Any]:
    tempo = await get_value(conn, "/live/song/get/tempo")
    is_playing = await get_value(conn, "/live/song/get/is_playing")
    current_time = await get_value(conn, "/live/song/get/current_song_time")
    metronome = await get_value(conn, "/live/song/get/metronome")
    numerator = await get_value(conn, "/live/song/get/signature_numerator")
    denominator = await get_value(conn, "/live/song/get/signature_denominator")
    record_status = await get_value(conn, "/live/song/get/session_record_status")
    return {
        "tempo": tempo,
        "is_playing": bool(is_playing),
        "recording": record_status in RECORDING_STATUSES,
        "current_time": current_time,
        "metronome": bool(metronome),
        "time_signature": f"{numerator}/{denominator}",
    }


async def build_track_snapshot(conn, track_index: int) -> Dict[str, Any]:
    name = await get_value(conn, "/live/track/get/name", track_index)
    volume = await get_value(conn, "/live/track/get/volume", track_index)
    panning = await get_value(conn, "/live/track/get/panning", track_index)
    mute = await get_value(conn, "/live/track/get/mute", track_index)
    solo = await get_value(conn, "/live/track/get/solo", track_index)
    arm = await get_value(conn, "/live/track/get/arm", track_index)
    has_midi = await get_value(conn, "/live/track/get/has_midi_input", track_index)
    has_audio = await get_value(conn, "/live/track/get/has_audio_input", track_index)
    num_devices = await get_value(conn, "/live/track/get/num_devices", track_index)

    if has_midi:
        track_type = "midi"
    elif has_audio:
        track_type = "audio"
    else:
        track_type = "unknown"

    return {
        "index": track_index,
        "name": name,
        "type": track_type,
        "volume": {"normalized": volume, "db": format_db(normalized_to_db(volume))},
        "pan": {"normalized": panning, "midi": float_pan_to_midi(panning)},
        "mute": bool(mute),
        "solo": bool(solo),
        "arm": bool(arm),
        "device_count": num_devices,
    }


async def build_track_detail_snapshot(conn, track_index: int, num_scenes: int) -> Dict[str, Any]:
    base = await build_track_snapshot(conn, track_index)
    input_routing = await get_value(conn, "/live/track/get/input_routing_type", track_index)
    output_routing = await get_value(conn, "/live/track/get/output_routing_type", track_index)
    is_foldable = await get_value(conn, "/live/track/get/is_foldable", track_index)
    is_grouped = await get_value(conn, "/live/track/get/is_grouped", track_index)
    clip_names = await get_values(conn, "/live/track/get/clips/name", track_index)

    clips = [
        {"scene": scene, "name": clip_names[scene], "has_clip": True}
        for scene in range(min(num_scenes, len(clip_names)))
        if clip_names[scene]
    ]

    devices = []
    if base["device_count"]:
        device_names = await get_values(conn, "/live/track/get/devices/name", track_index)
        device_types = await get_values(conn, "/live/track/get/devices/type", track_index)
        for i, device_name in enumerate(device_names[:base["device_count"]]):
            type_id = device_types[i] if i < len(device_types) else None
            devices.append({
                "index": i,
                "name": device_name,
                "type": DEVICE_TYPE_NAMES.get(type_id, "unknown"),
            })

    base.update({
        "input_routing": input_routing,
        "output_routing": output_routing,
        "is_group": bool(is_foldable),
        "is_grouped": bool(is_grouped),
        "clips": clips,
        "devices": devices,
    })
    return base


async def build_session_snapshot(conn) -> Dict[str, Any]:
    num_tracks = await get_value(conn, "/live/song/get/num_tracks")
    num_scenes = await get_value(conn, "/live/song/get/num_scenes")
    transport = await build_transport_snapshot(conn)
    tracks = [await build_track_detail_snapshot(conn, t, num_scenes) for t in range(num_tracks)]
    return {
        "transport": transport,
        "track_count": num_tracks,
        "scene_count": num_scenes,
        "tracks": tracks,
    }


async def build_session_stats(conn) -> Dict[str, Any]:
    transport = await build_transport_snapshot(conn)
    num_tracks = await get_value(conn, "/live/song/get/num_tracks")
    num_scenes = await get_value(conn, "/live/song/get/num_scenes")

    counts = {"total": num_tracks, "midi": 0, "audio": 0, "group": 0}
    total_clips = 0
    total_devices = 0
    device_summary: Dict[str, int] = {}

    for t in range(num_tracks):
        has_midi = await get_value(conn, "/live/track/get/has_midi_input", t)
        has_audio = await get_value(conn, "/live/track/get/has_audio_input", t)
        is_foldable = await get_value(conn, "/live/track/get/is_foldable", t)
        num_devices = await get_value(conn, "/live/track/get/num_devices", t)

        if is_foldable:
            counts["group"] += 1
        elif has_midi:
            counts["midi"] += 1
        elif has_audio:
            counts["audio"] += 1
        total_devices += num_devices

        clip_names = await get_values(conn, "/live/track/get/clips/name", t)
        total_clips += sum(1 for name in clip_names if name)

        if num_devices:
            for device_name in await get_values(conn, "/live/track/get/devices/name", t):
                device_summary[device_name] = device_summary.get(device_name, 0) + 1

    return {
        "transport": transport,
        "track_counts": counts,
        "scene_count": num_scenes,
        "total_clips": total_clips,
        "total_devices": total_devices,
        "device_summary": device_summary,
    }


# ---------------------------------------------------------------------------
# Clips and notes
# ---------------------------------------------------------------------------

# AbletonOSC carries notes as flat (pitch, start_time, duration, velocity, mute) runs
NOTE_FIELDS = 5
# whole-clip defaults for the note range filters
NOTE_FILTER_DEFAULTS = (0, 128, 0, 16384)


def notes_to_flat(notes: List[Dict[str, Any]]) -> List[Any]:
    flat = []
    for note in notes:
        flat.extend([
            note["pitch"],
            note["start_time"],
            note["duration"],
            note.get("velocity", DEFAULT_NOTE_VELOCITY),
            1 if note.get("mute") else 0,
        ])
    return flat


def flat_to_notes(values: List[Any]) -> List[Dict[str, Any]]:
    """Inverse of notes_to_flat; a trailing partial run is ignored."""
    notes = []
    for i in range(0, len(values) - NOTE_FIELDS + 1, NOTE_FIELDS):
        pitch, start_time, duration, velocity, mute = values[i:i + NOTE_FIELDS]
        notes.append({
            "pitch": pitch,
            "start_time": start_time,
            "duration": duration,
            "velocity": velocity,
            "mute": bool(mute),
        })
    return notes


def note_filter_args(pitch_start: Optional[int], pitch_span: Optional[int],
                     time_start: Optional[float], time_span: Optional[float]) -> List[Any]:
    """Range arguments for the note getters and removers, or none to cover the whole clip."""
    given = (pitch_start, pitch_span, time_start, time_span)
    if all(value is None for value in given):
        return []
    return [default if value is None else value for value, default in zip(given, NOTE_FILTER_DEFAULTS)]


async def build_clip_snapshot(conn, track_index: int, clip_index: int) -> Dict[str, Any]:
    name = await get_value(conn, "/live/clip/get/name", track_index, clip_index)
    length = await get_value(conn, "/live/clip/get/length", track_index, clip_index)
    loop_start = await get_value(conn, "/live/clip/get/loop_start", track_index, clip_index)
    loop_end = await get_value(conn, "/live/clip/get/loop_end", track_index, clip_index)
    looping = await get_value(conn, "/live/clip/get/looping", track_index, clip_index)
    is_midi = await get_value(conn, "/live/clip/get/is_midi_clip", track_index, clip_index)
    note_data = await get_values(conn, "/live/clip/get/notes", track_index, clip_index)
    return {
        "track_index": track_index,
        "clip_index": clip_index,
        "name": name,
        "length": length,
        "loop_start": loop_start,
        "loop_end": loop_end,
        "looping": bool(looping),
        "is_midi": bool(is_midi),
        "note_count": len(note_data) // NOTE_FIELDS,
    }


# ---------------------------------------------------------------------------
# Devices and parameters
# ---------------------------------------------------------------------------

async def build_device_snapshot(conn, track_index: int, device_index: int) -> Dict[str, Any]:
    name = await get_value(conn, "/live/device/get/name", track_index, device_index)
    class_name = await get_value(conn, "/live/device/get/class_name", track_index, device_index)
    type_id = await get_value(conn, "/live/device/get/type", track_index, device_index)
    num_parameters = await get_value(conn, "/live/device/get/num_parameters", track_index, device_index)
    return {
        "track_index": track_index,
        "device_index": device_index,
        "name": name,
        "class_name": class_name,
        "type": DEVICE_TYPE_NAMES.get(type_id, "unknown"),
        "type_id": type_id,
        "parameter_count": num_parameters,
    }


async def resolve_parameter_index(conn, track_index: int, device_index: int,
                                  parameter: Union[int, str]) -> int:
    """Resolve a 0-based index or an exact parameter name to a parameter index."""
    if isinstance(parameter, bool):
        raise ValueError("parameter must be an index or a parameter name.")
    if isinstance(parameter, int):
        if parameter < 0:
            raise ValueError(f"parameter index must be non-negative, got {parameter}.")
        return parameter
    if not isinstance(parameter, str):
        raise ValueError(f"parameter must be an index or a parameter name, got {type(parameter).__name__}.")

    names = await get_values(conn, "/live/device/get/parameters/name", track_index, device_index)
    if parameter not in names:
        raise ValueError(f'No parameter named "{parameter}" on device {device_index}.')
    return names.index(parameter)
