"""Device tool handlers: device chains, parameters and browser loading."""
import json
import logging
from mcp.server.fastmcp import Context
from typing import Union

from OSC_Bridge.connections.errors import OscTimeoutError
from OSC_Bridge.connections.session import get_session
from OSC_Bridge.constants import DEVICE_TYPE_NAMES, TIMEOUTS
from OSC_Bridge.tools._base import _tool_handler, guard_write, tool_error
from OSC_Bridge.tools._queries import (
    build_device_snapshot, get_value, get_values, resolve_parameter_index, resolve_track_index,
)
from OSC_Bridge.validation import _validate_index

logger = logging.getLogger("ParanoidAbleton")

DEVICE_ON_PARAMETER = "Device On"


def register_tools(mcp):
    """Register device tools with the MCP server."""

    @mcp.tool()
    @_tool_handler("listing devices")
    async def device_list(ctx: Context, track: Union[int, str]) -> str:
        """List the devices on a track in chain order with name, type and class.

        Parameters:
        - track: Track index (0-based) or exact track name
        """
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        num_devices = await get_value(conn, "/live/track/get/num_devices", track_index)
        if not num_devices:
            return json.dumps({"track_index": track_index, "device_count": 0, "devices": []})

        names = await get_values(conn, "/live/track/get/devices/name", track_index)
        types = await get_values(conn, "/live/track/get/devices/type", track_index)
        classes = await get_values(conn, "/live/track/get/devices/class_name", track_index)
        if len(names) != num_devices:
            logger.warning("device_list: expected %d device names, got %d", num_devices, len(names))

        devices = []
        for i in range(min(num_devices, len(names))):
            type_id = types[i] if i < len(types) else None
            devices.append({
                "index": i,
                "name": names[i],
                "class_name": classes[i] if i < len(classes) else None,
                "type": DEVICE_TYPE_NAMES.get(type_id, "unknown"),
                "type_id": type_id,
            })
        return json.dumps({"track_index": track_index, "device_count": num_devices, "devices": devices})

    @mcp.tool()
    @_tool_handler("getting device info")
    async def device_get(ctx: Context, track: Union[int, str], device: int) -> str:
        """Get name, type, class and parameter count of one device.

        Parameters:
        - track: Track index (0-based) or exact track name
        - device: Device index (0-based) in the track's chain
        """
        _validate_index(device, "device")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        return json.dumps(await build_device_snapshot(conn, track_index, device))

    @mcp.tool()
    @_tool_handler("toggling device")
    async def device_toggle(ctx: Context, track: Union[int, str], device: int, enabled: bool) -> str:
        """Turn a device on or off through its "Device On" parameter.

        Parameters:
        - track: Track index (0-based) or exact track name
        - device: Device index (0-based) in the track's chain
        - enabled: True to turn the device on, False to turn it off
        """
        guard_write("device_toggle")
        _validate_index(device, "device")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)

        # native devices keep "Device On" at parameter 0
        first = await get_value(conn, "/live/device/get/parameter/name", track_index, device, 0)
        if first == DEVICE_ON_PARAMETER:
            parameter_index = 0
        else:
            names = await get_values(conn, "/live/device/get/parameters/name", track_index, device)
            if DEVICE_ON_PARAMETER not in names:
                return tool_error(
                    'Device has no "Device On" parameter and cannot be toggled.',
                    code="TOGGLE_UNSUPPORTED",
                )
            parameter_index = names.index(DEVICE_ON_PARAMETER)

        await conn.send("/live/device/set/parameter/value",
                        [track_index, device, parameter_index, 1.0 if enabled else 0.0])
        snapshot = await build_device_snapshot(conn, track_index, device)
        snapshot.update({"enabled": bool(enabled), "toggle_parameter_index": parameter_index})
        return json.dumps(snapshot)

    @mcp.tool()
    @_tool_handler("getting device parameters")
    async def device_get_parameters(ctx: Context, track: Union[int, str], device: int) -> str:
        """List every parameter of a device with value, range and quantization.

        Parameters:
        - track: Track index (0-based) or exact track name
        - device: Device index (0-based) in the track's chain
        """
        _validate_index(device, "device")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)

        count = await get_value(conn, "/live/device/get/num_parameters", track_index, device)
        columns = {}
        for prop in ("name", "value", "min", "max", "is_quantized"):
            columns[prop] = await get_values(conn, f"/live/device/get/parameters/{prop}", track_index, device)

        parameters = []
        for i in range(count):
            parameters.append({
                "index": i,
                "name": columns["name"][i],
                "value": columns["value"][i],
                "min": columns["min"][i],
                "max": columns["max"][i],
                "is_quantized": bool(columns["is_quantized"][i]),
            })
        return json.dumps({
            "track_index": track_index,
            "device_index": device,
            "parameter_count": count,
            "parameters": parameters,
        })

    @mcp.tool()
    @_tool_handler("getting device parameter")
    async def device_get_parameter(ctx: Context, track: Union[int, str], device: int,
                                   parameter: Union[int, str]) -> str:
        """Get one device parameter with its display string.

        Parameters:
        - track: Track index (0-based) or exact track name
        - device: Device index (0-based) in the track's chain
        - parameter: Parameter index (0-based) or exact parameter name
        """
        _validate_index(device, "device")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        parameter_index = await resolve_parameter_index(conn, track_index, device, parameter)

        indices = (track_index, device, parameter_index)
        value = await get_value(conn, "/live/device/get/parameter/value", *indices)
        name = await get_value(conn, "/live/device/get/parameter/name", *indices)
        value_string = await get_value(conn, "/live/device/get/parameter/value_string", *indices)
        return json.dumps({
            "track_index": track_index,
            "device_index": device,
            "parameter_index": parameter_index,
            "name": name,
            "value": value,
            "value_string": value_string,
        })

    @mcp.tool()
    @_tool_handler("setting device parameter")
    async def device_set_parameter(ctx: Context, track: Union[int, str], device: int,
                                   parameter: Union[int, str], value: float) -> str:
        """Set a device parameter, rejecting values outside its min/max range.

        Parameters:
        - track: Track index (0-based) or exact track name
        - device: Device index (0-based) in the track's chain
        - parameter: Parameter index (0-based) or exact parameter name
        - value: New raw parameter value
        """
        guard_write("device_set_parameter")
        _validate_index(device, "device")
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise ValueError("value must be a number.")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        parameter_index = await resolve_parameter_index(conn, track_index, device, parameter)

        minimums = await get_values(conn, "/live/device/get/parameters/min", track_index, device)
        maximums = await get_values(conn, "/live/device/get/parameters/max", track_index, device)
        if parameter_index >= len(minimums):
            raise ValueError(
                f"parameter index {parameter_index} out of range; device has {len(minimums)} parameters."
            )
        low, high = minimums[parameter_index], maximums[parameter_index]
        if value < low or value > high:
            return tool_error(
                f"Value {value} outside range [{low}, {high}] for parameter {parameter_index}.",
                code="VALUE_OUT_OF_RANGE",
            )

        await conn.send("/live/device/set/parameter/value", [track_index, device, parameter_index, value])
        value_string = await get_value(conn, "/live/device/get/parameter/value_string",
                                       track_index, device, parameter_index)
        return json.dumps({
            "track_index": track_index,
            "device_index": device,
            "parameter_index": parameter_index,
            "value": value,
            "value_string": value_string,
        })

    @mcp.tool()
    @_tool_handler("selecting device")
    async def device_select(ctx: Context, track: Union[int, str], device: int) -> str:
        """Select a device in Live's UI and show it in the device view.

        Parameters:
        - track: Track index (0-based) or exact track name
        - device: Device index (0-based) in the track's chain
        """
        guard_write("device_select")
        _validate_index(device, "device")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        await conn.send("/live/view/set/selected_device", [track_index, device])
        return json.dumps(await build_device_snapshot(conn, track_index, device))

    @mcp.tool()
    @_tool_handler("deleting device")
    async def device_delete(ctx: Context, track: Union[int, str], device: int) -> str:
        """Delete a device from a track's chain. Later device indices shift down by one.

        Parameters:
        - track: Track index (0-based) or exact track name
        - device: Device index (0-based) in the track's chain
        """
        guard_write("device_delete")
        _validate_index(device, "device")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)
        snapshot = await build_device_snapshot(conn, track_index, device)
        await conn.send("/live/track/delete_device", [track_index, device])
        return json.dumps(dict(snapshot, deleted=True))

    @mcp.tool()
    @_tool_handler("loading device")
    async def device_load(ctx: Context, track: Union[int, str], device_name: str) -> str:
        """Load an instrument or effect from Live's browser onto a track.

        Needs an AbletonOSC build with the insert_device handler.

        Parameters:
        - track: Track index (0-based) or exact track name
        - device_name: Browser name, e.g. "Wavetable", "Operator", "Reverb", "EQ Eight", "Compressor"
        """
        guard_write("device_load")
        if not isinstance(device_name, str) or not device_name.strip():
            raise ValueError("device_name must be a non-empty string.")
        conn = get_session()
        track_index = await resolve_track_index(conn, track)

        # the browser loads onto the selected track
        await conn.send("/live/view/set/selected_track", [track_index])
        try:
            response = await conn.query("/live/track/insert_device", [track_index, device_name],
                                        TIMEOUTS["LOAD_DEVICE"])
        except OscTimeoutError:
            return tool_error(
                "Device loading timed out. Ensure AbletonOSC has the insert_device handler installed.",
                code="LOAD_FAILED",
            )

        # replies are either [device_index] or [track_index, device_index]
        device_index = response[-1] if response else -1
        if device_index == -1:
            return tool_error(
                f'No device matching "{device_name}" in the Ableton browser. '
                f'Use exact browser names like "Wavetable", "EQ Eight" or "Compressor".',
                code="DEVICE_NOT_FOUND",
            )
        return json.dumps(await build_device_snapshot(conn, track_index, device_index))
