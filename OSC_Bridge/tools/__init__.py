"""Tool registration for the paranoid-ableton MCP server."""
from . import health, transport, mixer, tracks, clips, devices, scenes, session


def register_all_tools(mcp):
    """Register all tool modules with the MCP server instance."""
    health.register_tools(mcp)
    transport.register_tools(mcp)
    mixer.register_tools(mcp)
    tracks.register_tools(mcp)
    clips.register_tools(mcp)
    devices.register_tools(mcp)
    scenes.register_tools(mcp)
    session.register_tools(mcp)
