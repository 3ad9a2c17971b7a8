"""Ableton Live session access over AbletonOSC through the Model Context Protocol."""

__version__ = "0.1.0"

# Expose key classes and functions for easier imports
from .connections.osc import OscClient, OscConfig
from .connections.session import ConnectionSession, get_session
