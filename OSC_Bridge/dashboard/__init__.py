"""Web status dashboard for paranoid-ableton."""
