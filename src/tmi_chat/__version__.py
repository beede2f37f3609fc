"""Version information for tmi-chat."""

__version__ = "0.3.0"
