"""Streaming chat core for Twitch-style IRC relays."""

from .__version__ import __version__

__all__ = ["__version__"]
