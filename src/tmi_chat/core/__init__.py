"""Core utilities for tmi-chat."""

from .events import EventChannel
from .settings import ChatSettings, Identity

__all__ = [
    "ChatSettings",
    "EventChannel",
    "Identity",
]
