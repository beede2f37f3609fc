"""Twitch chat core: protocol decoding, room state, message buffer and sessions."""

from .emotes.resolver import AssetResolver, AssetTable
from .exceptions import ChatError, MalformedFrameError, ProviderError
from .irc import IrcDecoder, parse_irc_message, parse_irc_tags
from .message_store import MessageStore
from .models import ChatCommand, ChatMessage, IrcMessage, RoomState
from .room_state import RoomStateMachine, apply_room_state
from .session import ChatSession, SessionState

__all__ = [
    "AssetResolver",
    "AssetTable",
    "ChatCommand",
    "ChatError",
    "ChatMessage",
    "ChatSession",
    "IrcDecoder",
    "IrcMessage",
    "MalformedFrameError",
    "MessageStore",
    "ProviderError",
    "RoomState",
    "RoomStateMachine",
    "SessionState",
    "apply_room_state",
    "parse_irc_message",
    "parse_irc_tags",
]
