"""Data models for the chat core."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ChatCommand(str, Enum):
    """IRC commands the chat core understands."""

    PRIVATE_MESSAGE = "PRIVMSG"
    CLEAR_CHAT = "CLEARCHAT"
    CLEAR_MESSAGE = "CLEARMSG"
    ROOM_STATE = "ROOMSTATE"
    USER_STATE = "USERSTATE"
    USER_NOTICE = "USERNOTICE"
    GLOBAL_USER_STATE = "GLOBALUSERSTATE"
    PING = "PING"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_token(cls, token: str) -> "ChatCommand":
        """Map a raw command token to a command, UNKNOWN if unrecognized."""
        try:
            command = cls(token.upper())
        except ValueError:
            return cls.UNKNOWN
        return command


@dataclass(frozen=True)
class IrcMessage:
    """A single decoded IRC frame."""

    command: ChatCommand
    tags: dict[str, str] = field(default_factory=dict)
    sender: str | None = None
    params: tuple[str, ...] = ()
    body: str | None = None
    raw_command: str = ""
    raw: str = ""

    @property
    def channel(self) -> str | None:
        """The channel parameter (without '#'), if the frame targets one."""
        for param in self.params:
            if param.startswith("#"):
                return param[1:]
        return None


@dataclass(frozen=True)
class RoomState:
    """Channel-wide chat rules (ROOMSTATE)."""

    slow_mode_seconds: int = 0
    subscriber_only: bool = False
    emote_only: bool = False
    follower_only_minutes: int | None = None  # None = followers-only off
    unique_chat_mode: bool = False  # R9K
    room_id: str | None = None


@dataclass
class ChatEmote:
    """Represents a chat emote from any provider."""

    id: str
    name: str  # Text code (e.g., "KEKW")
    url: str
    provider: str  # "twitch", "7tv", "bttv", "ffz"


@dataclass
class ChatBadge:
    """Represents a chat badge (sub, mod, etc.)."""

    id: str  # "set_id/version_id"
    name: str
    image_url: str = ""


@dataclass
class ChatUser:
    """Represents a chat message author."""

    id: str
    name: str  # Login, lowercase
    display_name: str
    color: str | None = None
    badges: list[ChatBadge] = field(default_factory=list)


class SpanKind(str, Enum):
    """Kinds of render spans."""

    BADGE = "badge"
    NAME = "name"
    TEXT = "text"
    EMOTE = "emote"


@dataclass(frozen=True)
class MessageSpan:
    """A renderable piece of a message (badge, author name, text or emote)."""

    kind: SpanKind
    text: str = ""
    url: str | None = None
    color: str | None = None


@dataclass(frozen=True)
class ChatMessage:
    """A processed, displayable chat message."""

    id: str
    user: ChatUser
    text: str
    timestamp: datetime
    command: ChatCommand = ChatCommand.PRIVATE_MESSAGE
    tags: dict[str, str] = field(default_factory=dict)
    spans: tuple[MessageSpan, ...] = ()
    is_action: bool = False  # /me messages
    is_first_message: bool = False
    is_system: bool = False  # USERNOTICE (sub, raid, etc.)
    system_text: str = ""  # System message text (e.g., "UserX subscribed!")
    is_local: bool = False  # Synthesized from our own send
    is_moderated: bool = False  # Content redacted, marker kept
    moderation_type: str | None = None  # "ban", "timeout", "delete"
    ban_duration: int | None = None  # Timeout duration in seconds

    @property
    def moderation_text(self) -> str:
        """Human readable marker for a moderated message."""
        if not self.is_moderated:
            return ""
        if self.moderation_type == "delete":
            return "Message deleted."
        if self.moderation_type == "timeout" and self.ban_duration is not None:
            return f"Timed out for {self.ban_duration} second(s)."
        return "Permanently banned."
