"""Conversion of decoded IRC frames into displayable chat messages."""

import logging
import uuid
from datetime import datetime, timezone

from .emotes.renderer import build_badge_spans, learn_twitch_emotes, resolve_text_spans
from .emotes.resolver import AssetTable
from .irc import parse_badges, parse_emote_positions
from .models import ChatCommand, ChatMessage, ChatUser, IrcMessage, MessageSpan, SpanKind

logger = logging.getLogger(__name__)

ACTION_PREFIX = "\x01ACTION "
ACTION_SUFFIX = "\x01"


def parse_timestamp(tags: dict[str, str]) -> datetime:
    """Timestamp from the tmi-sent-ts tag, falling back to now."""
    tmi_sent = tags.get("tmi-sent-ts", "")
    if tmi_sent:
        try:
            return datetime.fromtimestamp(int(tmi_sent) / 1000, tz=timezone.utc)
        except (ValueError, OSError, OverflowError):
            pass
    return datetime.now(timezone.utc)


def user_from_tags(tags: dict[str, str], login: str) -> ChatUser:
    """Parse user info (display name, color, badges) from a frame's tags."""
    display_name = tags.get("display-name", "")
    return ChatUser(
        id=tags.get("user-id", ""),
        name=login.lower(),
        display_name=display_name or login,
        color=tags.get("color") or None,
        badges=parse_badges(tags.get("badges", "")),
    )


def build_spans(
    user: ChatUser,
    text: str,
    assets: AssetTable,
    emotes_tag: str = "",
    is_action: bool = False,
) -> tuple[MessageSpan, ...]:
    """Badges, author name, then the resolved message text."""
    positions = parse_emote_positions(emotes_tag) if text else []
    learn_twitch_emotes(text, positions, assets)

    spans = build_badge_spans(user.badges, assets)
    spans.append(MessageSpan(kind=SpanKind.NAME, text=user.display_name, color=user.color))
    spans.extend(
        resolve_text_spans(text, assets, positions, color=user.color if is_action else None)
    )
    return tuple(spans)


def build_chat_message(message: IrcMessage, assets: AssetTable) -> ChatMessage:
    """Build a ChatMessage from a PRIVMSG or USERNOTICE frame."""
    tags = message.tags
    text = message.body or ""

    # Check for /me action
    is_action = False
    if text.startswith(ACTION_PREFIX) and text.endswith(ACTION_SUFFIX):
        is_action = True
        text = text[len(ACTION_PREFIX) : -len(ACTION_SUFFIX)]

    login = tags.get("login") or message.sender or ""
    user = user_from_tags(tags, login)
    is_system = message.command == ChatCommand.USER_NOTICE

    return ChatMessage(
        id=tags.get("id", str(uuid.uuid4())),
        user=user,
        text=text,
        timestamp=parse_timestamp(tags),
        command=message.command,
        tags=dict(tags),
        spans=build_spans(user, text, assets, tags.get("emotes", ""), is_action),
        is_action=is_action,
        is_first_message=tags.get("first-msg", "0") == "1",
        is_system=is_system,
        system_text=tags.get("system-msg", "") if is_system else "",
    )


def build_local_message(text: str, user: ChatUser, assets: AssetTable) -> ChatMessage:
    """Synthesize our own message for local echo.

    Twitch IRC doesn't echo your own messages back, so the local copy is
    stamped with the identity derived from the cached USERSTATE.
    """
    return ChatMessage(
        id=str(uuid.uuid4()),
        user=user,
        text=text,
        timestamp=datetime.now(timezone.utc),
        command=ChatCommand.PRIVATE_MESSAGE,
        spans=build_spans(user, text, assets),
        is_local=True,
    )
