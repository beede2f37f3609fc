"""Twitch IRC frame decoding and encoding."""

import codecs
import logging

from .emotes.provider import twitch_emote_url
from .exceptions import MalformedFrameError
from .models import ChatBadge, ChatCommand, ChatEmote, IrcMessage

logger = logging.getLogger(__name__)

FRAME_TERMINATOR = "\r\n"


def parse_irc_tags(tag_string: str) -> dict[str, str]:
    """Parse IRC tags string into a dictionary.

    Tags format: @key1=value1;key2=value2;...

    Pairs with an empty value (``key=``) or without ``=`` are dropped rather
    than stored as empty strings. ``\\s`` is unescaped to a space.
    """
    tags: dict[str, str] = {}
    if not tag_string:
        return tags

    # Remove leading '@' if present
    if tag_string.startswith("@"):
        tag_string = tag_string[1:]

    for pair in tag_string.split(";"):
        if "=" not in pair:
            continue
        key, value = pair.split("=", 1)
        if not key or not value:
            continue
        tags[key] = value.replace("\\s", " ")

    return tags


def parse_irc_message(raw: str) -> IrcMessage:
    """Parse a single raw IRC frame (without terminator).

    Raises:
        MalformedFrameError: if the frame has no command or a section is cut short.
    """
    pos = 0
    tags: dict[str, str] = {}

    # Parse tags
    if raw.startswith("@"):
        space_idx = raw.find(" ")
        if space_idx < 0:
            raise MalformedFrameError(f"tag section is not followed by a command: {raw[:80]!r}")
        tags = parse_irc_tags(raw[:space_idx])
        pos = space_idx + 1

    # Parse prefix
    sender: str | None = None
    if raw.startswith(":", pos):
        space_idx = raw.find(" ", pos)
        if space_idx < 0:
            raise MalformedFrameError(f"prefix is not followed by a command: {raw[:80]!r}")
        prefix = raw[pos + 1 : space_idx]
        sender = prefix.split("!", 1)[0] or None
        pos = space_idx + 1

    # Parse command, params and trailing body
    body: str | None = None
    trailing_idx = raw.find(" :", pos)
    if trailing_idx >= 0:
        body = raw[trailing_idx + 2 :]
        remaining = raw[pos:trailing_idx]
    else:
        remaining = raw[pos:]

    parts = [part for part in remaining.split(" ") if part]
    if not parts:
        raise MalformedFrameError(f"frame has no command: {raw[:80]!r}")

    return IrcMessage(
        command=ChatCommand.from_token(parts[0]),
        tags=tags,
        sender=sender,
        params=tuple(parts[1:]),
        body=body,
        raw_command=parts[0],
        raw=raw,
    )


class IrcDecoder:
    """Incremental decoder turning transport chunks into IRC messages.

    Frames split across chunks are buffered until their terminator arrives.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """Text of the incomplete frame waiting for more data."""
        return self._buffer

    def feed(self, chunk: str | bytes) -> list[IrcMessage]:
        """Decode every complete frame in ``chunk``; malformed frames are skipped."""
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)

        lines = (self._buffer + chunk).split("\n")
        self._buffer = lines.pop()

        messages: list[IrcMessage] = []
        for line in lines:
            line = line.rstrip("\r")
            if not line:
                continue
            try:
                messages.append(parse_irc_message(line))
            except MalformedFrameError as e:
                logger.debug(f"Skipping malformed frame: {e}")
        return messages

    def reset(self) -> None:
        """Discard any buffered partial frame."""
        self._buffer = ""
        self._utf8.reset()


def parse_emote_positions(emotes_tag: str) -> list[tuple[int, int, ChatEmote]]:
    """Parse Twitch emote positions from IRC tags.

    Format: emote_id:start-end,start-end/emote_id:start-end
    The emote name is left empty; it is filled from the message text.
    """
    positions: list[tuple[int, int, ChatEmote]] = []
    if not emotes_tag:
        return positions

    for emote_section in emotes_tag.split("/"):
        if ":" not in emote_section:
            continue
        emote_id, ranges = emote_section.split(":", 1)
        emote = ChatEmote(
            id=emote_id,
            name="",
            url=twitch_emote_url(emote_id),
            provider="twitch",
        )
        for range_str in ranges.split(","):
            if "-" in range_str:
                start_str, end_str = range_str.split("-", 1)
                try:
                    start = int(start_str)
                    end = int(end_str) + 1  # Twitch uses inclusive end
                except ValueError:
                    continue
                if start < 0 or end <= start:
                    continue
                positions.append((start, end, emote))

    return sorted(positions, key=lambda x: x[0])


def parse_badges(badges_tag: str) -> list[ChatBadge]:
    """Parse Twitch badges from IRC tags.

    Format: badge_name/version,badge_name/version
    The image_url is left empty here; it is resolved from the asset table.
    """
    badges: list[ChatBadge] = []
    if not badges_tag:
        return badges

    for badge_str in badges_tag.split(","):
        if "/" in badge_str:
            name, version = badge_str.split("/", 1)
            badges.append(ChatBadge(id=f"{name}/{version}", name=name))

    return badges


def _strip_line_breaks(text: str) -> str:
    return text.replace("\r", " ").replace("\n", " ")


def encode_privmsg(channel: str, text: str) -> str:
    """Build a PRIVMSG frame for a channel."""
    return f"PRIVMSG #{channel.lstrip('#').lower()} :{_strip_line_breaks(text)}"


def encode_pong(host: str) -> str:
    """Build the keepalive reply for a PING."""
    return f"PONG :{host}"
