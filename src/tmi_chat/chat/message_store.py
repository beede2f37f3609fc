"""Chat message store backed by a bounded deque."""

import collections
import logging
from collections.abc import Callable, Iterator
from dataclasses import replace

from ..core.events import EventChannel
from .emotes.resolver import AssetTable
from .irc import encode_privmsg
from .message_builder import build_local_message
from .models import ChatMessage, ChatUser, IrcMessage, SpanKind

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_LIMIT = 200
DEFAULT_TRIM_TARGET = 180


class MessageStore:
    """Ordered, size-bounded buffer of chat messages.

    Messages are appended in arrival order. Once the buffer grows past
    ``max_messages`` the oldest entries are dropped until ``trim_target``
    remain, so trimming happens in batches instead of on every append.

    Observers:
        message_added: emitted with each appended message.
        messages_changed: emitted with no arguments after every mutation.
        scroll_to_end: emitted after a mutation while auto-scroll is enabled.
        auto_scroll_changed: emitted with the new flag value.
    """

    def __init__(
        self,
        max_messages: int = DEFAULT_MESSAGE_LIMIT,
        trim_target: int = DEFAULT_TRIM_TARGET,
        hide_moderated: bool = False,
    ):
        if trim_target > max_messages:
            raise ValueError("trim_target must not exceed max_messages")
        self._messages: collections.deque[ChatMessage] = collections.deque()
        self._max_messages = max_messages
        self._trim_target = trim_target
        self._hide_moderated = hide_moderated
        self._auto_scroll = True

        self.message_added = EventChannel("message_added")
        self.messages_changed = EventChannel("messages_changed")
        self.scroll_to_end = EventChannel("scroll_to_end")
        self.auto_scroll_changed = EventChannel("auto_scroll_changed")

    @property
    def auto_scroll(self) -> bool:
        return self._auto_scroll

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(tuple(self._messages))

    def append(self, message: ChatMessage) -> None:
        """Add a message at the tail, trimming the head once over the limit."""
        self._messages.append(message)
        if len(self._messages) > self._max_messages:
            overflow = len(self._messages) - self._trim_target
            for _ in range(overflow):
                self._messages.popleft()
            logger.debug(f"Trimmed {overflow} old messages")
        self.message_added.emit(message)
        self._notify()

    def clear_by_user(self, target_login: str | None, irc_message: IrcMessage | None = None) -> int:
        """Handle a CLEARCHAT.

        With a target, every message from that user is redacted (or removed
        when moderated messages are hidden). Without one, the buffer is
        emptied. Returns the number of affected messages.
        """
        if not target_login:
            count = len(self._messages)
            self._messages.clear()
            self._notify()
            return count

        target = target_login.lower()
        tags = irc_message.tags if irc_message else {}
        duration = tags.get("ban-duration")
        try:
            ban_duration = int(duration) if duration else None
        except ValueError:
            ban_duration = None
        moderation_type = "timeout" if ban_duration is not None else "ban"

        count = 0
        for i, msg in enumerate(self._messages):
            if msg.user.name == target:
                self._messages[i] = self._redact(msg, moderation_type, ban_duration)
                count += 1

        if count:
            self._drop_hidden()
            self._notify()
        return count

    def clear_by_id(self, message_id: str) -> bool:
        """Handle a CLEARMSG: redact the single message with this id, if present."""
        if not message_id:
            return False
        for i, msg in enumerate(self._messages):
            if msg.id == message_id:
                self._messages[i] = self._redact(msg, "delete", None)
                self._drop_hidden()
                self._notify()
                return True
        return False

    def send_local(
        self,
        text: str,
        user: ChatUser,
        channel: str,
        transmit: Callable[[str], object],
        assets: AssetTable | None = None,
    ) -> ChatMessage | None:
        """Transmit a PRIVMSG and echo it into the buffer.

        Blank text is ignored, and nothing is echoed when ``transmit`` returns
        False. Returns the echoed message.
        """
        if not text or not text.strip():
            return None

        if transmit(encode_privmsg(channel, text)) is False:
            logger.warning(f"Message to #{channel.lstrip('#')} was not sent")
            return None
        message = build_local_message(text, user, assets if assets is not None else AssetTable())
        self.append(message)
        return message

    def set_viewport_at_bottom(self, at_bottom: bool) -> None:
        """Track manual scrolling: leaving the bottom edge pauses auto-scroll."""
        if at_bottom == self._auto_scroll:
            return
        self._auto_scroll = at_bottom
        self.auto_scroll_changed.emit(at_bottom)

    def resume_scroll(self) -> None:
        """Re-enable auto-scroll and jump to the latest message."""
        self.set_viewport_at_bottom(True)
        self.scroll_to_end.emit()

    def find(self, message_id: str) -> ChatMessage | None:
        for msg in self._messages:
            if msg.id == message_id:
                return msg
        return None

    def get_message(self, row: int) -> ChatMessage | None:
        """Get a message by row index."""
        if 0 <= row < len(self._messages):
            return self._messages[row]
        return None

    def get_recent_messages(self, limit: int) -> list[ChatMessage]:
        """Return up to the last N messages."""
        if limit <= 0 or not self._messages:
            return []
        return list(self._messages)[-limit:]

    def clear(self) -> None:
        """Remove all messages without notifying (session teardown)."""
        self._messages.clear()

    @staticmethod
    def _redact(msg: ChatMessage, moderation_type: str, ban_duration: int | None) -> ChatMessage:
        return replace(
            msg,
            text="",
            spans=tuple(s for s in msg.spans if s.kind in (SpanKind.BADGE, SpanKind.NAME)),
            is_moderated=True,
            moderation_type=moderation_type,
            ban_duration=ban_duration,
        )

    def _drop_hidden(self) -> None:
        if self._hide_moderated:
            kept = [msg for msg in self._messages if not msg.is_moderated]
            self._messages = collections.deque(kept)

    def _notify(self) -> None:
        self.messages_changed.emit()
        if self._auto_scroll:
            self.scroll_to_end.emit()
