"""Room state tracking (chat modes and our own display identity)."""

import logging
from dataclasses import replace

from ..core.events import EventChannel
from .message_builder import user_from_tags
from .models import ChatUser, IrcMessage, RoomState

logger = logging.getLogger(__name__)


def _parse_int(value: str) -> int | None:
    try:
        return int(value)
    except ValueError:
        return None


def apply_room_state(previous: RoomState, tags: dict[str, str]) -> RoomState:
    """Merge ROOMSTATE tags into the previous state.

    Only fields whose tag is present are overwritten; everything else keeps
    its previous value. Values that fail to parse are ignored.
    """
    changes: dict = {}

    if "slow" in tags:
        seconds = _parse_int(tags["slow"])
        if seconds is not None:
            changes["slow_mode_seconds"] = max(seconds, 0)
    if "subs-only" in tags:
        changes["subscriber_only"] = tags["subs-only"] == "1"
    if "emote-only" in tags:
        changes["emote_only"] = tags["emote-only"] == "1"
    if "followers-only" in tags:
        minutes = _parse_int(tags["followers-only"])
        if minutes is not None:
            # -1 means followers-only mode is off
            changes["follower_only_minutes"] = minutes if minutes >= 0 else None
    if "r9k" in tags:
        changes["unique_chat_mode"] = tags["r9k"] == "1"
    if tags.get("room-id"):
        changes["room_id"] = tags["room-id"]

    if not changes:
        return previous
    return replace(previous, **changes)


class RoomStateMachine:
    """Tracks the channel's chat rules and the local user's last USERSTATE."""

    def __init__(self, initial: RoomState | None = None):
        self._state = initial or RoomState()
        self._user_state: IrcMessage | None = None
        self.room_state_changed = EventChannel("room_state_changed")

    @property
    def state(self) -> RoomState:
        return self._state

    @property
    def user_state(self) -> IrcMessage | None:
        """The most recent USERSTATE frame, stored verbatim."""
        return self._user_state

    def apply(self, message: IrcMessage) -> RoomState:
        """Apply a ROOMSTATE frame and notify observers if anything changed."""
        new_state = apply_room_state(self._state, message.tags)
        if new_state != self._state:
            self._state = new_state
            logger.debug(f"Room state updated: {new_state}")
            self.room_state_changed.emit(new_state)
        return self._state

    def cache_user_state(self, message: IrcMessage) -> None:
        self._user_state = message

    def local_user(self, login: str) -> ChatUser:
        """Our own chat appearance, falling back to the bare login."""
        tags = self._user_state.tags if self._user_state else {}
        return user_from_tags(tags, login)

    def reset(self) -> None:
        self._state = RoomState()
        self._user_state = None
