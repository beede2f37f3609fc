"""Chat session - one joined channel with its socket, room state and messages."""

import asyncio
import logging
from enum import Enum

import aiohttp

from ..core.events import EventChannel
from ..core.settings import ChatSettings, Identity
from .connections.base import BaseChatConnection
from .connections.twitch import TwitchChatConnection, build_handshake
from .emotes.resolver import AssetResolver, AssetTable
from .irc import IrcDecoder, encode_pong
from .message_builder import build_chat_message
from .message_store import MessageStore
from .models import ChatCommand, ChatMessage, IrcMessage, RoomState
from .room_state import RoomStateMachine

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle of a chat session."""

    CONNECTING = "connecting"
    JOINED = "joined"
    RECEIVING = "receiving"
    CLOSED = "closed"


class ChatSession:
    """A single channel's chat.

    Owns the relay connection, the room state, the message buffer and the
    asset table. Inbound data is processed strictly in arrival order on the
    event loop that runs ``run()``; sending only queues frames and never
    blocks. A closed session stays closed; reconnecting means creating a new
    session.

    Observers:
        state_changed: emitted with the new SessionState.
        connected: emitted with the channel name once joined.
        disconnected: emitted with the channel name once closed.
        error: emitted with a description of a transport or login failure.

    The message store and room state machine expose their own observers.
    """

    def __init__(
        self,
        channel: str,
        identity: Identity | None = None,
        settings: ChatSettings | None = None,
        connection: BaseChatConnection | None = None,
        resolver: AssetResolver | None = None,
    ):
        self._channel = channel.lstrip("#").lower()
        self._identity = identity or Identity.anonymous()
        self._settings = settings or ChatSettings()
        self._connection = connection or TwitchChatConnection(self._settings.irc_url)
        self._resolver = resolver or AssetResolver.from_settings(self._settings, self._identity)
        self._decoder = IrcDecoder()
        self._state = SessionState.CONNECTING

        self.assets = AssetTable()
        self.room_state = RoomStateMachine()
        self.store = MessageStore(
            max_messages=self._settings.message_limit,
            trim_target=self._settings.message_trim_target,
            hide_moderated=self._settings.hide_banned_messages,
        )

        self.state_changed = EventChannel("state_changed")
        self.connected = EventChannel("connected")
        self.disconnected = EventChannel("disconnected")
        self.error = EventChannel("error")
        self._connection.error.connect(self.error.emit)

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state == SessionState.CLOSED

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return self.store.messages

    @property
    def current_room_state(self) -> RoomState:
        return self.room_state.state

    async def start(self) -> bool:
        """Load assets, open the socket and send the login/join handshake.

        Returns:
            True once joined, False if the session closed during startup.
        """
        if self._state != SessionState.CONNECTING:
            logger.warning(f"#{self._channel}: start() called in state {self._state.value}")
            return False

        self.assets = await self._resolver.resolve(self._channel)
        if self.is_closed:
            return False

        try:
            await self._connection.open()
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            await self._close(f"Connection failed: {e}")
            return False
        if self.is_closed:
            # left while the socket was opening
            await self._connection.close()
            return False

        logger.info(f"Twitch IRC: connecting as {self._identity.login} to #{self._channel}")
        for frame in build_handshake(self._channel, self._identity):
            self._connection.send_raw(frame)

        self._set_state(SessionState.JOINED)
        self.connected.emit(self._channel)
        return True

    async def run(self) -> None:
        """Receive until the connection ends, then close the session."""
        if self._state != SessionState.JOINED:
            return
        self._set_state(SessionState.RECEIVING)

        failure: str | None = None
        try:
            async for chunk in self._connection.iter_chunks():
                if self.is_closed:
                    break
                self.handle_data(chunk)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            failure = f"Connection lost: {e}"
        finally:
            await self._close(failure)

    async def join(self) -> None:
        """Start the session and receive until it closes."""
        try:
            if await self.start():
                await self.run()
        finally:
            await self._close()

    def handle_data(self, chunk: str | bytes) -> None:
        """Decode an inbound chunk and dispatch every complete frame in order."""
        if self.is_closed:
            return
        for message in self._decoder.feed(chunk):
            if message.command == ChatCommand.PING:
                self._connection.send_raw(encode_pong(message.body or " ".join(message.params)))
                continue
            self._dispatch(message)

    def send(self, text: str) -> bool:
        """Send a chat message and echo it locally.

        Returns:
            True if the message was queued. Blank text is ignored silently.
        """
        if self._state not in (SessionState.JOINED, SessionState.RECEIVING):
            logger.warning(f"Cannot send message: not connected to #{self._channel}")
            return False

        if self._identity.is_anonymous:
            self.error.emit("Cannot send: anonymous connections are read-only.")
            return False

        message = self.store.send_local(
            text,
            self.room_state.local_user(self._identity.login),
            self._channel,
            self._connection.send_raw,
            self.assets,
        )
        return message is not None

    async def leave(self) -> None:
        """Close the socket and release the buffer. Safe to call more than once."""
        await self._close()

    def _dispatch(self, message: IrcMessage) -> None:
        command = message.command
        if command in (ChatCommand.PRIVATE_MESSAGE, ChatCommand.USER_NOTICE):
            self.store.append(build_chat_message(message, self.assets))
        elif command == ChatCommand.CLEAR_CHAT:
            self.store.clear_by_user(message.body, message)
        elif command == ChatCommand.CLEAR_MESSAGE:
            self.store.clear_by_id(message.tags.get("target-msg-id", ""))
        elif command == ChatCommand.ROOM_STATE:
            self.room_state.apply(message)
        elif command == ChatCommand.USER_STATE:
            self.room_state.cache_user_state(message)
        elif command == ChatCommand.UNKNOWN and message.raw_command == "NOTICE":
            self._handle_notice(message)

    def _handle_notice(self, message: IrcMessage) -> None:
        text = message.body or ""
        if "Login" in text and ("unsuccessful" in text or "failed" in text):
            logger.warning(f"Twitch IRC: auth failed: {text}")
            self.error.emit(text)
        else:
            logger.debug(f"Twitch IRC notice: {text}")

    def _set_state(self, state: SessionState) -> None:
        if self._state == SessionState.CLOSED:
            return
        if state != self._state:
            self._state = state
            self.state_changed.emit(state)

    async def _close(self, failure: str | None = None) -> None:
        if self.is_closed:
            return
        self._set_state(SessionState.CLOSED)
        if failure:
            logger.warning(f"#{self._channel}: {failure}")
            self.error.emit(failure)
        self._decoder.reset()
        await self._connection.close()
        self.store.clear()
        logger.info(f"Left #{self._channel}")
        self.disconnected.emit(self._channel)
