"""Twitch IRC transport over WebSocket."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

import aiohttp

from ...core.settings import TWITCH_IRC_WS_URL, Identity
from .base import BaseChatConnection

logger = logging.getLogger(__name__)

# IRC capabilities to request
IRC_CAPS = [
    "twitch.tv/tags",
    "twitch.tv/commands",
]


def build_handshake(channel: str, identity: Identity) -> list[str]:
    """Frames that log in and join a channel, in the order the relay expects.

    Anonymous identities skip PASS; Twitch accepts any justinfan nick without it.
    """
    frames = [f"CAP REQ :{' '.join(IRC_CAPS)}"]
    if identity.token:
        token = identity.token.removeprefix("oauth:")
        frames.append(f"PASS oauth:{token}")
    frames.append(f"NICK {identity.login.lower()}")
    frames.append(f"JOIN #{channel.lstrip('#').lower()}")
    return frames


class TwitchChatConnection(BaseChatConnection):
    """Twitch IRC chat connection over WebSocket.

    Outbound frames are queued and written by a single writer task so they
    reach the relay in the order they were queued.
    """

    def __init__(
        self,
        url: str = TWITCH_IRC_WS_URL,
        session: aiohttp.ClientSession | None = None,
    ):
        super().__init__()
        self._url = url
        self._session = session
        self._owns_session = session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._outbound: asyncio.Queue[str] | None = None
        self._writer_task: asyncio.Task | None = None
        self._closing = False

    async def open(self) -> None:
        """Connect the WebSocket and start the writer."""
        self._closing = False
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        self._ws = await self._session.ws_connect(self._url)
        self._outbound = asyncio.Queue()
        self._writer_task = asyncio.create_task(self._write_loop())
        logger.info(f"Twitch IRC: connected to {self._url}")
        self._set_connected()

    def send_raw(self, frame: str) -> bool:
        if self._closing or self._outbound is None or not self._ws or self._ws.closed:
            return False
        self._outbound.put_nowait(frame)
        return True

    async def iter_chunks(self) -> AsyncIterator[str | bytes]:
        """Yield WebSocket text payloads until the socket closes."""
        ws = self._ws
        if not ws:
            return
        msg_count = 0
        async for msg in ws:
            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                msg_count += 1
                if msg_count <= 3:
                    logger.debug(f"Twitch IRC raw [{msg_count}]: {str(msg.data)[:200]}")
                yield msg.data
            elif msg.type == aiohttp.WSMsgType.ERROR:
                if not self._closing:
                    self._emit_error(f"WebSocket error: {ws.exception()}")
                break
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED):
                break

    async def _write_loop(self) -> None:
        queue = self._outbound
        if queue is None:
            return
        while True:
            frame = await queue.get()
            if not self._ws or self._ws.closed:
                break
            try:
                await self._ws.send_str(frame)
            except (aiohttp.ClientError, ConnectionResetError) as e:
                if not self._closing:
                    self._emit_error(f"Failed to send frame: {e}")
                break

    async def close(self) -> None:
        """Clean up writer, WebSocket and session."""
        self._closing = True
        if self._writer_task:
            self._writer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer_task
        self._writer_task = None
        self._outbound = None
        if self._ws and not self._ws.closed:
            await self._ws.close()
        self._ws = None
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._set_disconnected()
