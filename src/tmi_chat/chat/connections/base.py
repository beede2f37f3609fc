"""Base chat connection abstract class."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from ...core.events import EventChannel

logger = logging.getLogger(__name__)


class BaseChatConnection(ABC):
    """Abstract transport to a chat relay.

    A connection moves raw protocol text only: frames go out through
    ``send_raw`` and inbound chunks come back from ``iter_chunks``. Decoding
    and dispatch belong to the session that owns it.

    Observers:
        connected: emitted once the socket is open.
        disconnected: emitted once the socket is released.
        error: emitted with a description of a transport failure.
    """

    def __init__(self) -> None:
        self._is_connected: bool = False
        self.connected = EventChannel("connected")
        self.disconnected = EventChannel("disconnected")
        self.error = EventChannel("error")

    @property
    def is_connected(self) -> bool:
        """Whether the connection is active."""
        return self._is_connected

    @abstractmethod
    async def open(self) -> None:
        """Open the socket to the relay."""

    @abstractmethod
    def send_raw(self, frame: str) -> bool:
        """Queue a frame for sending without blocking.

        Returns:
            False if the connection cannot send anymore.
        """

    @abstractmethod
    def iter_chunks(self) -> AsyncIterator[str | bytes]:
        """Yield inbound data chunks until the connection ends."""

    @abstractmethod
    async def close(self) -> None:
        """Close the socket, dropping anything not yet delivered."""

    def _set_connected(self) -> None:
        """Mark as connected and emit signal."""
        self._is_connected = True
        self.connected.emit()

    def _set_disconnected(self) -> None:
        """Mark as disconnected and emit signal."""
        if not self._is_connected:
            return
        self._is_connected = False
        self.disconnected.emit()

    def _emit_error(self, message: str) -> None:
        """Emit an error."""
        logger.error(f"Chat connection error ({self.__class__.__name__}): {message}")
        self.error.emit(message)
