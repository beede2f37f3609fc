"""Observer channels for notifying the UI collaborator."""

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class EventChannel:
    """A list of subscriber callbacks notified in subscription order.

    Used in place of toolkit signals so the chat core stays free of any UI
    framework. A failing subscriber is logged and does not prevent the
    remaining subscribers from being notified.
    """

    def __init__(self, name: str = ""):
        self._name = name
        self._callbacks: list[Callable[..., Any]] = []

    @property
    def name(self) -> str:
        return self._name

    def connect(self, callback: Callable[..., Any]) -> Callable[..., Any]:
        """Subscribe a callback. Returns the callback so it can be used as a decorator."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)
        return callback

    def disconnect(self, callback: Callable[..., Any]) -> None:
        """Unsubscribe a callback (no-op if it was never connected)."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def clear(self) -> None:
        self._callbacks.clear()

    def emit(self, *args: Any) -> None:
        for callback in list(self._callbacks):
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Subscriber of '{self._name}' failed: {e}")

    def __len__(self) -> int:
        return len(self._callbacks)
