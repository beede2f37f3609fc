"""Exceptions raised inside the chat core."""


class ChatError(Exception):
    """Base exception for all chat core errors."""


class MalformedFrameError(ChatError):
    """An IRC frame could not be decoded."""


class ProviderError(ChatError):
    """An asset provider returned data in an unexpected shape."""
