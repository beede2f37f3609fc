"""Shared test fixtures for tmi_chat tests."""

from datetime import datetime, timezone

import pytest

from tmi_chat.chat.connections.base import BaseChatConnection
from tmi_chat.chat.emotes.resolver import AssetResolver, AssetTable
from tmi_chat.chat.models import ChatBadge, ChatMessage, ChatUser
from tmi_chat.chat.session import ChatSession
from tmi_chat.core.settings import ChatSettings, Identity


class FakeConnection(BaseChatConnection):
    """In-memory transport recording outbound frames."""

    def __init__(self, chunks=None, fail_open: Exception | None = None):
        super().__init__()
        self.sent: list[str] = []
        self.chunks = list(chunks or [])
        self.fail_open = fail_open
        self.opened = False
        self.closed = False

    async def open(self):
        if self.fail_open:
            raise self.fail_open
        self.opened = True
        self._set_connected()

    def send_raw(self, frame):
        if not self.opened or self.closed:
            return False
        self.sent.append(frame)
        return True

    async def iter_chunks(self):
        for chunk in self.chunks:
            if self.closed:
                return
            yield chunk

    async def close(self):
        self.closed = True
        self._set_disconnected()


class FakeResolver(AssetResolver):
    """Resolver returning a fixed table without touching the network."""

    def __init__(self, assets=None):
        super().__init__([])
        self.assets = dict(assets or {})
        self.calls: list[str] = []

    async def resolve(self, channel_login, channel_id=None, session=None):
        self.calls.append(channel_login)
        return AssetTable(self.assets)


@pytest.fixture
def identity():
    return Identity(login="tester", token="abc123")


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def resolver():
    return FakeResolver(
        {"Kappa": "https://cdn.example/kappa", "moderator/1": "https://cdn.example/mod"}
    )


@pytest.fixture
def session(identity, connection, resolver):
    return ChatSession("Bar", identity, ChatSettings(), connection=connection, resolver=resolver)


@pytest.fixture
def chat_user():
    return ChatUser(
        id="12345",
        name="testuser",
        display_name="TestUser",
        color="#FF0000",
        badges=[
            ChatBadge(id="subscriber/12", name="subscriber", image_url="https://example.com/sub"),
        ],
    )


@pytest.fixture
def make_message():
    """Factory for chat messages from a given login."""
    counter = {"n": 0}

    def _make(login: str = "alice", text: str = "hello", msg_id: str | None = None) -> ChatMessage:
        counter["n"] += 1
        return ChatMessage(
            id=msg_id or f"msg-{counter['n']:03d}",
            user=ChatUser(id=str(counter["n"]), name=login, display_name=login.title()),
            text=text,
            timestamp=datetime(2025, 1, 1, 12, 30, 0, tzinfo=timezone.utc),
        )

    return _make
