"""Tests for the chat session lifecycle and inbound dispatch."""

import asyncio

import pytest

from tmi_chat.chat.connections.twitch import build_handshake
from tmi_chat.chat.models import RoomState, SpanKind
from tmi_chat.chat.session import ChatSession, SessionState
from tmi_chat.core.settings import ChatSettings, Identity

from conftest import FakeConnection, FakeResolver

PRIVMSG = (
    "@badges=moderator/1;color=#FF0000;display-name=Foo;id=m1;tmi-sent-ts=1000;user-id=1 "
    ":foo!foo@foo.tmi.twitch.tv PRIVMSG #bar :hello Kappa\r\n"
)


# --- handshake ---


def test_build_handshake_authenticated():
    frames = build_handshake("Bar", Identity("Tester", "oauth:abc123"))
    assert frames == [
        "CAP REQ :twitch.tv/tags twitch.tv/commands",
        "PASS oauth:abc123",
        "NICK tester",
        "JOIN #bar",
    ]


def test_build_handshake_anonymous():
    identity = Identity.anonymous()
    frames = build_handshake("#bar", identity)
    assert identity.login.startswith("justinfan")
    assert frames == [
        "CAP REQ :twitch.tv/tags twitch.tv/commands",
        f"NICK {identity.login}",
        "JOIN #bar",
    ]


# --- start ---


@pytest.mark.asyncio
async def test_start_sends_handshake_in_order(session, connection, resolver):
    joined = []
    session.connected.connect(joined.append)

    assert await session.start() is True

    assert connection.sent == [
        "CAP REQ :twitch.tv/tags twitch.tv/commands",
        "PASS oauth:abc123",
        "NICK tester",
        "JOIN #bar",
    ]
    assert session.state == SessionState.JOINED
    assert joined == ["bar"]
    assert resolver.calls == ["bar"]
    assert "Kappa" in session.assets


@pytest.mark.asyncio
async def test_start_twice_is_rejected(session):
    assert await session.start() is True
    assert await session.start() is False


@pytest.mark.asyncio
async def test_start_open_failure_closes_session(resolver):
    connection = FakeConnection(fail_open=OSError("refused"))
    session = ChatSession(
        "bar", Identity("tester", "tok"), connection=connection, resolver=resolver
    )
    errors = []
    session.error.connect(errors.append)

    assert await session.start() is False

    assert session.state == SessionState.CLOSED
    assert errors == ["Connection failed: refused"]
    assert connection.sent == []


@pytest.mark.asyncio
async def test_leave_during_asset_load(identity, connection):
    class LeavingResolver(FakeResolver):
        async def resolve(self, channel_login, channel_id=None, session=None):
            await chat.leave()
            return await super().resolve(channel_login, channel_id, session)

    chat = ChatSession("bar", identity, connection=connection, resolver=LeavingResolver())

    assert await chat.start() is False
    assert connection.opened is False
    assert chat.is_closed


# --- inbound dispatch ---


@pytest.mark.asyncio
async def test_ping_answered_without_buffer_change(session, connection):
    await session.start()
    connection.sent.clear()

    session.handle_data("PING :tmi.twitch.tv\r\n")

    assert connection.sent == ["PONG :tmi.twitch.tv"]
    assert session.messages == ()


@pytest.mark.asyncio
async def test_privmsg_appended_with_spans(session):
    await session.start()
    session.handle_data(PRIVMSG)

    assert len(session.messages) == 1
    msg = session.messages[0]
    assert msg.text == "hello Kappa"
    assert [s.kind for s in msg.spans] == [
        SpanKind.BADGE,
        SpanKind.NAME,
        SpanKind.TEXT,
        SpanKind.EMOTE,
    ]


@pytest.mark.asyncio
async def test_frames_split_across_chunks(session):
    await session.start()
    session.handle_data(PRIVMSG[:50])
    assert session.messages == ()
    session.handle_data(PRIVMSG[50:])
    assert [m.id for m in session.messages] == ["m1"]


@pytest.mark.asyncio
async def test_clearchat_redacts_user(session):
    await session.start()
    session.handle_data(PRIVMSG)
    session.handle_data("@ban-duration=60 :tmi.twitch.tv CLEARCHAT #bar :foo\r\n")

    msg = session.messages[0]
    assert msg.is_moderated
    assert msg.moderation_type == "timeout"
    assert msg.ban_duration == 60


@pytest.mark.asyncio
async def test_clearchat_without_target_empties(session):
    await session.start()
    session.handle_data(PRIVMSG)
    session.handle_data(":tmi.twitch.tv CLEARCHAT #bar\r\n")
    assert session.messages == ()


@pytest.mark.asyncio
async def test_clearmsg_redacts_single_message(session):
    await session.start()
    session.handle_data(PRIVMSG)
    session.handle_data("@login=foo;target-msg-id=m1 :tmi.twitch.tv CLEARMSG #bar :hello Kappa\r\n")
    assert session.messages[0].moderation_type == "delete"


@pytest.mark.asyncio
async def test_hide_banned_messages_setting(identity, connection, resolver):
    settings = ChatSettings(hide_banned_messages=True)
    chat = ChatSession("bar", identity, settings, connection=connection, resolver=resolver)
    await chat.start()
    chat.handle_data(PRIVMSG)
    chat.handle_data(":tmi.twitch.tv CLEARCHAT #bar :foo\r\n")
    assert chat.messages == ()


@pytest.mark.asyncio
async def test_roomstate_merges(session):
    await session.start()
    changes = []
    session.room_state.room_state_changed.connect(changes.append)

    session.handle_data("@subs-only=1 :tmi.twitch.tv ROOMSTATE #bar\r\n")
    session.handle_data("@slow=10 :tmi.twitch.tv ROOMSTATE #bar\r\n")

    assert session.current_room_state == RoomState(slow_mode_seconds=10, subscriber_only=True)
    assert len(changes) == 2


@pytest.mark.asyncio
async def test_unknown_commands_are_ignored(session):
    await session.start()
    session.handle_data(":tmi.twitch.tv 001 tester :Welcome, GLHF!\r\n:tmi.twitch.tv RECONNECT\r\n")
    assert session.messages == ()
    assert session.state == SessionState.JOINED


@pytest.mark.asyncio
async def test_login_failure_notice_reported(session):
    await session.start()
    errors = []
    session.error.connect(errors.append)
    session.handle_data(":tmi.twitch.tv NOTICE * :Login authentication failed\r\n")
    assert errors == ["Login authentication failed"]


# --- send ---


@pytest.mark.asyncio
async def test_send_uses_user_state_identity(session, connection):
    await session.start()
    session.handle_data(
        "@badges=moderator/1;color=#00FF00;display-name=Tester :tmi.twitch.tv USERSTATE #bar\r\n"
    )
    connection.sent.clear()

    assert session.send("hi Kappa") is True

    assert connection.sent == ["PRIVMSG #bar :hi Kappa"]
    msg = session.messages[-1]
    assert msg.is_local
    assert msg.user.display_name == "Tester"
    assert msg.user.color == "#00FF00"
    assert msg.spans[0].kind == SpanKind.BADGE


@pytest.mark.asyncio
async def test_send_blank_text_is_ignored(session, connection):
    await session.start()
    connection.sent.clear()
    assert session.send("   ") is False
    assert connection.sent == []
    assert session.messages == ()


def test_send_before_join_is_refused(session, connection):
    assert session.send("hello") is False
    assert connection.sent == []


@pytest.mark.asyncio
async def test_send_anonymous_is_refused(connection, resolver):
    chat = ChatSession("bar", connection=connection, resolver=resolver)
    errors = []
    chat.error.connect(errors.append)
    await chat.start()
    connection.sent.clear()

    assert chat.send("hello") is False

    assert connection.sent == []
    assert len(errors) == 1


# --- leave / run ---


@pytest.mark.asyncio
async def test_leave_closes_and_clears(session, connection):
    left = []
    states = []
    session.disconnected.connect(left.append)
    session.state_changed.connect(states.append)
    await session.start()
    session.handle_data(PRIVMSG)

    await session.leave()
    await session.leave()

    assert connection.closed
    assert session.messages == ()
    assert left == ["bar"]
    assert states == [SessionState.JOINED, SessionState.CLOSED]
    assert session.send("hello") is False


@pytest.mark.asyncio
async def test_data_after_leave_is_ignored(session):
    await session.start()
    await session.leave()
    session.handle_data(PRIVMSG)
    assert session.messages == ()


@pytest.mark.asyncio
async def test_join_processes_chunks_then_closes(identity, resolver):
    connection = FakeConnection(
        chunks=[PRIVMSG[:30], PRIVMSG[30:], "PING :tmi.twitch.tv\r\n"]
    )
    chat = ChatSession("bar", identity, connection=connection, resolver=resolver)
    received = []
    left = []
    chat.store.message_added.connect(received.append)
    chat.disconnected.connect(left.append)

    await chat.join()

    assert [m.id for m in received] == ["m1"]
    assert connection.sent[-1] == "PONG :tmi.twitch.tv"
    assert chat.state == SessionState.CLOSED
    assert left == ["bar"]


@pytest.mark.asyncio
async def test_run_requires_join(session, connection):
    await session.run()
    assert session.state == SessionState.CONNECTING
    assert not connection.closed


@pytest.mark.asyncio
async def test_run_reports_transport_failure(identity, resolver):
    class BrokenConnection(FakeConnection):
        async def iter_chunks(self):
            yield PRIVMSG
            raise ConnectionResetError("reset by peer")

    connection = BrokenConnection()
    chat = ChatSession("bar", identity, connection=connection, resolver=resolver)
    errors = []
    chat.error.connect(errors.append)

    await chat.join()

    assert errors == ["Connection lost: reset by peer"]
    assert chat.is_closed


@pytest.mark.asyncio
async def test_leave_while_socket_opening(identity, resolver):
    release = asyncio.Event()

    class SlowConnection(FakeConnection):
        async def open(self):
            await release.wait()
            await super().open()

    connection = SlowConnection()
    chat = ChatSession("bar", identity, connection=connection, resolver=resolver)
    states = []
    joined = []
    chat.state_changed.connect(states.append)
    chat.connected.connect(joined.append)

    starting = asyncio.create_task(chat.start())
    await asyncio.sleep(0)
    await chat.leave()
    release.set()

    assert await starting is False
    assert chat.state == SessionState.CLOSED
    assert states == [SessionState.CLOSED]
    assert joined == []
    assert connection.sent == []
    assert connection.closed
