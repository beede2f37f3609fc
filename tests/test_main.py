"""Tests for the command line entry point."""

from dataclasses import replace

from tmi_chat.chat.models import RoomState
from tmi_chat.main import format_message, format_room_state, main, parse_args


def test_parse_args_defaults():
    args = parse_args(["bar"])
    assert args.channel == "bar"
    assert args.login == ""
    assert args.token == ""
    assert args.debug is False


def test_login_without_token_is_rejected():
    assert main(["bar", "--login", "tester"]) == 2


def test_format_message(make_message):
    msg = make_message(login="alice", text="hello")
    assert format_message(msg) == "Alice: hello"
    assert format_message(replace(msg, is_action=True)) == "* Alice hello"
    system = replace(msg, is_system=True, system_text="Alice subscribed!", text="")
    assert format_message(system) == "* Alice subscribed!"


def test_format_room_state():
    assert format_room_state(RoomState()) == "no restrictions"
    state = RoomState(slow_mode_seconds=10, subscriber_only=True, follower_only_minutes=0)
    assert format_room_state(state) == "slow 10s, subscribers-only, followers-only 0m"
