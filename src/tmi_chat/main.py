#!/usr/bin/env python3
"""Main entry point for tmi-chat."""

import argparse
import asyncio
import logging
import sys

from .chat.models import ChatMessage, RoomState
from .chat.session import ChatSession
from .core.settings import ChatSettings, Identity


def setup_logging(debug: bool = False) -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),
        ],
    )

    # Suppress noisy third-party loggers
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def format_message(message: ChatMessage) -> str:
    """One line of terminal output for a chat message."""
    if message.is_system:
        suffix = f": {message.text}" if message.text else ""
        return f"* {message.system_text}{suffix}"
    if message.is_action:
        return f"* {message.user.display_name} {message.text}"
    return f"{message.user.display_name}: {message.text}"


def format_room_state(state: RoomState) -> str:
    modes = []
    if state.slow_mode_seconds:
        modes.append(f"slow {state.slow_mode_seconds}s")
    if state.subscriber_only:
        modes.append("subscribers-only")
    if state.emote_only:
        modes.append("emote-only")
    if state.follower_only_minutes is not None:
        modes.append(f"followers-only {state.follower_only_minutes}m")
    if state.unique_chat_mode:
        modes.append("unique-chat")
    return ", ".join(modes) or "no restrictions"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="tmi-chat", description="Follow a Twitch channel's chat.")
    parser.add_argument("channel", help="channel login to join")
    parser.add_argument("--login", default="", help="login name to connect as")
    parser.add_argument("--token", default="", help="OAuth token for --login")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    return parser.parse_args(argv)


async def follow_chat(session: ChatSession) -> None:
    """Join the session's channel and print messages until it closes."""
    session.store.message_added.connect(lambda msg: print(format_message(msg), flush=True))
    session.room_state.room_state_changed.connect(
        lambda state: logging.info(f"Room state: {format_room_state(state)}")
    )
    await session.join()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.debug)

    if bool(args.token) != bool(args.login):
        logging.error("--login and --token must be given together")
        return 2

    identity = Identity(login=args.login, token=args.token) if args.token else Identity.anonymous()
    session = ChatSession(args.channel, identity, ChatSettings.load())

    try:
        asyncio.run(follow_chat(session))
    except KeyboardInterrupt:
        logging.info("Interrupted, leaving chat")
    return 0


if __name__ == "__main__":
    sys.exit(main())
