"""Settings for the chat core."""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path

from appdirs import user_config_dir

logger = logging.getLogger(__name__)

APP_NAME = "tmi-chat"
APP_AUTHOR = "tmi-chat"

TWITCH_IRC_WS_URL = "wss://irc-ws.chat.twitch.tv:443"

# Default Twitch client ID for unauthenticated requests
DEFAULT_TWITCH_CLIENT_ID = "kimne78kx3ncx6brgo4mv6wki5h1ko"

# Login prefix Twitch accepts for read-only anonymous connections
ANONYMOUS_LOGIN_PREFIX = "justinfan"

ENV_CLIENT_ID = "TMI_CHAT_CLIENT_ID"
ENV_HELIX_TOKEN = "TMI_CHAT_HELIX_TOKEN"


def get_config_dir() -> Path:
    """Get the configuration directory."""
    return Path(user_config_dir(APP_NAME, APP_AUTHOR))


@dataclass(frozen=True)
class Identity:
    """The user a session connects as.

    An empty token means the session is anonymous (read-only).
    """

    login: str
    token: str = ""

    @classmethod
    def anonymous(cls) -> "Identity":
        return cls(login=f"{ANONYMOUS_LOGIN_PREFIX}{int(time.time()) % 100000:05d}")

    @property
    def is_anonymous(self) -> bool:
        return not self.token


@dataclass
class ChatSettings:
    """Chat core settings.

    Settings are read-only from the core's point of view: they may be loaded
    from a config file but are never written back.
    """

    irc_url: str = TWITCH_IRC_WS_URL
    client_id: str = DEFAULT_TWITCH_CLIENT_ID
    helix_token: str = ""  # App token for asset lookups, used when the identity has none
    message_limit: int = 200  # Buffer is trimmed once it grows past this
    message_trim_target: int = 180  # Length the buffer is trimmed down to
    hide_banned_messages: bool = False  # Remove moderated messages instead of redacting
    emote_providers: list[str] = field(default_factory=lambda: ["7tv", "bttv", "ffz"])
    request_timeout: float = 15.0  # seconds, per provider request

    @classmethod
    def load(cls, path: Path | None = None) -> "ChatSettings":
        """Load settings from file, falling back to defaults."""
        if path is None:
            path = get_config_dir() / "config.json"

        settings = cls()
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
                settings = cls._from_dict(data)
            except (json.JSONDecodeError, OSError, TypeError, AttributeError) as e:
                logger.warning(f"Ignoring unreadable config {path}: {e}")
                settings = cls()

        client_id = os.environ.get(ENV_CLIENT_ID, "")
        if client_id:
            settings.client_id = client_id
        helix_token = os.environ.get(ENV_HELIX_TOKEN, "")
        if helix_token:
            settings.helix_token = helix_token.removeprefix("oauth:")
        return settings

    @staticmethod
    def _validate_int(value, default: int, min_val: int = 0, max_val: int | None = None) -> int:
        """Validate and constrain an integer value."""
        if not isinstance(value, int) or isinstance(value, bool):
            return default
        if value < min_val:
            return min_val
        if max_val is not None and value > max_val:
            return max_val
        return value

    @classmethod
    def _from_dict(cls, data: dict) -> "ChatSettings":
        """Create settings from a dictionary with validation."""
        settings = cls()

        settings.irc_url = data.get("irc_url", settings.irc_url) or settings.irc_url
        settings.client_id = data.get("client_id", settings.client_id) or settings.client_id
        helix_token = data.get("helix_token", "")
        if isinstance(helix_token, str):
            settings.helix_token = helix_token.removeprefix("oauth:")
        settings.message_limit = cls._validate_int(
            data.get("message_limit"), settings.message_limit, min_val=1, max_val=10000
        )
        settings.message_trim_target = cls._validate_int(
            data.get("message_trim_target"),
            settings.message_trim_target,
            min_val=0,
            max_val=settings.message_limit,
        )
        settings.message_trim_target = min(settings.message_trim_target, settings.message_limit)
        settings.hide_banned_messages = bool(
            data.get("hide_banned_messages", settings.hide_banned_messages)
        )

        providers = data.get("emote_providers")
        if isinstance(providers, list):
            settings.emote_providers = [str(p).lower() for p in providers]

        timeout = data.get("request_timeout")
        if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout > 0:
            settings.request_timeout = float(timeout)

        return settings
