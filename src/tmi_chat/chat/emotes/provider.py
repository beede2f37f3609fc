"""Asset providers for Twitch, 7TV, BTTV, and FFZ.

Every provider normalizes its own API schema into a flat ``{key: url}``
mapping: emote words for emote providers, ``set_id/version_id`` for badges.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

import aiohttp

from ..exceptions import ProviderError

logger = logging.getLogger(__name__)

TWITCH_HELIX_URL = "https://api.twitch.tv/helix"
TWITCH_EMOTE_CDN = "https://static-cdn.jtvnw.net/emoticons/v2"
IVR_USER_URL = "https://api.ivr.fi/v2/twitch/user"

DEFAULT_TIMEOUT = 15.0  # seconds


def twitch_emote_url(emote_id: str) -> str:
    """CDN URL for a native Twitch emote id."""
    return f"{TWITCH_EMOTE_CDN}/{emote_id}/default/dark/3.0"


def _https(url: str) -> str:
    if url.startswith("//"):
        return "https:" + url
    return url


async def fetch_json(
    session: aiohttp.ClientSession,
    url: str,
    params: dict | None = None,
    headers: dict | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict | list:
    """GET a JSON document.

    Raises:
        ProviderError: on a non-200 status or an undecodable body.
    """
    async with session.get(
        url,
        params=params,
        headers=headers,
        timeout=aiohttp.ClientTimeout(total=timeout),
    ) as resp:
        if resp.status != 200:
            raise ProviderError(f"{url} returned status {resp.status}")
        try:
            return await resp.json()
        except (aiohttp.ContentTypeError, ValueError) as e:
            raise ProviderError(f"{url} returned invalid JSON: {e}") from e


async def resolve_twitch_user_id(
    session: aiohttp.ClientSession,
    login: str,
    oauth_token: str = "",
    client_id: str = "",
    timeout: float = DEFAULT_TIMEOUT,
) -> str | None:
    """Resolve a Twitch login name to numeric user ID.

    Tries Helix API first (if OAuth available), then falls back to public IVR API.
    """
    if login.isdigit():
        return login

    if oauth_token and client_id:
        try:
            data = await fetch_json(
                session,
                f"{TWITCH_HELIX_URL}/users",
                params={"login": login},
                headers={"Authorization": f"Bearer {oauth_token}", "Client-Id": client_id},
                timeout=timeout,
            )
            users = data.get("data", []) if isinstance(data, dict) else []
            if users and users[0].get("id"):
                logger.debug(f"Resolved Twitch login '{login}' to user ID {users[0]['id']} (Helix)")
                return str(users[0]["id"])
        except (aiohttp.ClientError, asyncio.TimeoutError, ProviderError) as e:
            logger.debug(f"Helix API failed for {login}: {e}")

    try:
        data = await fetch_json(session, IVR_USER_URL, params={"login": login}, timeout=timeout)
        if isinstance(data, list) and data and data[0].get("id"):
            logger.debug(f"Resolved Twitch login '{login}' to user ID {data[0]['id']} (IVR)")
            return str(data[0]["id"])
    except (aiohttp.ClientError, asyncio.TimeoutError, ProviderError) as e:
        logger.debug(f"IVR API failed for {login}: {e}")

    return None


class BaseAssetProvider(ABC):
    """Base class for asset providers."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""

    @abstractmethod
    async def get_global_assets(self, session: aiohttp.ClientSession) -> dict[str, str]:
        """Fetch global assets for this provider."""

    @abstractmethod
    async def get_channel_assets(
        self, session: aiohttp.ClientSession, channel_id: str
    ) -> dict[str, str]:
        """Fetch channel-specific assets.

        Args:
            session: Shared HTTP session.
            channel_id: The broadcaster's numeric Twitch user ID.
        """

    async def _get(self, session: aiohttp.ClientSession, url: str, **kwargs) -> dict | list:
        return await fetch_json(session, url, timeout=self.timeout, **kwargs)


class _HelixProvider(BaseAssetProvider):
    """Shared auth handling for Helix-backed providers."""

    def __init__(
        self, oauth_token: str = "", client_id: str = "", timeout: float = DEFAULT_TIMEOUT
    ):
        super().__init__(timeout)
        self.oauth_token = oauth_token
        self.client_id = client_id

    def _get_headers(self) -> dict:
        """Get headers for Twitch API requests."""
        return {"Client-Id": self.client_id, "Authorization": f"Bearer {self.oauth_token}"}

    async def _get_helix(
        self, session: aiohttp.ClientSession, path: str, params: dict | None = None
    ) -> list:
        # Helix rejects every request without a user or app token
        if not self.oauth_token or not self.client_id:
            logger.debug(f"{self.name}: no credentials, skipping {path}")
            return []
        data = await self._get(
            session, f"{TWITCH_HELIX_URL}{path}", params=params, headers=self._get_headers()
        )
        if not isinstance(data, dict):
            raise ProviderError(f"{self.name}: unexpected payload for {path}")
        return data.get("data", [])


class TwitchEmoteProvider(_HelixProvider):
    """Native Twitch emote provider using Helix API."""

    @property
    def name(self) -> str:
        return "twitch"

    async def get_global_assets(self, session: aiohttp.ClientSession) -> dict[str, str]:
        """Fetch Twitch global emotes."""
        return self.normalize(await self._get_helix(session, "/chat/emotes/global"))

    async def get_channel_assets(
        self, session: aiohttp.ClientSession, channel_id: str
    ) -> dict[str, str]:
        """Fetch Twitch channel emotes (subscriber emotes)."""
        data = await self._get_helix(session, "/chat/emotes", params={"broadcaster_id": channel_id})
        return self.normalize(data)

    @staticmethod
    def normalize(data: list) -> dict[str, str]:
        assets: dict[str, str] = {}
        for emote_data in data:
            emote_id = emote_data.get("id", "")
            name = emote_data.get("name", "")
            if not emote_id or not name:
                continue
            images = emote_data.get("images", {})
            url = images.get("url_4x") or images.get("url_2x") or images.get("url_1x", "")
            assets[name] = url or twitch_emote_url(emote_id)
        return assets


class TwitchBadgeProvider(_HelixProvider):
    """Native Twitch chat badges using Helix API."""

    @property
    def name(self) -> str:
        return "twitch-badges"

    async def get_global_assets(self, session: aiohttp.ClientSession) -> dict[str, str]:
        """Fetch Twitch global badges."""
        return self.normalize(await self._get_helix(session, "/chat/badges/global"))

    async def get_channel_assets(
        self, session: aiohttp.ClientSession, channel_id: str
    ) -> dict[str, str]:
        """Fetch Twitch channel badges (subscriber/bits tiers)."""
        data = await self._get_helix(session, "/chat/badges", params={"broadcaster_id": channel_id})
        return self.normalize(data)

    @staticmethod
    def normalize(data: list) -> dict[str, str]:
        assets: dict[str, str] = {}
        for badge_set in data:
            set_id = badge_set.get("set_id", "")
            for version in badge_set.get("versions", []):
                vid = version.get("id", "")
                url = (
                    version.get("image_url_4x")
                    or version.get("image_url_2x")
                    or version.get("image_url_1x")
                    or ""
                )
                if set_id and vid and url:
                    assets[f"{set_id}/{vid}"] = url
        return assets


class SevenTVProvider(BaseAssetProvider):
    """7TV emote provider."""

    BASE_URL = "https://7tv.io/v3"

    @property
    def name(self) -> str:
        return "7tv"

    async def get_global_assets(self, session: aiohttp.ClientSession) -> dict[str, str]:
        """Fetch 7TV global emotes."""
        data = await self._get(session, f"{self.BASE_URL}/emote-sets/global")
        if not isinstance(data, dict):
            raise ProviderError("7tv: unexpected global payload")
        return self.normalize(data.get("emotes", []))

    async def get_channel_assets(
        self, session: aiohttp.ClientSession, channel_id: str
    ) -> dict[str, str]:
        """Fetch 7TV channel emotes."""
        data = await self._get(session, f"{self.BASE_URL}/users/twitch/{channel_id}")
        if not isinstance(data, dict):
            raise ProviderError("7tv: unexpected channel payload")
        return self.normalize((data.get("emote_set") or {}).get("emotes", []))

    @staticmethod
    def normalize(emotes: list) -> dict[str, str]:
        assets: dict[str, str] = {}
        for data in emotes:
            emote_data = data.get("data") or data
            emote_id = emote_data.get("id", data.get("id", ""))
            name = data.get("name", emote_data.get("name", ""))
            if not emote_id or not name:
                continue
            host = emote_data.get("host", {})
            base_url = _https(host.get("url", f"//cdn.7tv.app/emote/{emote_id}"))
            assets[name] = f"{base_url}/4x.webp"
        return assets


class BTTVProvider(BaseAssetProvider):
    """BetterTTV emote provider."""

    BASE_URL = "https://api.betterttv.net/3"

    @property
    def name(self) -> str:
        return "bttv"

    async def get_global_assets(self, session: aiohttp.ClientSession) -> dict[str, str]:
        """Fetch BTTV global emotes."""
        data = await self._get(session, f"{self.BASE_URL}/cached/emotes/global")
        if not isinstance(data, list):
            raise ProviderError("bttv: unexpected global payload")
        return self.normalize(data)

    async def get_channel_assets(
        self, session: aiohttp.ClientSession, channel_id: str
    ) -> dict[str, str]:
        """Fetch BTTV channel and shared emotes."""
        data = await self._get(session, f"{self.BASE_URL}/cached/users/twitch/{channel_id}")
        if not isinstance(data, dict):
            raise ProviderError("bttv: unexpected channel payload")
        return self.normalize(data.get("channelEmotes", []) + data.get("sharedEmotes", []))

    @staticmethod
    def normalize(emotes: list) -> dict[str, str]:
        assets: dict[str, str] = {}
        for emote_data in emotes:
            emote_id = emote_data.get("id", "")
            code = emote_data.get("code", "")
            if emote_id and code:
                assets[code] = f"https://cdn.betterttv.net/emote/{emote_id}/3x"
        return assets


class FFZProvider(BaseAssetProvider):
    """FrankerFaceZ emote provider."""

    BASE_URL = "https://api.frankerfacez.com/v1"

    @property
    def name(self) -> str:
        return "ffz"

    async def get_global_assets(self, session: aiohttp.ClientSession) -> dict[str, str]:
        """Fetch FFZ global emotes (default sets only)."""
        data = await self._get(session, f"{self.BASE_URL}/set/global")
        if not isinstance(data, dict):
            raise ProviderError("ffz: unexpected global payload")
        sets = data.get("sets", {})
        emotes: list = []
        for set_id in data.get("default_sets", []):
            emotes.extend(sets.get(str(set_id), {}).get("emoticons", []))
        return self.normalize(emotes)

    async def get_channel_assets(
        self, session: aiohttp.ClientSession, channel_id: str
    ) -> dict[str, str]:
        """Fetch FFZ channel emotes."""
        data = await self._get(session, f"{self.BASE_URL}/room/id/{channel_id}")
        if not isinstance(data, dict):
            raise ProviderError("ffz: unexpected channel payload")
        emotes: list = []
        for set_data in data.get("sets", {}).values():
            emotes.extend(set_data.get("emoticons", []))
        return self.normalize(emotes)

    @staticmethod
    def normalize(emotes: list) -> dict[str, str]:
        assets: dict[str, str] = {}
        for emote_data in emotes:
            name = emote_data.get("name", "")
            urls = emote_data.get("urls", {})
            url = urls.get("4") or urls.get("2") or urls.get("1") or ""
            if name and url:
                assets[name] = _https(url)
        return assets


THIRD_PARTY_PROVIDERS: dict[str, type[BaseAssetProvider]] = {
    "7tv": SevenTVProvider,
    "bttv": BTTVProvider,
    "ffz": FFZProvider,
}
