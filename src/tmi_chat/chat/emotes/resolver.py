"""Asset resolution - merges badge and emote tables from all providers."""

import asyncio
import logging
from collections.abc import Iterator, Mapping

import aiohttp

from ...core.settings import ChatSettings, Identity
from .provider import (
    THIRD_PARTY_PROVIDERS,
    BaseAssetProvider,
    TwitchBadgeProvider,
    TwitchEmoteProvider,
    resolve_twitch_user_id,
)

logger = logging.getLogger(__name__)


class AssetTable:
    """Lookup of emote words and badge keys to image URLs.

    Filled once per session by the resolver. Afterwards only ``learn`` adds
    entries, and it never replaces an existing one.
    """

    def __init__(self, assets: Mapping[str, str] | None = None):
        self._assets: dict[str, str] = dict(assets or {})

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._assets.get(key, default)

    def __getitem__(self, key: str) -> str:
        return self._assets[key]

    def __contains__(self, key: object) -> bool:
        return key in self._assets

    def __len__(self) -> int:
        return len(self._assets)

    def __iter__(self) -> Iterator[str]:
        return iter(self._assets)

    def merge(self, assets: Mapping[str, str]) -> None:
        """Merge a provider result; colliding keys take the new value."""
        self._assets.update(assets)

    def learn(self, key: str, url: str) -> bool:
        """Add an association discovered at runtime. Returns False if the key was known."""
        if not key or key in self._assets:
            return False
        self._assets[key] = url
        return True

    def as_dict(self) -> dict[str, str]:
        return dict(self._assets)


class AssetResolver:
    """Fetches global and channel assets from every provider and merges them.

    Fetches run concurrently and are isolated from each other: a failing
    provider is logged and contributes nothing. Results are merged in
    provider order, global before channel, so later providers win on
    colliding keys.
    """

    def __init__(
        self,
        providers: list[BaseAssetProvider],
        oauth_token: str = "",
        client_id: str = "",
        timeout: float = 15.0,
    ):
        self._providers = providers
        self._oauth_token = oauth_token
        self._client_id = client_id
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: ChatSettings, identity: Identity) -> "AssetResolver":
        """Build the default provider chain: native Twitch first, then third-party.

        Anonymous identities fall back to the configured app token for Helix.
        """
        token = identity.token.removeprefix("oauth:") or settings.helix_token
        providers: list[BaseAssetProvider] = [
            TwitchEmoteProvider(token, settings.client_id, settings.request_timeout),
            TwitchBadgeProvider(token, settings.client_id, settings.request_timeout),
        ]
        for name in settings.emote_providers:
            provider_cls = THIRD_PARTY_PROVIDERS.get(name)
            if not provider_cls:
                logger.warning(f"Unknown emote provider '{name}', skipping")
                continue
            providers.append(provider_cls(timeout=settings.request_timeout))
        return cls(providers, token, settings.client_id, settings.request_timeout)

    @property
    def providers(self) -> list[BaseAssetProvider]:
        return list(self._providers)

    async def resolve(
        self,
        channel_login: str,
        channel_id: str | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> AssetTable:
        """Fetch and merge every provider's assets for a channel.

        Args:
            channel_login: The channel's login name.
            channel_id: The broadcaster's numeric ID, looked up when omitted.
            session: HTTP session to use; a temporary one is created if omitted.
        """
        own_session = session is None
        if session is None:
            session = aiohttp.ClientSession()

        try:
            if channel_id is None:
                channel_id = await resolve_twitch_user_id(
                    session,
                    channel_login,
                    self._oauth_token,
                    self._client_id,
                    self._timeout,
                )
                if not channel_id:
                    logger.warning(
                        f"Could not resolve #{channel_login}, loading global assets only"
                    )

            jobs = []
            for provider in self._providers:
                jobs.append(
                    self._fetch(f"{provider.name} global", provider.get_global_assets(session))
                )
                if channel_id:
                    jobs.append(
                        self._fetch(
                            f"{provider.name} channel",
                            provider.get_channel_assets(session, channel_id),
                        )
                    )
            results = await asyncio.gather(*jobs)
        finally:
            if own_session:
                await session.close()

        table = AssetTable()
        for assets in results:
            table.merge(assets)
        logger.info(f"Resolved {len(table)} assets for #{channel_login}")
        return table

    @staticmethod
    async def _fetch(label: str, fetch) -> dict[str, str]:
        try:
            assets = await fetch
        except Exception as e:
            logger.warning(f"Asset fetch '{label}' failed: {e}")
            return {}
        logger.debug(f"Fetched {len(assets)} assets from {label}")
        return assets
