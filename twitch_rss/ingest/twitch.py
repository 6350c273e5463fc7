"""
Twitch Helix Client

Typed wrapper over the three Helix endpoints a channel feed needs:
/users (login -> id), /videos (VODs, uploads, highlights) and /streams
(the live broadcast, if any). Every call authenticates with the app token
from TokenManager and classifies failures into the service error taxonomy.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, NamedTuple, Optional

import httpx
from cachetools import TTLCache
from pydantic import ValidationError

from twitch_rss.config import settings
from twitch_rss.errors import AuthError, BuildError, UpstreamError, UpstreamErrorKind
from twitch_rss.ingest.auth import TokenManager
from twitch_rss.schemas.activity import AccessToken, ChannelActivity
from twitch_rss.utils.logging import get_logger

logger = get_logger(__name__, category="twitch")


class TwitchUser(NamedTuple):
    id: str
    login: str
    display_name: str


class TwitchClient:
    """Helix subset used to build channel feeds."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_manager: TokenManager,
        client_id: Optional[str] = None,
        *,
        api_base: Optional[str] = None,
        user_cache_ttl_seconds: Optional[float] = None,
        user_cache_max_entries: Optional[int] = None,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        max_items: Optional[int] = None,
        include_live: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.http_client = http_client
        self.token_manager = token_manager
        self.client_id = client_id or settings.twitch_client_id
        self.api_base = (api_base or settings.twitch_api_base).rstrip("/")
        self.user_cache_ttl_seconds = (
            user_cache_ttl_seconds
            if user_cache_ttl_seconds is not None
            else settings.user_cache_ttl_seconds
        )
        self.page_size = page_size or settings.videos_page_size
        self.max_pages = max(1, max_pages or settings.max_pages)
        self.max_items = max_items or settings.feed_max_items
        self.include_live = settings.include_live if include_live is None else include_live

        # login -> user; expired and least recently used logins drop out
        self._user_cache: TTLCache = TTLCache(
            maxsize=max(1, user_cache_max_entries or settings.user_cache_max_entries),
            ttl=max(self.user_cache_ttl_seconds, 0),
            timer=clock,
        )

    def _headers(self, token: AccessToken) -> Dict[str, str]:
        return {"Client-Id": self.client_id, "Authorization": f"Bearer {token.value}"}

    # ------------------------------------------------------------------
    # Low-level request handling
    # ------------------------------------------------------------------

    async def _helix_get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET a Helix resource, retrying once with a new token on 401."""
        url = f"{self.api_base}/{path}"
        token = await self.token_manager.get_token()

        response: Optional[httpx.Response] = None
        for attempt in range(2):
            try:
                response = await self.http_client.get(
                    url, params=params, headers=self._headers(token)
                )
            except httpx.TimeoutException as exc:
                logger.warning("Helix GET /%s timed out", path)
                raise UpstreamError(
                    UpstreamErrorKind.TRANSIENT, f"Helix /{path} timed out"
                ) from exc
            except httpx.RequestError as exc:
                logger.warning("Helix GET /%s failed: %s", path, exc)
                raise UpstreamError(
                    UpstreamErrorKind.TRANSIENT,
                    f"Helix /{path} request failed: {exc.__class__.__name__}",
                ) from exc

            if response.status_code != 401:
                break
            if attempt == 0:
                logger.warning("Helix GET /%s returned 401; refreshing app token", path)
                token = await self.token_manager.refresh(token)
                continue
            logger.error("Helix GET /%s rejected a freshly issued token", path)
            raise AuthError(f"Helix /{path} rejected the app access token")

        self._raise_for_status(response, path)

        try:
            payload = response.json()
        except ValueError as exc:
            logger.error("Helix GET /%s returned a non-JSON body", path)
            raise BuildError(f"Helix /{path} returned a non-JSON body") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            logger.error("Helix GET /%s returned an unexpected body", path)
            raise BuildError(f"Helix /{path} returned an unexpected body")
        return payload

    def _raise_for_status(self, response: httpx.Response, path: str) -> None:
        status = response.status_code
        if response.is_success:
            return
        if status == 429:
            retry_after = _retry_after_seconds(response)
            logger.warning(
                "Helix GET /%s rate limited (retry after %ss)", path, retry_after
            )
            raise UpstreamError(
                UpstreamErrorKind.RATE_LIMITED,
                f"Helix /{path} rate limited",
                retry_after=retry_after,
            )
        if status == 404:
            raise UpstreamError(UpstreamErrorKind.NOT_FOUND, f"Helix /{path} not found")
        if status >= 500:
            logger.warning("Helix GET /%s returned HTTP %s", path, status)
            raise UpstreamError(
                UpstreamErrorKind.TRANSIENT, f"Helix /{path} returned HTTP {status}"
            )
        logger.error(
            "Helix GET /%s returned HTTP %s - %s", path, status, response.text[:200]
        )
        raise UpstreamError(
            UpstreamErrorKind.TRANSIENT,
            f"Helix /{path} returned HTTP {status}",
            retriable=False,
        )

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def resolve_user(self, channel_login: str) -> TwitchUser:
        """Resolve a login to its user id, cached per login."""
        login = channel_login.lower()
        cached = self._user_cache.get(login)
        if cached is not None:
            return cached

        payload = await self._helix_get("users", {"login": login})
        users = payload["data"]
        if not users:
            logger.info("Channel not found: %s", login)
            raise UpstreamError(UpstreamErrorKind.NOT_FOUND, f"Unknown channel: {login}")

        first = users[0]
        user_id = first.get("id") if isinstance(first, dict) else None
        if not user_id:
            raise BuildError(f"Helix /users entry for {login} has no id")
        user = TwitchUser(
            id=str(user_id),
            login=first.get("login") or login,
            display_name=first.get("display_name") or login,
        )
        if self.user_cache_ttl_seconds > 0:
            self._user_cache[login] = user
        logger.info("Resolved %s to user id %s", login, user.id)
        return user

    async def list_videos(self, user_id: str) -> List[ChannelActivity]:
        """Newest videos of a user, following at most max_pages cursors."""
        activities: List[ChannelActivity] = []
        cursor: Optional[str] = None

        for page in range(self.max_pages):
            params: Dict[str, Any] = {"user_id": user_id, "first": self.page_size}
            if cursor:
                params["after"] = cursor
            payload = await self._helix_get("videos", params)
            data = payload["data"]
            activities.extend(_parse(ChannelActivity.from_video, item) for item in data)

            pagination = payload.get("pagination") or {}
            cursor = pagination.get("cursor") if isinstance(pagination, dict) else None
            if not cursor or not data or len(activities) >= self.max_items:
                break
        else:
            logger.debug("Stopped paging videos of %s after %s pages", user_id, self.max_pages)

        return activities

    async def get_live_stream(self, user_id: str) -> Optional[ChannelActivity]:
        payload = await self._helix_get("streams", {"user_id": user_id})
        for item in payload["data"]:
            if isinstance(item, dict) and item.get("type", "live") == "live":
                return _parse(ChannelActivity.from_stream, item)
        return None

    async def list_activity(self, channel_login: str) -> List[ChannelActivity]:
        """Videos and, when enabled, the live stream of a channel."""
        user = await self.resolve_user(channel_login)
        return await self.list_user_activity(user)

    async def list_user_activity(self, user: TwitchUser) -> List[ChannelActivity]:
        activities = await self.list_videos(user.id)
        if self.include_live:
            live = await self.get_live_stream(user.id)
            if live is not None:
                activities.insert(0, live)
        logger.debug("Fetched %s activities for %s", len(activities), user.login)
        return activities


def _parse(factory: Callable[[Dict[str, Any]], ChannelActivity], item: Any) -> ChannelActivity:
    if not isinstance(item, dict):
        raise BuildError("Helix returned a non-object entity")
    try:
        return factory(item)
    except ValidationError as exc:
        logger.error("Malformed Helix entity %s: %s", item.get("id"), exc.errors()[:1])
        raise BuildError(f"Malformed Helix entity {item.get('id')}") from exc


def _retry_after_seconds(response: httpx.Response) -> Optional[int]:
    """Retry hint from Retry-After (seconds) or Twitch's Ratelimit-Reset (epoch)."""
    retry_after = response.headers.get("Retry-After")
    if retry_after and retry_after.strip().isdigit():
        return int(retry_after.strip())
    reset = response.headers.get("Ratelimit-Reset")
    if reset and reset.strip().isdigit():
        return max(0, int(reset.strip()) - int(time.time()))
    return None
