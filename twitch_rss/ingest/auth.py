"""
Twitch App Access Token Manager

Owns the client-credentials token used for every Helix call. The token is
fetched lazily, reused until it gets within the refresh margin of its expiry,
and refreshed by at most one request at a time: concurrent callers that find
the token stale all await the same refresh task.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional

import httpx

from twitch_rss.config import settings
from twitch_rss.errors import AuthError
from twitch_rss.schemas.activity import AccessToken
from twitch_rss.utils.logging import get_logger

logger = get_logger(__name__, category="auth")


class TokenManager:
    """Client-credentials token lifecycle for a single client id/secret pair."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        *,
        auth_url: Optional[str] = None,
        refresh_margin_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            http_client: Shared httpx client (timeouts configured by the owner)
            client_id: Twitch Client ID (defaults to settings.twitch_client_id)
            client_secret: Twitch Client Secret (defaults to settings.twitch_client_secret)
            auth_url: OAuth token endpoint (defaults to settings.twitch_auth_url)
            refresh_margin_seconds: Treat the token as stale this long before expiry
            clock: Monotonic seconds source, injectable for tests
        """
        self.http_client = http_client
        self.client_id = client_id or settings.twitch_client_id
        self.client_secret = client_secret or settings.twitch_client_secret
        self.auth_url = auth_url or settings.twitch_auth_url
        self.refresh_margin_seconds = (
            refresh_margin_seconds
            if refresh_margin_seconds is not None
            else settings.token_refresh_margin_seconds
        )
        self._clock = clock

        self._token: Optional[AccessToken] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self.refresh_count = 0

    @property
    def current(self) -> Optional[AccessToken]:
        return self._token

    def _is_fresh(self, token: Optional[AccessToken], now: float) -> bool:
        return token is not None and token.seconds_left(now) > self.refresh_margin_seconds

    async def get_token(self) -> AccessToken:
        """Return a token that is not about to expire, refreshing if needed."""
        token = self._token
        if self._is_fresh(token, self._clock()):
            return token
        return await self._join_refresh()

    async def refresh(self, stale: Optional[AccessToken] = None) -> AccessToken:
        """
        Force a refresh after Helix rejected `stale`.

        If another caller already replaced `stale`, the newer token is returned
        without an extra token request.
        """
        current = self._token
        if (
            current is not None
            and stale is not None
            and current.value != stale.value
            and current.seconds_left(self._clock()) > 0
        ):
            return current
        if current is not None and (stale is None or current.value == stale.value):
            self._token = None
        return await self._join_refresh()

    def invalidate(self) -> None:
        self._token = None

    async def _join_refresh(self) -> AccessToken:
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._run_refresh())
        try:
            return await asyncio.shield(self._refresh_task)
        except AuthError:
            # A token that has not really expired yet is still good for Helix
            held = self._token
            if held is not None and held.seconds_left(self._clock()) > 0:
                logger.warning(
                    "Token refresh failed; reusing current token (%.0fs left)",
                    held.seconds_left(self._clock()),
                )
                return held
            raise

    async def _run_refresh(self) -> AccessToken:
        try:
            return await self._request_token()
        finally:
            self._refresh_task = None

    async def _request_token(self) -> AccessToken:
        requested_at = self._clock()
        logger.info("Requesting Twitch app access token")
        try:
            response = await self.http_client.post(
                self.auth_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
            )
        except httpx.RequestError as exc:
            logger.error("Token request failed: %s", exc.__class__.__name__)
            raise AuthError(f"Token request failed: {exc.__class__.__name__}") from exc

        if not response.is_success:
            logger.error("Token endpoint returned HTTP %s", response.status_code)
            raise AuthError(f"Token endpoint returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise AuthError("Token endpoint returned a non-JSON body") from exc

        if not isinstance(data, dict):
            raise AuthError("Token endpoint returned an unexpected body")

        value = data.get("access_token")
        expires_in = data.get("expires_in")
        if not isinstance(value, str) or not value:
            raise AuthError("Token response has no access_token")
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)) or expires_in <= 0:
            raise AuthError("Token response has no usable expires_in")

        token = AccessToken(value=value, expires_at=requested_at + expires_in)
        self._token = token
        self.refresh_count += 1
        logger.info("Obtained app access token valid for %ss", int(expires_in))
        return token
