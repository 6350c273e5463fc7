"""
Feed Service

The request path behind every feed endpoint:

1. Serve a fresh cached document without touching Twitch.
2. Otherwise refresh from Helix. At most one refresh per channel runs at a
   time; concurrent requests for the same channel await that refresh and
   share its result (they never get the old document early).
3. If the refresh fails with a retriable error (rate limit, transient outage,
   malformed payload) and a document is cached, serve it. Unknown channels
   and credential failures are always surfaced.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict

from pydantic import ValidationError

from twitch_rss.errors import TwitchRssError, UpstreamError, UpstreamErrorKind
from twitch_rss.feed.builder import FeedBuilder
from twitch_rss.ingest.twitch import TwitchClient
from twitch_rss.memory.feed_cache import FeedCache
from twitch_rss.schemas.activity import ChannelQuery
from twitch_rss.schemas.feed import FeedDocument
from twitch_rss.utils.logging import get_logger

logger = get_logger(__name__, category="feed")


@dataclass(frozen=True)
class FeedResult:
    document: FeedDocument
    stale: bool = False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class FeedService:
    def __init__(
        self,
        client: TwitchClient,
        cache: FeedCache,
        builder: FeedBuilder,
        *,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = _utcnow,
    ):
        self.client = client
        self.cache = cache
        self.builder = builder
        self._clock = clock
        self._wall_clock = wall_clock
        self._inflight: Dict[ChannelQuery, asyncio.Task] = {}

    @staticmethod
    def make_query(channel_login: str) -> ChannelQuery:
        try:
            return ChannelQuery(channel_login=channel_login)
        except ValidationError as exc:
            raise UpstreamError(
                UpstreamErrorKind.NOT_FOUND, f"Unknown channel: {channel_login}"
            ) from exc

    async def get_feed(self, channel_login: str) -> FeedResult:
        query = self.make_query(channel_login)

        entry = self.cache.get(query)
        if entry is not None and self.cache.is_fresh(entry, self._clock()):
            return FeedResult(entry.document)

        try:
            document = await self._refresh_once(query)
        except UpstreamError as exc:
            if exc.kind is UpstreamErrorKind.NOT_FOUND:
                self.cache.discard(query)
                raise
            return self._fallback(query, exc)
        except TwitchRssError as exc:
            return self._fallback(query, exc)
        return FeedResult(document)

    async def resolve_user_id(self, channel_login: str) -> str:
        query = self.make_query(channel_login)
        user = await self.client.resolve_user(query.channel_login)
        return user.id

    def _fallback(self, query: ChannelQuery, exc: TwitchRssError) -> FeedResult:
        if not exc.retriable:
            raise exc
        entry = self.cache.get(query)
        if entry is None:
            raise exc
        logger.warning(
            "Serving cached feed for %s after upstream failure: %r",
            query.channel_login,
            exc,
        )
        return FeedResult(entry.document, stale=True)

    async def _refresh_once(self, query: ChannelQuery) -> FeedDocument:
        task = self._inflight.get(query)
        if task is None:
            task = asyncio.create_task(self._run_refresh(query))
            self._inflight[query] = task
        else:
            logger.debug("Joining in-flight refresh for %s", query.channel_login)
        # keep the refresh running for other waiters if this request goes away
        return await asyncio.shield(task)

    async def _run_refresh(self, query: ChannelQuery) -> FeedDocument:
        try:
            return await self._refresh(query)
        finally:
            self._inflight.pop(query, None)

    async def _refresh(self, query: ChannelQuery) -> FeedDocument:
        login = query.channel_login
        user = await self.client.resolve_user(login)
        activity = await self.client.list_user_activity(user)
        document = self.builder.build(
            login,
            activity,
            generated_at=self._wall_clock(),
            display_name=user.display_name,
        )
        self.cache.put(query, document, now=self._clock())
        logger.info("Built feed for %s with %s items", login, len(document.items))
        return document
