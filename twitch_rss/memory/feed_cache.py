"""
Feed Cache

Keeps the most recently built FeedDocument per channel. Entries are frozen
CacheEntry objects swapped in with a single assignment, so a reader sees
either the previous build or the new one, never a mix. With max_entries set,
the least recently used channel is evicted once the bound is exceeded.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable, Optional

from twitch_rss.config import settings
from twitch_rss.schemas.activity import ChannelQuery
from twitch_rss.schemas.feed import CacheEntry, FeedDocument
from twitch_rss.utils.logging import get_logger

logger = get_logger(__name__, category="cache")


class FeedCache:
    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None else settings.feed_cache_ttl_seconds
        )
        # 0 / None: unbounded
        self.max_entries = (
            max_entries if max_entries is not None else settings.feed_cache_max_entries
        )
        self._clock = clock
        self._entries: "OrderedDict[ChannelQuery, CacheEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, query: ChannelQuery) -> bool:
        return query in self._entries

    def get(self, query: ChannelQuery) -> Optional[CacheEntry]:
        entry = self._entries.get(query)
        if entry is not None:
            self._entries.move_to_end(query)
        return entry

    def put(
        self, query: ChannelQuery, document: FeedDocument, now: Optional[float] = None
    ) -> CacheEntry:
        entry = CacheEntry(
            document=document,
            cached_at=self._clock() if now is None else now,
        )
        self._entries[query] = entry
        self._entries.move_to_end(query)
        self._evict()
        return entry

    def discard(self, query: ChannelQuery) -> None:
        if self._entries.pop(query, None) is not None:
            logger.debug("Dropped cached feed for %s", query.channel_login)

    def is_fresh(
        self,
        entry: CacheEntry,
        now: Optional[float] = None,
        ttl: Optional[float] = None,
    ) -> bool:
        now = self._clock() if now is None else now
        ttl = self.ttl_seconds if ttl is None else ttl
        return now - entry.cached_at < ttl

    def _evict(self) -> None:
        if not self.max_entries:
            return
        while len(self._entries) > self.max_entries:
            query, _ = self._entries.popitem(last=False)
            logger.info("Evicted cached feed for %s (max %s entries)", query.channel_login, self.max_entries)
