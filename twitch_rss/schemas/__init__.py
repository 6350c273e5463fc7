"""Pydantic models for Helix entities, feed documents and cache entries."""

from .activity import AccessToken, ActivityKind, ChannelActivity, ChannelQuery
from .feed import CacheEntry, FeedDocument, FeedItem

__all__ = [
    "AccessToken",
    "ActivityKind",
    "ChannelActivity",
    "ChannelQuery",
    "CacheEntry",
    "FeedDocument",
    "FeedItem",
]
