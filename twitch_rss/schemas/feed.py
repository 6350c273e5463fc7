"""
Feed Schemas

The format-neutral feed model rendered to RSS or Atom, and the cache entry
wrapping it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Tuple

from pydantic import BaseModel

from .activity import ActivityKind


class FeedItem(BaseModel):
    id: str
    title: str
    link: str
    published_at: datetime
    description: str = ""
    kind: ActivityKind = ActivityKind.VIDEO

    class Config:
        frozen = True


class FeedDocument(BaseModel):
    """A channel feed; items are newest first."""

    channel_login: str
    title: str
    link: str
    generated_at: datetime
    items: Tuple[FeedItem, ...] = ()

    class Config:
        frozen = True


class CacheEntry(BaseModel):
    """Cached document; replaced whole on every rebuild, never mutated."""

    document: FeedDocument
    cached_at: float

    class Config:
        frozen = True
