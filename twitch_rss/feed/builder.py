"""
Feed Builder

Turns a channel's ChannelActivity list into a FeedDocument. Pure: no I/O,
no clock. Identical inputs give identical documents, which the renderers
turn into byte-identical XML.
"""

from __future__ import annotations

from datetime import datetime, timezone
from html import escape
from typing import Iterable, Optional

from twitch_rss.config import settings
from twitch_rss.schemas.activity import ActivityKind, ChannelActivity
from twitch_rss.schemas.feed import FeedDocument, FeedItem

TWITCH_WEB_BASE = "https://www.twitch.tv"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def channel_link(channel_login: str) -> str:
    return f"{TWITCH_WEB_BASE}/{channel_login}"


def item_link(channel_login: str, activity: ChannelActivity) -> str:
    if activity.url:
        return activity.url
    if activity.kind is ActivityKind.VIDEO:
        return f"{TWITCH_WEB_BASE}/videos/{activity.id}"
    return channel_link(channel_login)


def item_title(channel_login: str, activity: ChannelActivity) -> str:
    if activity.title and activity.title.strip():
        return activity.title
    if activity.kind is ActivityKind.STREAM:
        return f"Live: {channel_login}"
    return "Untitled video"


def build_description(link: str, title: str, activity: ChannelActivity) -> str:
    """HTML body: linked thumbnail, upstream description, then the title.

    The title is repeated because some readers only pick up an update when
    the description itself changes.
    """
    parts = []
    if activity.thumbnail_url:
        parts.append(
            f'<a href="{escape(link)}"><img src="{escape(activity.thumbnail_url)}" /></a>'
        )
    if activity.description:
        parts.append(escape(activity.description))
    parts.append(escape(title))
    return "<br />".join(parts)


class FeedBuilder:
    """Builds FeedDocuments capped to max_items entries."""

    def __init__(self, max_items: Optional[int] = None):
        self.max_items = max_items if max_items is not None else settings.feed_max_items

    def to_item(self, channel_login: str, activity: ChannelActivity) -> FeedItem:
        title = item_title(channel_login, activity)
        link = item_link(channel_login, activity)
        return FeedItem(
            id=activity.id,
            title=title,
            link=link,
            published_at=activity.published_at,
            description=build_description(link, title, activity),
            kind=activity.kind,
        )

    def build(
        self,
        channel_login: str,
        activity: Iterable[ChannelActivity],
        generated_at: Optional[datetime] = None,
        display_name: Optional[str] = None,
    ) -> FeedDocument:
        channel_login = channel_login.lower()
        items = []
        seen = set()
        for entry in activity:
            # pages can overlap while new videos are published
            key = (entry.kind, entry.id)
            if key in seen:
                continue
            seen.add(key)
            items.append(self.to_item(channel_login, entry))

        # newest first; equal timestamps fall back to id, then kind, ascending
        items.sort(key=lambda item: (item.id, item.kind.value))
        items.sort(key=lambda item: _utc(item.published_at), reverse=True)
        items = items[: self.max_items] if self.max_items > 0 else items

        if generated_at is None:
            generated_at = _utc(items[0].published_at) if items else EPOCH

        return FeedDocument(
            channel_login=channel_login,
            title=f"{display_name or channel_login} Twitch VODs",
            link=channel_link(channel_login),
            generated_at=generated_at,
            items=tuple(items),
        )


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
