"""
Feed Renderers

Serialize a FeedDocument to RSS 2.0 or Atom 1.0 bytes. Output depends only
on the document, so equal documents render byte-identically.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Optional
from email.utils import format_datetime

from twitch_rss.schemas.feed import FeedDocument, FeedItem

RSS_MEDIA_TYPE = "application/rss+xml; charset=utf-8"
ATOM_MEDIA_TYPE = "application/atom+xml; charset=utf-8"
ATOM_NS = "http://www.w3.org/2005/Atom"

# code points XML 1.0 does not allow; ElementTree writes them through unchecked
_INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def rfc2822(value: datetime) -> str:
    return format_datetime(_utc(value), usegmt=True)


def rfc3339(value: datetime) -> str:
    return _utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def xml_safe(value: str) -> str:
    return _INVALID_XML_CHARS.sub("", value)


def _sub(parent: ET.Element, tag: str, text: Optional[str] = None, **attrib: str) -> ET.Element:
    element = ET.SubElement(
        parent, tag, {key: xml_safe(value) for key, value in attrib.items()}
    )
    if text is not None:
        element.text = xml_safe(text)
    return element


def _serialize(root: ET.Element) -> bytes:
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def render_rss(document: FeedDocument) -> bytes:
    rss = ET.Element("rss", {"version": "2.0"})
    channel = _sub(rss, "channel")
    _sub(channel, "title", document.title)
    _sub(channel, "link", document.link)
    _sub(channel, "description", f"Videos and streams of {document.channel_login} on Twitch")
    _sub(channel, "lastBuildDate", rfc2822(document.generated_at))

    for item in document.items:
        _rss_item(channel, item)

    return _serialize(rss)


def _rss_item(channel: ET.Element, item: FeedItem) -> None:
    element = _sub(channel, "item")
    _sub(element, "title", item.title)
    _sub(element, "link", item.link)
    _sub(element, "guid", entry_id(item), isPermaLink="false")
    _sub(element, "pubDate", rfc2822(item.published_at))
    _sub(element, "description", item.description)


def entry_id(item: FeedItem) -> str:
    """Feed-wide identity of an item; video and stream ids can overlap."""
    return f"urn:twitch:{item.kind.value}:{item.id}"


def render_atom(document: FeedDocument) -> bytes:
    feed = ET.Element("feed", {"xmlns": ATOM_NS})
    _sub(feed, "id", document.link)
    _sub(feed, "title", document.title)
    _sub(feed, "updated", rfc3339(document.generated_at))
    _sub(feed, "link", href=document.link, rel="alternate")
    author = _sub(feed, "author")
    _sub(author, "name", document.channel_login)

    for item in document.items:
        entry = _sub(feed, "entry")
        _sub(entry, "id", entry_id(item))
        _sub(entry, "title", item.title)
        _sub(entry, "link", href=item.link, rel="alternate")
        _sub(entry, "published", rfc3339(item.published_at))
        _sub(entry, "updated", rfc3339(item.published_at))
        _sub(entry, "summary", item.description, type="html")

    return _serialize(feed)
