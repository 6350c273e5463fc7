"""
Twitch Activity Schemas

Pydantic models for the subset of Helix users/videos/streams payloads the
feed needs, plus the app access token.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator

THUMBNAIL_WIDTH = 512
THUMBNAIL_HEIGHT = 288

# Twitch logins: 1-25 chars of letters, digits and underscore
_LOGIN_RE = re.compile(r"^[a-z0-9_]{1,25}$")


class AccessToken(BaseModel):
    """App access token; expires_at is on the TokenManager's clock."""

    value: str
    expires_at: float

    class Config:
        frozen = True

    def seconds_left(self, now: float) -> float:
        return self.expires_at - now

    def __repr__(self) -> str:
        # never leak the bearer value into logs
        return f"AccessToken(expires_at={self.expires_at})"

    __str__ = __repr__


class ChannelQuery(BaseModel):
    """Cache key for a channel feed request."""

    channel_login: str

    class Config:
        frozen = True

    @field_validator("channel_login")
    @classmethod
    def _normalize_login(cls, value: str) -> str:
        value = value.strip().lower()
        if not _LOGIN_RE.match(value):
            raise ValueError(f"not a valid Twitch login: {value!r}")
        return value


class ActivityKind(str, Enum):
    STREAM = "stream"
    VIDEO = "video"


def _fill_thumbnail(template: Optional[str]) -> Optional[str]:
    if not template:
        return None
    return (
        template.replace("%{width}", str(THUMBNAIL_WIDTH))
        .replace("%{height}", str(THUMBNAIL_HEIGHT))
        .replace("{width}", str(THUMBNAIL_WIDTH))
        .replace("{height}", str(THUMBNAIL_HEIGHT))
    )


class ChannelActivity(BaseModel):
    """One live stream or one video of a channel."""

    id: str
    channel_id: str
    channel_login: str
    title: Optional[str] = None
    published_at: datetime
    url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[str] = None
    kind: ActivityKind

    class Config:
        frozen = True

    @classmethod
    def from_video(cls, payload: Dict[str, Any]) -> "ChannelActivity":
        """Build from a /helix/videos `data` element."""
        return cls.model_validate(
            {
                "id": payload.get("id"),
                "channel_id": payload.get("user_id"),
                "channel_login": payload.get("user_login"),
                "title": payload.get("title") or None,
                "published_at": payload.get("published_at") or payload.get("created_at"),
                "url": payload.get("url") or None,
                "thumbnail_url": _fill_thumbnail(payload.get("thumbnail_url")),
                "description": payload.get("description") or None,
                "duration": payload.get("duration") or None,
                "kind": ActivityKind.VIDEO,
            }
        )

    @classmethod
    def from_stream(cls, payload: Dict[str, Any]) -> "ChannelActivity":
        """Build from a /helix/streams `data` element (only present while live)."""
        return cls.model_validate(
            {
                "id": payload.get("id"),
                "channel_id": payload.get("user_id"),
                "channel_login": payload.get("user_login"),
                "title": payload.get("title") or None,
                "published_at": payload.get("started_at"),
                "url": None,
                "thumbnail_url": _fill_thumbnail(payload.get("thumbnail_url")),
                "description": payload.get("game_name") or None,
                "kind": ActivityKind.STREAM,
            }
        )
