"""
Shared fixtures: a fake Twitch (OAuth + Helix) behind httpx.MockTransport,
a controllable clock, and the service objects wired against them.
"""
import asyncio
import os
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List

# Settings are read at import time, so credentials must exist before any
# twitch_rss module is imported.
os.environ.setdefault("TWITCH_CLIENT_ID", "test-client-id")
os.environ.setdefault("TWITCH_CLIENT_SECRET", "test-client-secret")

import httpx
import pytest

from twitch_rss.feed.builder import FeedBuilder
from twitch_rss.feed.service import FeedService
from twitch_rss.ingest.auth import TokenManager
from twitch_rss.ingest.twitch import TwitchClient
from twitch_rss.memory.feed_cache import FeedCache

AUTH_URL = "https://id.twitch.tv/oauth2/token"
API_BASE = "https://api.twitch.tv/helix"
GENERATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_video(
    video_id: str,
    published_at: str,
    title: str = "",
    user_id: str = "1001",
    login: str = "streamer",
    **extra: Any,
) -> Dict[str, Any]:
    video = {
        "id": video_id,
        "stream_id": None,
        "user_id": user_id,
        "user_login": login,
        "user_name": login.title(),
        "title": title or f"Video {video_id}",
        "description": "",
        "created_at": published_at,
        "published_at": published_at,
        "url": f"https://www.twitch.tv/videos/{video_id}",
        "thumbnail_url": f"https://static-cdn.jtvnw.net/cf_vods/{video_id}/thumb-%{{width}}x%{{height}}.jpg",
        "viewable": "public",
        "view_count": 10,
        "language": "en",
        "type": "archive",
        "duration": "1h2m3s",
    }
    video.update(extra)
    return video


def make_stream(
    stream_id: str,
    started_at: str,
    title: str = "",
    user_id: str = "1001",
    login: str = "streamer",
) -> Dict[str, Any]:
    return {
        "id": stream_id,
        "user_id": user_id,
        "user_login": login,
        "user_name": login.title(),
        "game_id": "509658",
        "game_name": "Just Chatting",
        "type": "live",
        "title": title,
        "viewer_count": 42,
        "started_at": started_at,
        "language": "en",
        "thumbnail_url": f"https://static-cdn.jtvnw.net/previews-ttv/live_user_{login}-{{width}}x{{height}}.jpg",
    }


class FakeTwitch:
    """In-process stand-in for id.twitch.tv and api.twitch.tv/helix."""

    def __init__(self):
        self.calls: Counter = Counter()
        self.requests: List[httpx.Request] = []
        self.users: Dict[str, Dict[str, str]] = {
            "streamer": {"id": "1001", "login": "streamer", "display_name": "Streamer"},
        }
        self.videos: Dict[str, List[Dict[str, Any]]] = {
            "1001": [
                make_video("300", "2024-04-30T20:00:00Z"),
                make_video("200", "2024-04-29T20:00:00Z"),
                make_video("100", "2024-04-28T20:00:00Z"),
            ]
        }
        self.streams: Dict[str, List[Dict[str, Any]]] = {}
        self.expires_in = 3600
        self.issued = 0
        self.valid_tokens = set()
        # path -> queued httpx.Response / exception served before normal handling
        self.failures: Dict[str, List[Any]] = {}
        self.delay = 0.0

    def fail(self, path: str, *responses: Any) -> None:
        self.failures.setdefault(path, []).extend(responses)

    def revoke_tokens(self) -> None:
        self.valid_tokens.clear()

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls[path] += 1
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        queued = self.failures.get(path)
        if queued:
            failure = queued.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return failure

        if path == "/oauth2/token":
            return self._issue_token()

        auth = request.headers.get("Authorization", "")
        if auth.removeprefix("Bearer ") not in self.valid_tokens:
            return httpx.Response(401, json={"error": "Unauthorized", "status": 401})

        params = request.url.params
        if path == "/helix/users":
            user = self.users.get(params.get("login", ""))
            return httpx.Response(200, json={"data": [user] if user else []})
        if path == "/helix/videos":
            return self._videos_page(params)
        if path == "/helix/streams":
            return httpx.Response(200, json={"data": self.streams.get(params.get("user_id"), []), "pagination": {}})
        return httpx.Response(404, json={"error": "Not Found"})

    def _issue_token(self) -> httpx.Response:
        self.issued += 1
        token = f"token-{self.issued}"
        self.valid_tokens.add(token)
        return httpx.Response(
            200,
            json={"access_token": token, "expires_in": self.expires_in, "token_type": "bearer"},
        )

    def _videos_page(self, params: httpx.QueryParams) -> httpx.Response:
        videos = self.videos.get(params.get("user_id"), [])
        first = int(params.get("first", "20"))
        offset = int(params.get("after", "0"))
        page = videos[offset : offset + first]
        pagination = {}
        if offset + first < len(videos):
            pagination["cursor"] = str(offset + first)
        return httpx.Response(200, json={"data": page, "pagination": pagination})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_twitch():
    return FakeTwitch()


@pytest.fixture
def http_client(fake_twitch):
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_twitch.handler))


@pytest.fixture
def token_manager(http_client, clock):
    return TokenManager(
        http_client,
        "test-client-id",
        "test-client-secret",
        auth_url=AUTH_URL,
        refresh_margin_seconds=60,
        clock=clock,
    )


@pytest.fixture
def twitch_client(http_client, token_manager, clock):
    return TwitchClient(
        http_client,
        token_manager,
        "test-client-id",
        api_base=API_BASE,
        user_cache_ttl_seconds=3600,
        page_size=2,
        max_pages=3,
        max_items=20,
        include_live=True,
        clock=clock,
    )


@pytest.fixture
def feed_cache(clock):
    return FeedCache(ttl_seconds=600, max_entries=0, clock=clock)


@pytest.fixture
def feed_service(twitch_client, feed_cache, clock):
    return FeedService(
        twitch_client,
        feed_cache,
        FeedBuilder(max_items=20),
        clock=clock,
        wall_clock=lambda: GENERATED_AT,
    )
