"""
twitch_rss - FastAPI Application

This service:
- Authenticates against Twitch with client-credentials OAuth
- Fetches a channel's videos and live stream from the Helix API
- Serves them as an RSS 2.0 or Atom 1.0 feed

Routes:
- GET /{channel_login}/vod, /{channel_login}, /feed/{channel_login}  -> feed XML
- GET /{channel_login}/id                                           -> Twitch user id
- GET /health                                                       -> service status

RUNNING THE SERVER:
    uvicorn twitch_rss.main:app --port 8000
    or: twitch-rss  (reads HOST / PORT from the environment)
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum

import httpx
from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import PlainTextResponse, Response

from twitch_rss import __version__
from twitch_rss.config import settings
from twitch_rss.errors import TwitchRssError, UpstreamError
from twitch_rss.feed.builder import FeedBuilder
from twitch_rss.feed.render import ATOM_MEDIA_TYPE, RSS_MEDIA_TYPE, render_atom, render_rss
from twitch_rss.feed.service import FeedService
from twitch_rss.ingest.auth import TokenManager
from twitch_rss.ingest.twitch import TwitchClient
from twitch_rss.memory.feed_cache import FeedCache
from twitch_rss.utils.logging import get_logger

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = get_logger(__name__, category="system")


class FeedFormat(str, Enum):
    RSS = "rss"
    ATOM = "atom"


def create_feed_service(http_client: httpx.AsyncClient) -> FeedService:
    """Wire the token manager, Helix client, cache and builder together."""
    token_manager = TokenManager(http_client)
    client = TwitchClient(http_client, token_manager)
    return FeedService(client, FeedCache(), FeedBuilder())


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"twitch_rss starting on {settings.host}:{settings.port}")
    timeout = httpx.Timeout(
        settings.request_timeout_seconds, connect=settings.connect_timeout_seconds
    )
    http_client = httpx.AsyncClient(timeout=timeout)
    app.state.http_client = http_client
    app.state.feed_service = create_feed_service(http_client)
    try:
        yield
    finally:
        logger.info("twitch_rss shutting down")
        await http_client.aclose()


app = FastAPI(
    title="twitch_rss",
    description="RSS/Atom feeds for Twitch channels",
    version=__version__,
    lifespan=lifespan,
)


def get_feed_service(request: Request) -> FeedService:
    return request.app.state.feed_service


@app.exception_handler(TwitchRssError)
async def twitch_rss_error_handler(request: Request, exc: TwitchRssError):
    headers = {}
    if isinstance(exc, UpstreamError) and exc.retry_after is not None:
        headers["Retry-After"] = str(exc.retry_after)
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed: {exc!r}")
    return PlainTextResponse(exc.message, status_code=exc.status_code, headers=headers)


@app.get("/health")
async def health_check(service: FeedService = Depends(get_feed_service)):
    """Liveness probe; does not call Twitch."""
    return {
        "status": "healthy",
        "service": "twitch-rss",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "cache": {"entries": len(service.cache)},
    }


async def _feed_response(
    channel_login: str, feed_format: FeedFormat, service: FeedService
) -> Response:
    result = await service.get_feed(channel_login)
    if feed_format is FeedFormat.ATOM:
        return Response(content=render_atom(result.document), media_type=ATOM_MEDIA_TYPE)
    return Response(content=render_rss(result.document), media_type=RSS_MEDIA_TYPE)


@app.get("/{channel_login}/vod")
async def channel_vods(
    channel_login: str,
    feed_format: FeedFormat = Query(FeedFormat.RSS, alias="format"),
    service: FeedService = Depends(get_feed_service),
):
    return await _feed_response(channel_login, feed_format, service)


@app.get("/{channel_login}/id", response_class=PlainTextResponse)
async def channel_id(
    channel_login: str, service: FeedService = Depends(get_feed_service)
):
    """Numeric Twitch user id of a channel, as plain text."""
    return await service.resolve_user_id(channel_login)


@app.get("/feed/{channel_login}")
async def feed(
    channel_login: str,
    feed_format: FeedFormat = Query(FeedFormat.RSS, alias="format"),
    service: FeedService = Depends(get_feed_service),
):
    return await _feed_response(channel_login, feed_format, service)


@app.get("/{channel_login}")
async def channel_feed(
    channel_login: str,
    feed_format: FeedFormat = Query(FeedFormat.RSS, alias="format"),
    service: FeedService = Depends(get_feed_service),
):
    return await _feed_response(channel_login, feed_format, service)


def run() -> None:
    import uvicorn

    uvicorn.run("twitch_rss.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
