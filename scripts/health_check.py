"""
Health check script to verify Twitch credentials and the feed endpoint
Can be used in monitoring, CI/CD, or after a deploy

Usage:
    pip install -e ".[test]"   # feedparser
    python scripts/health_check.py [channel] [base_url]
"""
import asyncio
import sys

import httpx
import feedparser

from twitch_rss.config import settings
from twitch_rss.errors import TwitchRssError
from twitch_rss.ingest.auth import TokenManager
from twitch_rss.ingest.twitch import TwitchClient


async def check_credentials(channel: str) -> bool:
    """Fetch an app token and resolve the channel directly against Twitch"""
    timeout = httpx.Timeout(settings.request_timeout_seconds, connect=settings.connect_timeout_seconds)
    async with httpx.AsyncClient(timeout=timeout) as http_client:
        tokens = TokenManager(http_client)
        client = TwitchClient(http_client, tokens)
        try:
            await tokens.get_token()
            print("[OK] App access token issued")
            user = await client.resolve_user(channel)
            print(f"[OK] {channel} resolved to user id {user.id}")
            return True
        except TwitchRssError as e:
            print(f"[FAIL] Direct Twitch check failed: {e}")
            return False


async def check_endpoint(channel: str, base_url: str) -> bool:
    """Fetch the channel feed from the running service"""
    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.get(f"{base_url}/{channel}/vod")
    except httpx.ConnectError:
        print(f"[FAIL] Cannot connect to service at {base_url}")
        return False

    if response.status_code != 200:
        print(f"[FAIL] Feed endpoint returned status {response.status_code}: {response.text}")
        return False

    parsed = feedparser.parse(response.content)
    if parsed.bozo:
        print(f"[FAIL] Feed is not well-formed: {parsed.bozo_exception}")
        return False
    print(f"[OK] Feed endpoint working ({len(parsed.entries)} items)")
    return True


async def main():
    channel = sys.argv[1] if len(sys.argv) > 1 else "twitchdev"
    base_url = sys.argv[2] if len(sys.argv) > 2 else f"http://localhost:{settings.port}"

    print("Running health checks...")
    print("=" * 50)

    direct_check = await check_credentials(channel)
    endpoint_check = await check_endpoint(channel, base_url)

    print("=" * 50)
    if direct_check and endpoint_check:
        print("[OK] All health checks passed!")
        sys.exit(0)
    else:
        print("[FAIL] Some health checks failed!")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
