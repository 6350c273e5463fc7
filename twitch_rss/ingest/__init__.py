"""
Ingest layer: Twitch app token and Helix API client
"""

from .auth import TokenManager
from .twitch import TwitchClient, TwitchUser

__all__ = ["TokenManager", "TwitchClient", "TwitchUser"]
