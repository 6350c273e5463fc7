"""
Configuration Management

All settings are loaded from environment variables (or a local .env file)
through pydantic-settings. Variable names match field names, case-insensitive,
so TWITCH_CLIENT_ID populates twitch_client_id.

The Twitch client id and secret are required: constructing Settings without
them raises a ValidationError, which stops the service at startup.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application Settings

    Only the Twitch credentials are mandatory; everything else has a default
    that keeps well inside Twitch's rate limits for a handful of channels.
    """

    log_level: str = "INFO"
    log_categories: Optional[str] = None  # Comma-separated categories (auth,twitch,feed,cache,system). If None, show all logs.
    port: int = 8000
    host: str = "0.0.0.0"

    # Twitch Configuration
    twitch_client_id: str = Field(..., min_length=1)
    twitch_client_secret: str = Field(..., min_length=1)
    twitch_auth_url: str = "https://id.twitch.tv/oauth2/token"
    twitch_api_base: str = "https://api.twitch.tv/helix"

    # Upstream call tuning
    token_refresh_margin_seconds: int = 60  # Refresh the app token this long before it expires
    request_timeout_seconds: float = 10.0
    connect_timeout_seconds: float = 5.0
    user_cache_ttl_seconds: int = 600  # Login -> user id lookups
    user_cache_max_entries: int = 1024  # Distinct logins kept; least recently used are dropped
    videos_page_size: int = 20  # Helix accepts 1..100
    max_pages: int = 1  # Upper bound on followed pagination cursors
    include_live: bool = True  # Add the current live stream as a feed item

    # Feed cache & output
    feed_cache_ttl_seconds: int = 600
    feed_cache_max_entries: int = 256  # 0 disables LRU eviction
    feed_max_items: int = 20

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Allow extra env vars (e.g. ROCKET_* from older deployments)


# Loaded once when the module is imported
settings = Settings()
