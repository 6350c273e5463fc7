"""
twitch_rss - RSS/Atom feeds for Twitch channels
Serves a channel's VODs and live stream as a feed readers can subscribe to
"""

__version__ = "0.1.0"
