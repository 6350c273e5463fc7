"""
Memory layer: per-channel feed cache
"""

from .feed_cache import FeedCache

__all__ = ["FeedCache"]
