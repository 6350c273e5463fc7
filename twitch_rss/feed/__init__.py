"""Feed layer: building, rendering and serving channel feeds."""

from .builder import FeedBuilder
from .render import render_atom, render_rss
from .service import FeedResult, FeedService

__all__ = ["FeedBuilder", "FeedResult", "FeedService", "render_atom", "render_rss"]
