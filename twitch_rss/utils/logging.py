"""
Category-aware logging utility for twitch_rss

Provides logging functionality with category filtering and log level control.
Logs can be filtered by category (auth, twitch, feed, cache, system)
and log level (DEBUG, INFO, WARN, ERROR).

Usage:
    from twitch_rss.utils.logging import get_logger

    logger = get_logger(__name__, category='twitch')
    logger.info('Fetched 20 videos')
"""

import logging
from typing import Optional
from twitch_rss.config import settings


# Log level hierarchy (lower number = more verbose)
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# If not set, show all categories
_allowed_categories = None
if settings.log_categories:
    _allowed_categories = [
        cat.strip().lower() for cat in settings.log_categories.split(",")
    ]


class CategoryFilter(logging.Filter):
    """Filter logs by category if LOG_CATEGORIES is set."""

    def __init__(self, category: Optional[str] = None):
        super().__init__()
        self.category = category.lower() if category else "system"

    def filter(self, record: logging.LogRecord) -> bool:
        if _allowed_categories is None:
            return True
        return self.category in _allowed_categories


def get_logger(name: str, category: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with category filtering support.

    Args:
        name: Logger name (typically __name__)
        category: Category for filtering (e.g., 'auth', 'twitch', 'feed')
                  If None, defaults to 'system'

    Returns:
        Logger instance with category filter applied
    """
    logger = logging.getLogger(name)

    log_level = LOG_LEVELS.get(settings.log_level.upper(), logging.INFO)
    logger.setLevel(log_level)

    # Remove existing category filters to avoid duplicates
    logger.filters = [f for f in logger.filters if not isinstance(f, CategoryFilter)]
    logger.addFilter(CategoryFilter(category))

    return logger
