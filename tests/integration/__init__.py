"""
Integration tests for twitch_rss.

Exercise the FastAPI routes end to end against the fake Twitch upstream.
"""
