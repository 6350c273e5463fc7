"""
Error taxonomy shared by the token, Twitch client and feed layers.

Every error carries `retriable` (may a later poll succeed, so a cached feed
can stand in?) and the HTTP status the request handler answers with.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class TwitchRssError(Exception):
    """Base class for all service errors."""

    retriable: bool = False
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(TwitchRssError):
    """Client-credentials token could not be obtained or was rejected twice."""

    retriable = False
    status_code = 500


class UpstreamErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"


_STATUS_BY_KIND = {
    UpstreamErrorKind.NOT_FOUND: 404,
    UpstreamErrorKind.RATE_LIMITED: 503,
    UpstreamErrorKind.TRANSIENT: 502,
}


class UpstreamError(TwitchRssError):
    """Failure talking to the Helix API."""

    def __init__(
        self,
        kind: UpstreamErrorKind,
        message: str,
        *,
        retriable: Optional[bool] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        if retriable is None:
            retriable = kind is not UpstreamErrorKind.NOT_FOUND
        self.retriable = retriable
        self.retry_after = retry_after
        self.status_code = _STATUS_BY_KIND[kind]

    def __repr__(self) -> str:
        return (
            f"UpstreamError(kind={self.kind.value}, retriable={self.retriable}, "
            f"retry_after={self.retry_after}, message={self.message!r})"
        )


class BuildError(TwitchRssError):
    """Upstream payload could not be turned into feed entities."""

    retriable = True
    status_code = 502
