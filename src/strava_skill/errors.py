"""Exceptions raised by the Strava skill."""
from __future__ import annotations

from typing import Optional

MAX_MESSAGE_LEN = 200


class StravaError(RuntimeError):
    """Base class for every error reported to the user."""


class ConfigError(StravaError):
    pass


class TokenFileError(StravaError):
    pass


class AuthorizationError(StravaError):
    pass


class StravaAPIError(StravaError):
    """The Strava API (or the network in front of it) returned something unusable."""

    def __init__(
        self,
        message: str,
        *,
        context: str = "",
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.context = context
        self.status_code = status_code


def truncate_message(message: object) -> str:
    return str(message)[:MAX_MESSAGE_LEN]
