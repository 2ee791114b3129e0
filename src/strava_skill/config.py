"""Environment driven configuration for the Strava skill."""
from __future__ import annotations

import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

AUTH_URL = "https://www.strava.com/oauth/authorize"
STRAVA_API_BASE = "https://www.strava.com/api/v3"
TOKEN_URL = f"{STRAVA_API_BASE}/oauth/token"

DEFAULT_SCOPES = ("read", "activity:read_all", "profile:read_all")
DEFAULT_TOKEN_FILE = "~/.strava-tokens"
DEFAULT_REDIRECT_URI = "http://localhost:9876/callback"

# Tokens are refreshed this many seconds before Strava actually expires them.
EXPIRY_MARGIN_S = 300

LOG_FORMAT = "%(message)s"


@dataclasses.dataclass
class StravaSettings:
    """Credentials and locations used by both command line tools.

    Parameters
    ----------
    client_id, client_secret:
        Credentials of the Strava API application
        (https://www.strava.com/settings/api).
    token_file:
        JSON file holding the athlete's access and refresh tokens.
    redirect_uri:
        Callback registered for the application. Nothing has to listen on it
        unless ``strava-auth setup --listen`` is used.
    """

    client_id: str
    client_secret: str
    token_file: Path = Path(DEFAULT_TOKEN_FILE).expanduser()
    redirect_uri: str = DEFAULT_REDIRECT_URI
    request_timeout: int = 30

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StravaSettings":
        env = os.environ if environ is None else environ

        client_id = env.get("STRAVA_CLIENT_ID")
        if not client_id:
            raise ConfigError("STRAVA_CLIENT_ID environment variable is not set")
        client_secret = env.get("STRAVA_CLIENT_SECRET")
        if not client_secret:
            raise ConfigError("STRAVA_CLIENT_SECRET environment variable is not set")

        return cls(
            client_id=client_id,
            client_secret=client_secret,
            token_file=token_file_from_env(env),
            redirect_uri=env.get("STRAVA_REDIRECT_URI") or DEFAULT_REDIRECT_URI,
        )


def token_file_from_env(environ: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if environ is None else environ
    return Path(env.get("STRAVA_TOKEN_FILE") or DEFAULT_TOKEN_FILE).expanduser()


def load_environment() -> None:
    """Load a local ``.env`` file without overriding variables already set."""
    load_dotenv()


def configure_logging(verbose: bool = False) -> None:
    level = "DEBUG" if verbose else os.getenv("STRAVA_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
