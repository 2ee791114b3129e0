"""OAuth2 setup and token management for the Strava API.

    strava-auth setup [--listen]   One-time OAuth2 authorization flow
    strava-auth refresh            Refresh the access token
    strava-auth token              Output a valid access token (auto-refreshes if expired)
"""
from __future__ import annotations

import argparse
from typing import Optional, Sequence

from .auth import TokenManager
from .config import configure_logging, load_environment, StravaSettings
from .errors import StravaError

ENVIRONMENT_HELP = """\
Environment:
  STRAVA_CLIENT_ID      Strava app client ID
  STRAVA_CLIENT_SECRET  Strava app client secret
  STRAVA_TOKEN_FILE     Path to token file (default: ~/.strava-tokens)
  STRAVA_REDIRECT_URI   OAuth redirect URI (default: http://localhost:9876/callback)
  STRAVA_LOG_LEVEL      Logging level on stderr (default: INFO)
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="strava-auth",
        description=__doc__,
        epilog=ENVIRONMENT_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", metavar="{setup,refresh,token}")
    commands.required = True

    setup = commands.add_parser("setup", help="One-time OAuth2 authorization flow")
    setup.add_argument(
        "--listen",
        action="store_true",
        help="Capture the redirect with a local web server instead of pasting it",
    )
    commands.add_parser("refresh", help="Refresh the access token")
    commands.add_parser("token", help="Output a valid access token (auto-refreshes if expired)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    load_environment()
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        manager = TokenManager(StravaSettings.from_env())
        if args.command == "setup":
            manager.setup(listen=args.listen)
        elif args.command == "refresh":
            manager.refresh()
        else:
            print(manager.access_token())
    except StravaError as exc:
        raise SystemExit(f"Error: {exc}") from exc


if __name__ == "__main__":
    main()
