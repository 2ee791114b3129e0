"""Query activities and stats from the Strava API.

Without options the activities of the last 7 days are listed. ``--stats``
takes precedence over ``--detail``, which takes precedence over the list.
"""
from __future__ import annotations

import argparse
import datetime as dt
import logging
import re
from pathlib import Path
from typing import Optional, Sequence

from .auth import TokenManager
from .config import configure_logging, load_environment, StravaSettings
from .errors import StravaError
from .report import (
    dump_json,
    export_activities_csv,
    project_activity_detail,
    project_activity_list,
    project_athlete_stats,
    render_activity_detail,
    render_activity_list,
    render_athlete_stats,
)
from .strava_client import StravaClient
from .tokens import TokenStore

logger = logging.getLogger(__name__)

DEFAULT_DAYS = 7
NUMERIC = re.compile(r"^[0-9]+$")


def _positive_int(value: str) -> int:
    if not NUMERIC.match(value) or int(value) == 0:
        raise argparse.ArgumentTypeError(f"--days must be a positive integer, got '{value}'.")
    return int(value)


def _activity_id(value: str) -> int:
    if not NUMERIC.match(value):
        raise argparse.ArgumentTypeError(
            f"--detail must be a numeric activity ID, got '{value}'."
        )
    return int(value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="strava-status",
        description=__doc__,
        epilog="Environment: STRAVA_CLIENT_ID, STRAVA_CLIENT_SECRET, STRAVA_TOKEN_FILE",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--raw", dest="output", action="store_const", const="raw", help="Output raw JSON from the API"
    )
    mode.add_argument(
        "--json",
        dest="output",
        action="store_const",
        const="json",
        help="Output parsed JSON with readable values",
    )
    parser.set_defaults(output="formatted")
    parser.add_argument(
        "--days",
        type=_positive_int,
        default=DEFAULT_DAYS,
        help=f"Activities from the last N days (default: {DEFAULT_DAYS})",
    )
    parser.add_argument("--detail", type=_activity_id, metavar="ID", help="Detailed view of a specific activity")
    parser.add_argument("--stats", action="store_true", help="Athlete lifetime/YTD/recent stats summary")
    parser.add_argument("--csv", type=Path, metavar="PATH", help="Also write the activity list to a CSV file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def show_stats(client: StravaClient, store: TokenStore, output: str, now: Optional[dt.datetime] = None) -> str:
    athlete_id = store.load().numeric_athlete_id()
    stats = client.get_athlete_stats(athlete_id)
    if output == "raw":
        return dump_json(stats)
    if output == "json":
        return dump_json(project_athlete_stats(stats))
    return render_athlete_stats(stats, now=now)


def show_detail(client: StravaClient, activity_id: int, output: str, now: Optional[dt.datetime] = None) -> str:
    activity = client.get_activity(activity_id)
    if output == "raw":
        return dump_json(activity)
    if output == "json":
        return dump_json(project_activity_detail(activity))
    return render_activity_detail(activity, now=now)


def show_activities(
    client: StravaClient,
    days: int,
    output: str,
    csv_path: Optional[Path] = None,
    now: Optional[dt.datetime] = None,
) -> str:
    activities = client.list_activities(days)
    records = project_activity_list(activities)
    if csv_path is not None:
        export_activities_csv(records, csv_path)
        logger.info("Wrote %s activities to %s", len(records), csv_path)

    if output == "raw":
        return dump_json(activities)
    if output == "json":
        return dump_json(records)
    return render_activity_list(records, days, now=now)


def main(argv: Optional[Sequence[str]] = None) -> None:
    load_environment()
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = StravaSettings.from_env()
        manager = TokenManager(settings)
        client = StravaClient(
            access_token=manager.access_token(),
            token_provider=lambda: manager.access_token(force_refresh=True),
            request_timeout=settings.request_timeout,
        )

        if args.stats:
            text = show_stats(client, manager.store, args.output)
        elif args.detail is not None:
            text = show_detail(client, args.detail, args.output)
        else:
            text = show_activities(client, args.days, args.output, csv_path=args.csv)
    except StravaError as exc:
        raise SystemExit(f"Error: {exc}") from exc

    print(text)


if __name__ == "__main__":
    main()
