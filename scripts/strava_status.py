#!/usr/bin/env python
"""Query activities and stats from the Strava API (see ``strava-status --help``)."""
from __future__ import annotations

from strava_skill.status_cli import main

if __name__ == "__main__":
    main()
