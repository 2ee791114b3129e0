#!/usr/bin/env python
"""OAuth2 setup and token management for the Strava API (see ``strava-auth --help``)."""
from __future__ import annotations

from strava_skill.auth_cli import main

if __name__ == "__main__":
    main()
