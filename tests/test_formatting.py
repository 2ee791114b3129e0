from __future__ import annotations

import pytest

from strava_skill.formatting import (
    activity_label,
    activity_unit,
    format_distance,
    format_distance_stat,
    format_duration,
    format_duration_hm,
    format_elevation,
    format_local_date,
    format_pace,
    format_speed,
    format_swim_pace,
)


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "0:00"), (59, "0:59"), (754, "12:34"), (3600, "1:00:00"), (3725, "1:02:05")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


@pytest.mark.parametrize("seconds, expected", [(0, "0m"), (2700, "45m"), (3660, "1h 01m"), (45000, "12h 30m")])
def test_format_duration_hm(seconds, expected):
    assert format_duration_hm(seconds) == expected


def test_running_pace():
    # 1000 m / 3.333 m/s = 300 s
    assert format_pace(3.3333) == "5:00 /km"
    assert format_pace(2.5) == "6:40 /km"


@pytest.mark.parametrize("speed", [0, -1, None])
def test_pace_not_available_when_not_moving(speed):
    assert format_pace(speed) == "N/A"
    assert format_swim_pace(speed) == "N/A"


def test_swim_pace_per_100m():
    assert format_swim_pace(1.0) == "1:40 /100m"


def test_speed_in_kmh():
    assert format_speed(8.3333) == "30.0 km/h"
    assert format_speed(0) == "0.0 km/h"


def test_distance_switches_to_km():
    assert format_distance(999) == "999 m"
    assert format_distance(1000) == "1.0 km"
    assert format_distance(10234.5) == "10.2 km"
    assert format_distance_stat(500) == "0.5 km"


def test_elevation():
    assert format_elevation(123.6) == "124m"


def test_activity_types_table_and_fallback():
    assert (activity_unit("TrailRun"), activity_label("TrailRun")) == ("pace", "Trail Run")
    assert (activity_unit("MountainBikeRide"), activity_label("MountainBikeRide")) == ("speed", "Mountain Bike")
    assert activity_unit("Swim") == "swim"
    assert activity_unit("Yoga") == "time"
    assert (activity_unit("Kitesurf"), activity_label("Kitesurf")) == ("time", "Kitesurf")


def test_local_date():
    assert format_local_date("2024-05-01T07:30:15Z") == "2024-05-01 07:30:15"
    assert format_local_date("2024-05-01T07:30:15Z", 16) == "2024-05-01 07:30"
    assert format_local_date(None) == ""
