"""Unit conversions and text formatting for Strava values (SI units in, text out)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class ActivityType:
    unit: str
    label: str


# Display names; anything not listed falls back to ``time`` and the raw type.
ACTIVITY_TYPES: Dict[str, ActivityType] = {
    "Run": ActivityType("pace", "Run"),
    "TrailRun": ActivityType("pace", "Trail Run"),
    "VirtualRun": ActivityType("pace", "Virtual Run"),
    "Ride": ActivityType("speed", "Ride"),
    "VirtualRide": ActivityType("speed", "Virtual Ride"),
    "GravelRide": ActivityType("speed", "Gravel Ride"),
    "MountainBikeRide": ActivityType("speed", "Mountain Bike"),
    "EBikeRide": ActivityType("speed", "E-Bike Ride"),
    "Swim": ActivityType("swim", "Swim"),
    "Walk": ActivityType("pace", "Walk"),
    "Hike": ActivityType("pace", "Hike"),
    "NordicSki": ActivityType("pace", "Nordic Ski"),
    "AlpineSki": ActivityType("time", "Alpine Ski"),
    "Snowboard": ActivityType("time", "Snowboard"),
    "WeightTraining": ActivityType("time", "Weight Training"),
    "Yoga": ActivityType("time", "Yoga"),
    "Workout": ActivityType("time", "Workout"),
}


def activity_unit(sport_type: str) -> str:
    known = ACTIVITY_TYPES.get(sport_type)
    return known.unit if known else "time"


def activity_label(sport_type: str) -> str:
    known = ACTIVITY_TYPES.get(sport_type)
    return known.label if known else sport_type


def mps_to_pace_s(speed_mps: Optional[float], per_m: float = 1000.0) -> Optional[int]:
    """Seconds needed to cover ``per_m`` metres at ``speed_mps``; ``None`` when not moving."""
    if speed_mps is None or speed_mps <= 0:
        return None
    return int(round(per_m / float(speed_mps)))


def _min_sec(seconds: int) -> str:
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:d}:{secs:02d}"


def format_duration(seconds: float) -> str:
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours > 0:
        return f"{hours:d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:d}:{secs:02d}"


def format_duration_hm(seconds: float) -> str:
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes = rest // 60
    if hours > 0:
        return f"{hours:d}h {minutes:02d}m"
    return f"{minutes:d}m"


def format_pace(speed_mps: Optional[float]) -> str:
    pace = mps_to_pace_s(speed_mps)
    return f"{_min_sec(pace)} /km" if pace is not None else "N/A"


def format_swim_pace(speed_mps: Optional[float]) -> str:
    pace = mps_to_pace_s(speed_mps, per_m=100.0)
    return f"{_min_sec(pace)} /100m" if pace is not None else "N/A"


def format_speed(speed_mps: Optional[float]) -> str:
    return f"{float(speed_mps or 0) * 3.6:.1f} km/h"


def format_by_unit(unit: str, speed_mps: Optional[float]) -> Optional[str]:
    """Pace, speed or swim pace depending on the activity's unit mode."""
    if unit == "pace":
        return format_pace(speed_mps)
    if unit == "speed":
        return format_speed(speed_mps)
    if unit == "swim":
        return format_swim_pace(speed_mps)
    return None


def format_distance(meters: float) -> str:
    if meters >= 1000:
        return f"{meters / 1000:.1f} km"
    return f"{meters:.0f} m"


def format_distance_stat(meters: float) -> str:
    return f"{meters / 1000:.1f} km"


def format_elevation(meters: float) -> str:
    return f"{meters:.0f}m"


def format_local_date(value: Optional[str], length: Optional[int] = None) -> str:
    """``2024-05-01T07:30:00Z`` -> ``2024-05-01 07:30:00`` (optionally truncated)."""
    if not value:
        return ""
    text = value.replace("T", " ", 1)
    if text.endswith("Z"):
        text = text[:-1]
    return text[:length] if length else text
