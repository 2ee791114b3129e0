"""Turn Strava API payloads into the JSON views and text reports printed by ``strava-status``."""
from __future__ import annotations

import datetime as dt
import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from .formatting import (
    activity_label,
    activity_unit,
    format_by_unit,
    format_distance,
    format_distance_stat,
    format_duration,
    format_duration_hm,
    format_elevation,
    format_local_date,
    format_pace,
    mps_to_pace_s,
)

RULE = "=" * 44
SUB_RULE = "-" * 36
MAX_TABLE_ROWS = 100

LIST_FIELDS = [
    "id",
    "name",
    "type",
    "sport_type",
    "start_date_local",
    "distance",
    "moving_time",
    "elapsed_time",
    "total_elevation_gain",
    "average_speed",
    "average_heartrate",
    "max_heartrate",
]

DETAIL_FIELDS = [
    "id",
    "name",
    "type",
    "sport_type",
    "start_date_local",
    "distance",
    "moving_time",
    "elapsed_time",
    "total_elevation_gain",
    "average_speed",
    "max_speed",
    "average_heartrate",
    "max_heartrate",
    "average_cadence",
    "average_watts",
    "calories",
    "suffer_score",
    "splits_metric",
    "laps",
    "description",
]

STATS_PERIODS = [("ytd", "YTD"), ("all", "All Time")]
STATS_SPORTS = [("run", "Running"), ("ride", "Cycling"), ("swim", "Swimming")]
STATS_FIELDS = [
    f"{period}_{sport}_totals"
    for period in ("all", "ytd", "recent")
    for sport in ("run", "ride", "swim")
]


def dump_json(payload) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _num(record: Dict, key: str) -> float:
    value = record.get(key)
    return float(value) if value else 0.0


def _row(label: str, value: str) -> str:
    return f"    {label:<18} {value}"


def _footer(now: Optional[dt.datetime], prefix: str = "") -> List[str]:
    if now is None:
        now = dt.datetime.now()
    return ["", RULE, f"  {prefix}Fetched at: {now:%Y-%m-%d %H:%M:%S}", RULE]


def _sport_type(activity: Dict) -> str:
    return activity.get("sport_type") or activity.get("type") or "Workout"


def _heart_rate(activity: Dict) -> Optional[str]:
    avg_hr = activity.get("average_heartrate")
    if avg_hr is None:
        return None
    max_hr = activity.get("max_heartrate")
    if max_hr is None:
        return f"{avg_hr:.0f} avg bpm"
    return f"{avg_hr:.0f} avg / {max_hr:.0f} max bpm"


def _summary_rows(activity: Dict, unit: str, with_best: bool) -> List[str]:
    """Distance, time, pace/speed, elevation and heart rate rows shared by list and detail."""
    lines: List[str] = []
    distance = _num(activity, "distance")
    if distance > 0:
        lines.append(_row("Distance:", format_distance(distance)))

    moving = format_duration(_num(activity, "moving_time"))
    elapsed = format_duration(_num(activity, "elapsed_time"))
    lines.append(_row("Time:", f"{moving} (moving) / {elapsed} (elapsed)"))

    avg_speed = _num(activity, "average_speed")
    if avg_speed > 0 and unit != "time":
        label = "Speed:" if unit == "speed" else "Pace:"
        lines.append(_row(label, format_by_unit(unit, avg_speed)))
        if with_best:
            best_label = "Max Speed:" if unit == "speed" else "Best Pace:"
            lines.append(_row(best_label, format_by_unit(unit, _num(activity, "max_speed"))))

    elevation = _num(activity, "total_elevation_gain")
    if elevation > 0:
        lines.append(_row("Elevation:", f"{format_elevation(elevation)} gain"))

    heart_rate = _heart_rate(activity)
    if heart_rate:
        lines.append(_row("Heart Rate:", heart_rate))
    return lines


# ----------------------------------------------------------------------
# Activity list
# ----------------------------------------------------------------------
def project_activity_list(activities: Iterable[Dict]) -> List[Dict]:
    """Newest first, reduced to the fields an agent needs."""
    ordered = sorted(activities, key=lambda a: a.get("start_date_local") or "", reverse=True)
    records = []
    for act in ordered:
        record = {field: act.get(field) for field in LIST_FIELDS}
        record["calories"] = act.get("calories") or 0
        records.append(record)
    return records


def render_activity_list(
    records: List[Dict], days: int, now: Optional[dt.datetime] = None
) -> str:
    if not records:
        return f"No activities found in the last {days} days."

    lines = ["", RULE, f"  Activities (last {days} days)", RULE]
    for act in records:
        unit = activity_unit(_sport_type(act))
        lines.append("")
        lines.append(f"  {format_local_date(act.get('start_date_local'), 16)}  {act.get('name') or 'Untitled'}")
        lines.append(f"  {SUB_RULE}")
        lines.extend(_summary_rows(act, unit, with_best=False))
        calories = _num(act, "calories")
        if calories:
            lines.append(_row("Calories:", f"{calories:.0f}"))

    lines.extend(_footer(now, prefix=f"{len(records)} activities | "))
    return "\n".join(lines)


def export_activities_csv(records: List[Dict], path: Path) -> pd.DataFrame:
    """Write the projected activity list to ``path`` with derived km and pace columns."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    table = pd.DataFrame(records, columns=LIST_FIELDS + ["calories"])
    table["distance_km"] = pd.to_numeric(table["distance"], errors="coerce") / 1000.0
    table["pace_s_per_km"] = [
        mps_to_pace_s(speed) for speed in pd.to_numeric(table["average_speed"], errors="coerce").fillna(0)
    ]
    table.to_csv(path, index=False)
    return table


# ----------------------------------------------------------------------
# Activity detail
# ----------------------------------------------------------------------
def project_activity_detail(activity: Dict) -> Dict:
    return {field: activity.get(field) for field in DETAIL_FIELDS}


def _splits_table(splits: List[Dict]) -> List[str]:
    lines = ["", "  Splits (per km)", f"  {SUB_RULE}"]
    lines.append(f"    {'km':<4}  {'Pace':<10}  {'HR':<10}  {'Elev':<8}")
    for index, split in enumerate(splits, start=1):
        distance = _num(split, "distance")
        moving = _num(split, "moving_time")
        if distance > 0 and moving > 0:
            pace = format_pace(distance / moving)
        else:
            pace = "N/A"

        hr = split.get("average_heartrate")
        hr_text = f"{hr:.0f}" if hr is not None else "—"
        elev_text = f"{_num(split, 'elevation_difference'):+.0f}m"
        lines.append(f"    {index:<4d}  {pace:<10}  {hr_text:<10}  {elev_text:<8}")
    return lines


def _laps_table(laps: List[Dict], unit: str) -> List[str]:
    lines = ["", "  Laps", f"  {SUB_RULE}"]
    lines.append(f"    {'Lap':<4}  {'Distance':<10}  {'Time':<10}  {'Pace':<10}")
    for index, lap in enumerate(laps, start=1):
        distance = format_distance(_num(lap, "distance"))
        moving = format_duration(_num(lap, "moving_time"))
        pace = format_by_unit(unit, _num(lap, "average_speed")) or "—"
        lines.append(f"    {index:<4d}  {distance:<10}  {moving:<10}  {pace:<10}")
    return lines


def render_activity_detail(activity: Dict, now: Optional[dt.datetime] = None) -> str:
    sport_type = _sport_type(activity)
    unit = activity_unit(sport_type)

    lines = [
        "",
        RULE,
        f"  {format_local_date(activity.get('start_date_local'))}  {activity.get('name') or 'Untitled'}",
        f"  Type: {activity_label(sport_type)}",
        RULE,
        "",
    ]
    lines.extend(_summary_rows(activity, unit, with_best=True))

    for key, label, suffix in (
        ("average_cadence", "Cadence:", ""),
        ("average_watts", "Power:", " W"),
    ):
        value = activity.get(key)
        if value is not None:
            lines.append(_row(label, f"{value:.0f}{suffix}"))

    calories = activity.get("calories")
    if calories:
        lines.append(_row("Calories:", f"{calories:.0f}"))

    suffer = activity.get("suffer_score")
    if suffer is not None:
        lines.append(_row("Suffer Score:", f"{suffer:.0f}"))

    description = activity.get("description")
    if description:
        lines.extend(["", f"  Description: {description}"])

    splits = activity.get("splits_metric") or []
    if 0 < len(splits) <= MAX_TABLE_ROWS:
        lines.extend(_splits_table(splits))

    laps = activity.get("laps") or []
    if 1 < len(laps) <= MAX_TABLE_ROWS:
        lines.extend(_laps_table(laps, unit))

    lines.extend(_footer(now))
    return "\n".join(lines)


# ----------------------------------------------------------------------
# Athlete stats
# ----------------------------------------------------------------------
def project_athlete_stats(stats: Dict) -> Dict:
    return {field: stats.get(field) for field in STATS_FIELDS}


def render_athlete_stats(stats: Dict, now: Optional[dt.datetime] = None) -> str:
    lines = ["", RULE, "  Athlete Stats", RULE]

    for period, period_label in STATS_PERIODS:
        for sport, sport_label in STATS_SPORTS:
            totals = stats.get(f"{period}_{sport}_totals") or {}
            count = int(totals.get("count") or 0)
            if count == 0:
                continue

            lines.append("")
            lines.append(f"  {sport_label} ({period_label})")
            lines.append(f"  {SUB_RULE}")
            lines.append(_row("Distance:", format_distance_stat(_num(totals, "distance"))))
            lines.append(_row("Activities:", str(count)))
            elevation = _num(totals, "elevation_gain")
            if elevation > 0:
                lines.append(_row("Elevation:", f"{format_elevation(elevation)} gain"))
            lines.append(_row("Moving Time:", format_duration_hm(_num(totals, "moving_time"))))

    lines.extend(_footer(now))
    return "\n".join(lines)
