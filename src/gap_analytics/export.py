"""
Activity export.

Copies a filtered slice of the activity collection into JSON, CSV or a
plain-text summary for use in other tools (spreadsheets, notes, chat
prompts).
"""

import csv
import io
import json
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import ValidationError
from .models.activity import RawActivity


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    TEXT = "text"


CSV_HEADERS = ["Date", "Name", "Type", "Distance (km)", "Time (min)", "Avg HR", "Elevation (m)"]


def _parse_format(value: Any) -> ExportFormat:
    try:
        return ExportFormat(value)
    except ValueError:
        raise ValidationError(
            f"Unknown export format: {value}",
            field="format",
            details={"allowed": [f.value for f in ExportFormat]},
        )


def _number(value: Optional[float]) -> str:
    """Print a number without a trailing '.0' (empty for None)."""
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _activity_type(activity: RawActivity) -> str:
    return activity.activity_type or activity.sport_type


def select_activities(
    activities: Iterable[RawActivity],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    min_distance_km: float = 0.0,
) -> List[RawActivity]:
    """
    Filter by local start date (inclusive on both ends) and minimum distance.

    Returns activities newest first.
    """
    if date_from and date_to and date_from > date_to:
        raise ValidationError("date_from must not be after date_to", field="date_from")
    if min_distance_km < 0:
        raise ValidationError("min_distance_km must not be negative", field="min_distance_km")

    selected = []
    for activity in activities:
        day = activity.local_start.date()
        if date_from and day < date_from:
            continue
        if date_to and day > date_to:
            continue
        if activity.distance_km < min_distance_km:
            continue
        selected.append(activity)

    return sorted(selected, key=lambda a: (a.start_date, a.id), reverse=True)


def activity_to_export_dict(activity: RawActivity) -> Dict[str, Any]:
    """Compact JSON record for one activity."""
    return {
        "id": activity.id,
        "name": activity.name,
        "date": activity.start_date.isoformat().replace("+00:00", "Z"),
        "distance_km": round(activity.distance_km, 2),
        "time_min": round(activity.moving_time_sec / 60, 2),
        "avg_hr": activity.average_heartrate,
        "max_hr": activity.max_heartrate,
        "elevation_gain": activity.total_elevation_gain_m,
        "type": _activity_type(activity),
        "avg_speed": activity.average_speed_mps,
        "kudos": activity.kudos_count,
    }


def to_json(activities: List[RawActivity]) -> str:
    return json.dumps([activity_to_export_dict(a) for a in activities], indent=2)


def to_csv(activities: List[RawActivity]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for a in activities:
        writer.writerow([
            a.local_start.date().isoformat(),
            a.name,
            _activity_type(a),
            f"{a.distance_km:.2f}",
            f"{a.moving_time_sec / 60:.2f}",
            _number(a.average_heartrate) if a.has_heartrate else "",
            _number(a.total_elevation_gain_m),
        ])
    return output.getvalue().rstrip("\n")


def to_text(activities: List[RawActivity]) -> str:
    lines = []
    for a in activities:
        hr = f"{round(a.average_heartrate)}bpm" if a.has_heartrate else "N/A"
        lines.append(
            f"• {a.local_start.date().isoformat()} - {a.name}: "
            f"{a.distance_km:.2f}km in {a.moving_time_sec / 60:.0f}min, "
            f"HR: {hr}, Elev: {_number(a.total_elevation_gain_m)}m"
        )
    return "\n".join(lines)


def export_activities(
    activities: Iterable[RawActivity],
    fmt: str = "json",
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    min_distance_km: float = 0.0,
) -> str:
    """
    Export activities as text in the requested format.

    Args:
        activities: Activities to export
        fmt: 'json', 'csv' or 'text'
        date_from: First local date to include
        date_to: Last local date to include
        min_distance_km: Drop shorter activities

    Returns:
        Exported text (an empty list or body when nothing matches)

    Raises:
        ValidationError: On an unknown format or inconsistent filters
    """
    export_format = _parse_format(fmt)
    selected = select_activities(activities, date_from, date_to, min_distance_km)

    if export_format == ExportFormat.CSV:
        return to_csv(selected)
    if export_format == ExportFormat.TEXT:
        return to_text(selected)
    return to_json(selected)
