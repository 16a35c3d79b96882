"""
Activity normalization.

Turns a RawActivity into a NormalizedRun: distance in km, raw pace, GAP,
elevation per km, heart-rate fields and calendar bucketing. This is the
validation boundary; anything that would divide by zero downstream is
excluded here.
"""

import logging
from typing import Iterable, List, Optional

from ..config import AnalyticsPolicy, DEFAULT_POLICY
from ..metrics.pace import (
    calculate_gap,
    is_significant_adjustment,
    pace_to_speed,
    speed_to_pace,
)
from ..models.activity import RawActivity
from ..models.analysis import NormalizedRun

logger = logging.getLogger(__name__)


# Calendar month palette (index 0 = January)
MONTH_COLORS = [
    "#6c5ce7",  # Jan
    "#ff6b6b",  # Feb
    "#00b894",  # Mar
    "#fdcb6e",  # Apr
    "#e17055",  # May
    "#74b9ff",  # Jun
    "#a29bfe",  # Jul
    "#55efc4",  # Aug
    "#ffeaa7",  # Sep
    "#fab1a0",  # Oct
    "#6c5ce7",  # Nov
    "#00b894",  # Dec
]
FALLBACK_COLOR = "#636e72"


def month_color(month: int) -> str:
    """Display color for a calendar month (1-12)."""
    if 1 <= month <= 12:
        return MONTH_COLORS[month - 1]
    return FALLBACK_COLOR


def _resolve_speed(activity: RawActivity) -> Optional[float]:
    """Average speed, derived from distance / moving time when missing."""
    speed = activity.average_speed_mps
    if speed is not None and speed > 0:
        return speed
    if activity.moving_time_sec > 0 and activity.distance_m > 0:
        return activity.distance_m / activity.moving_time_sec
    return None


def normalize_activity(
    activity: RawActivity,
    policy: AnalyticsPolicy = DEFAULT_POLICY,
) -> Optional[NormalizedRun]:
    """
    Normalize one activity.

    Returns None when the activity has no distance, or when neither an
    average speed nor a moving time is available to derive a pace.
    """
    if activity.distance_m <= 0:
        logger.debug("Skipping activity %s: zero distance", activity.id)
        return None

    speed = _resolve_speed(activity)
    if speed is None:
        logger.debug("Skipping activity %s: no speed or moving time", activity.id)
        return None

    distance_km = activity.distance_km
    if activity.moving_time_sec > 0:
        raw_pace = (activity.moving_time_sec / 60) / distance_km
    else:
        raw_pace = speed_to_pace(speed)

    elevation = max(0.0, activity.total_elevation_gain_m or 0.0)
    elev_per_km = elevation / distance_km
    gap = calculate_gap(raw_pace, elev_per_km, policy)

    gap_speed = pace_to_speed(gap.gap_min_km) if gap.gap_min_km > 0 else speed

    avg_hr = activity.average_heartrate if activity.has_heartrate else None
    max_hr = activity.max_heartrate or avg_hr

    start = activity.local_start

    return NormalizedRun(
        id=activity.id,
        name=activity.name,
        start=start,
        distance_km=distance_km,
        moving_time_sec=activity.moving_time_sec,
        speed_mps=speed,
        raw_pace_min_km=raw_pace,
        elevation_gain_m=elevation,
        elev_per_km=elev_per_km,
        gap_min_km=gap.gap_min_km,
        gap_speed_mps=gap_speed,
        significant_adjustment=is_significant_adjustment(raw_pace, gap.gap_min_km, policy),
        month_key=f"{start.year:04d}-{start.month:02d}",
        year=start.year,
        month=start.month,
        color=month_color(start.month),
        avg_hr=avg_hr,
        max_hr=max_hr,
        suffer_score=activity.suffer_score or 0.0,
        splits=activity.splits,
        start_utc=activity.start_date,
    )


def normalize_activities(
    activities: Iterable[RawActivity],
    policy: AnalyticsPolicy = DEFAULT_POLICY,
) -> List[NormalizedRun]:
    """
    Normalize a collection of activities.

    Returns runs in chronological order (ties broken by id); excluded
    activities are dropped.
    """
    runs = []
    skipped = 0
    for activity in activities:
        run = normalize_activity(activity, policy)
        if run is None:
            skipped += 1
            continue
        runs.append(run)

    if skipped:
        logger.debug("Normalized %d runs, skipped %d", len(runs), skipped)

    return sorted(runs, key=lambda r: (r.timestamp, r.id))
