"""Pace, speed and Grade Adjusted Pace (GAP) calculations."""

import math
from dataclasses import dataclass
from typing import Optional

from ..config import AnalyticsPolicy, DEFAULT_POLICY


def _is_positive(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def speed_to_pace(speed_mps: Optional[float]) -> float:
    """
    Convert speed (m/s) to pace (min/km).

    Returns 0.0 for missing, zero or invalid speed.
    """
    if not _is_positive(speed_mps):
        return 0.0
    return 1000 / (speed_mps * 60)


def pace_to_speed(pace_min_km: Optional[float]) -> float:
    """
    Convert pace (min/km) to speed (m/s).

    Returns 0.0 for missing, zero or invalid pace.
    """
    if not _is_positive(pace_min_km):
        return 0.0
    return 1000 / (pace_min_km * 60)


def format_pace(pace_min_km: Optional[float]) -> str:
    """
    Format a pace in min/km as 'M:SS'.

    The pace is rounded to whole seconds before splitting into minutes and
    seconds, so 4.999999 renders as '5:00' and never as '4:60'.
    """
    if not _is_positive(pace_min_km):
        return "0:00"
    total_seconds = int(round(pace_min_km * 60))
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def calculate_pace(speed_mps: Optional[float]) -> str:
    """Format the pace for a speed in m/s ('0:00' when speed is missing)."""
    return format_pace(speed_to_pace(speed_mps))


def format_duration(total_seconds: Optional[int]) -> str:
    """Format seconds as 'H:MM:SS', or 'M:SS' under an hour."""
    if not total_seconds or total_seconds < 0:
        return "0:00"
    hours, rest = divmod(int(total_seconds), 3600)
    minutes, seconds = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


@dataclass(frozen=True)
class GapResult:
    """Grade Adjusted Pace for one run."""

    raw_pace_min_km: float
    elev_per_km: float
    adjustment_min: float       # naive adjustment before the floor
    gap_min_km: float
    floor_applied: bool

    @property
    def gap_speed_mps(self) -> float:
        return pace_to_speed(self.gap_min_km)

    @property
    def gap(self) -> str:
        return format_pace(self.gap_min_km)

    @property
    def raw_pace(self) -> str:
        return format_pace(self.raw_pace_min_km)


def calculate_gap(
    raw_pace_min_km: float,
    elev_per_km: float,
    policy: AnalyticsPolicy = DEFAULT_POLICY,
) -> GapResult:
    """
    Grade Adjusted Pace: flat-ground equivalent of a hilly pace.

    Climbing costs roughly `gap_seconds_per_10m` seconds of pace per km for
    every 10 m of gain per km. The result is floored at `gap_floor_ratio` of
    the raw pace so noisy elevation data cannot produce impossible paces.

        adjust = (elev_per_km / 10) * 8 / 60           (min/km)
        gap    = max(raw - adjust, raw * 0.80)

    Args:
        raw_pace_min_km: Moving pace in min/km
        elev_per_km: Elevation gain per km (negative values count as flat)
        policy: Analytics policy holding the GAP constants

    Returns:
        GapResult with raw pace, adjustment and adjusted pace
    """
    if not _is_positive(raw_pace_min_km):
        return GapResult(0.0, 0.0, 0.0, 0.0, False)

    elev = elev_per_km if (elev_per_km is not None and math.isfinite(elev_per_km)) else 0.0
    elev = max(0.0, elev)

    adjustment_min = (elev / 10) * policy.gap_seconds_per_10m / 60
    floor = raw_pace_min_km * policy.gap_floor_ratio
    adjusted = raw_pace_min_km - adjustment_min

    return GapResult(
        raw_pace_min_km=raw_pace_min_km,
        elev_per_km=elev,
        adjustment_min=adjustment_min,
        gap_min_km=max(adjusted, floor),
        floor_applied=adjusted < floor,
    )


def is_significant_adjustment(
    raw_pace_min_km: float,
    gap_min_km: float,
    policy: AnalyticsPolicy = DEFAULT_POLICY,
) -> bool:
    """True when GAP differs from raw pace by more than the threshold."""
    return abs(raw_pace_min_km - gap_min_km) > policy.significant_adjustment_min
