"""
Pace/HR correlation datasets.

Both datasets use GAP speed rather than raw speed so that heart rate can be
compared across flat and hilly runs.
"""

from typing import List, Sequence

from ..config import AnalyticsPolicy, DEFAULT_POLICY
from ..models.analysis import EfficiencyPoint, NormalizedRun, ScatterPoint


def _hr_runs(runs: Sequence[NormalizedRun]) -> List[NormalizedRun]:
    return sorted((r for r in runs if r.has_hr), key=lambda r: (r.timestamp, r.id))


def build_scatter_dataset(
    runs: Sequence[NormalizedRun],
    policy: AnalyticsPolicy = DEFAULT_POLICY,
) -> List[ScatterPoint]:
    """
    GAP speed (x) against average heart rate (y) for runs over 3 km.

    Args:
        runs: Normalized runs (runs without HR are ignored)
        policy: Analytics policy with the distance threshold

    Returns:
        Scatter points in chronological order
    """
    return [
        ScatterPoint(
            run_id=r.id,
            name=r.name,
            start=r.start,
            distance_km=r.distance_km,
            speed_mps=r.gap_speed_mps,
            hr=r.avg_hr,
            gap=r.gap,
            raw_pace=r.raw_pace,
            elevation_gain_m=r.elevation_gain_m,
            period=f"{r.month_label} {r.year}",
            color=r.color,
        )
        for r in _hr_runs(runs)
        if r.distance_km > policy.scatter_min_distance_km
    ]


def is_efficiency_run(run: NormalizedRun, policy: AnalyticsPolicy = DEFAULT_POLICY) -> bool:
    """Flat, substantial, easy-to-moderate run with heart rate."""
    return (
        run.has_hr
        and run.elev_per_km < policy.efficiency_max_elev_per_km
        and run.distance_km >= policy.efficiency_min_distance_km
        and 0 < run.gap_min_km < policy.efficiency_max_gap_min_km
    )


def build_efficiency_dataset(
    runs: Sequence[NormalizedRun],
    policy: AnalyticsPolicy = DEFAULT_POLICY,
) -> List[EfficiencyPoint]:
    """
    Heart beats per unit of GAP speed for flat, steady runs.

    ratio = avg_hr / gap_speed; a falling ratio over time means the same
    speed costs fewer beats.

    Returns:
        Efficiency points in chronological order
    """
    points = []
    for r in _hr_runs(runs):
        if not is_efficiency_run(r, policy):
            continue
        speed = r.gap_speed_mps or r.speed_mps
        if speed <= 0:
            continue
        points.append(EfficiencyPoint(
            run_id=r.id,
            name=r.name,
            start=r.start,
            distance_km=r.distance_km,
            gap_speed_mps=speed,
            avg_hr=r.avg_hr,
            ratio=r.avg_hr / speed,
            efficiency=speed / r.avg_hr * 1000,
        ))
    return points
