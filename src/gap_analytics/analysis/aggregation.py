"""Run filtering and monthly aggregation."""

from typing import Dict, List, Sequence

from ..config import DEFAULT_POLICY
from ..models.analysis import MonthlyBucket, NormalizedRun, RunFilter
from .normalizer import month_color


def _chronological(runs: Sequence[NormalizedRun]) -> List[NormalizedRun]:
    return sorted(runs, key=lambda r: (r.timestamp, r.id))


def apply_run_filter(
    runs: Sequence[NormalizedRun],
    run_filter: RunFilter,
) -> List[NormalizedRun]:
    """
    Apply the dashboard time filter.

    'last' mode takes the N most recent runs and returns them oldest first.
    'year' mode keeps a single calendar year, or every run for 'All'.

    Args:
        runs: Normalized runs in any order
        run_filter: Active filter

    Returns:
        Filtered runs in chronological order
    """
    if run_filter.mode == "year":
        if run_filter.year == "All":
            return _chronological(runs)
        year = int(run_filter.year)
        return _chronological([r for r in runs if r.year == year])

    newest_first = sorted(runs, key=lambda r: (r.timestamp, r.id), reverse=True)
    return list(reversed(newest_first[:run_filter.last_n]))


def available_years(runs: Sequence[NormalizedRun]) -> List[int]:
    """Years that contain at least one run, newest first."""
    return sorted({r.year for r in runs}, reverse=True)


def aggregate_monthly(
    runs: Sequence[NormalizedRun],
    limit: int = DEFAULT_POLICY.monthly_bucket_limit,
) -> List[MonthlyBucket]:
    """
    Group runs by calendar month.

    Buckets accumulate distance, run count, heart-rate sum and count, and
    training load (Strava suffer score). Runs without HR still count towards
    volume; the bucket's avg HR is 0 when none of its runs carry HR.

    Args:
        runs: Normalized runs in any order
        limit: Number of most recent buckets to keep

    Returns:
        Buckets in ascending 'YYYY-MM' order, at most `limit` of them
    """
    totals: Dict[str, Dict[str, float]] = {}
    # Fixed summation order keeps float totals identical for any input order
    for run in _chronological(runs):
        entry = totals.setdefault(run.month_key, {
            "year": run.year,
            "month": run.month,
            "km": 0.0,
            "runs": 0,
            "hr_total": 0.0,
            "hr_count": 0,
            "load": 0.0,
        })
        entry["km"] += run.distance_km
        entry["runs"] += 1
        if run.has_hr:
            entry["hr_total"] += run.avg_hr
            entry["hr_count"] += 1
        entry["load"] += run.suffer_score or 0.0

    keys = sorted(totals)
    if limit > 0:
        keys = keys[-limit:]

    return [
        MonthlyBucket(
            key=key,
            year=int(totals[key]["year"]),
            month=int(totals[key]["month"]),
            distance_km=totals[key]["km"],
            run_count=int(totals[key]["runs"]),
            hr_total=totals[key]["hr_total"],
            hr_count=int(totals[key]["hr_count"]),
            total_load=totals[key]["load"],
            color=month_color(int(totals[key]["month"])),
        )
        for key in keys
    ]
