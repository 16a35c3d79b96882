"""Heart rate summary, totals and personal bests for a set of runs."""

from typing import List, Optional, Sequence

from ..models.analysis import ActivityTotals, HRSummary, NormalizedRun, PersonalBest, RunRef


# (key, label, min distance m, max distance m)
PERSONAL_BEST_WINDOWS = [
    ("5k", "5K", 4900, 5200),
    ("10k", "10K", 9900, 10500),
    ("15k", "15K", 14900, 15200),
    ("half", "Half Marathon", 21000, 21500),
    ("marathon", "Marathon", 42000, 43000),
]


def _ref(run: NormalizedRun, value: float) -> RunRef:
    return RunRef(run_id=run.id, name=run.name, start=run.start, value=value)


def summarize_heart_rate(runs: Sequence[NormalizedRun]) -> Optional[HRSummary]:
    """
    Heart rate statistics over runs with HR data.

    The median is the upper median (element n // 2 of the sorted averages).
    Returns None when no run carries heart rate.
    """
    hr_runs = [r for r in runs if r.has_hr]
    if not hr_runs:
        return None

    ordered = sorted(hr_runs, key=lambda r: (r.avg_hr, r.timestamp, r.id))
    lowest, highest = ordered[0], ordered[-1]
    max_hr = max(r.max_hr or r.avg_hr for r in hr_runs)

    return HRSummary(
        run_count=len(hr_runs),
        avg_hr=sum(r.avg_hr for r in hr_runs) / len(hr_runs),
        max_hr_ever=max_hr,
        median_hr=ordered[len(ordered) // 2].avg_hr,
        lowest_avg_hr=_ref(lowest, lowest.avg_hr),
        highest_avg_hr=_ref(highest, highest.avg_hr),
    )


def summarize_totals(runs: Sequence[NormalizedRun]) -> ActivityTotals:
    """Distance, moving time, climb and count for a set of runs."""
    return ActivityTotals(
        distance_km=sum(r.distance_km for r in runs),
        moving_time_sec=sum(r.moving_time_sec for r in runs),
        elevation_gain_m=sum(r.elevation_gain_m for r in runs),
        count=len(runs),
    )


def find_personal_bests(runs: Sequence[NormalizedRun]) -> List[PersonalBest]:
    """
    Fastest run inside each race-distance window.

    Compares moving time; windows without a matching run are omitted. Ties go
    to the earlier run.
    """
    bests = []
    for key, label, low, high in PERSONAL_BEST_WINDOWS:
        candidates = [
            r for r in runs
            if low <= r.distance_km * 1000 <= high and r.moving_time_sec > 0
        ]
        if not candidates:
            continue
        best = min(candidates, key=lambda r: (r.moving_time_sec, r.timestamp, r.id))
        bests.append(PersonalBest(
            key=key,
            label=label,
            activity_id=best.id,
            activity_name=best.name,
            start=best.start,
            distance_m=round(best.distance_km * 1000, 1),
            moving_time_sec=best.moving_time_sec,
            pace=best.raw_pace,
        ))
    return bests
