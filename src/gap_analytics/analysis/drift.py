"""
Intra-run cardiac drift.

Cardiac drift is the rise in heart rate over a run held at roughly constant
effort, a marker of fatigue, dehydration or heat stress. It is measured per
run from per-km splits by comparing the mean HR of the last third of the
splits with the mean HR of the first third.

Splits only exist after a run has been enriched through the single-activity
endpoint. Eligible runs without enough splits are reported as missing detail
so the caller can queue them for enrichment.
"""

import logging
from typing import List, Sequence, Tuple

from ..config import AnalyticsPolicy, DEFAULT_POLICY
from ..metrics.pace import speed_to_pace
from ..models.activity import Split
from ..models.analysis import DriftReport, DriftRun, DriftSample, NormalizedRun

logger = logging.getLogger(__name__)


def _js_number(value: float) -> str:
    """Render a number the way a browser prints it (no trailing '.0')."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def drift_color(rank: int, count: int) -> Tuple[str, float]:
    """
    Recency color for a drift run.

    Oldest runs get a muted slate, newest a vivid indigo: hue 210->255,
    saturation 30%->85%, lightness 75%->50%.

    Args:
        rank: Index among drift runs, oldest = 0
        count: Number of drift runs

    Returns:
        Tuple of (hsl color string, recency ratio 0..1)
    """
    ratio = rank / ((count - 1) or 1)
    hue = 210 + ratio * 45
    sat = 30 + ratio * 55
    light = 75 - ratio * 25
    color = f"hsl({_js_number(hue)}, {_js_number(sat)}%, {_js_number(light)}%)"
    return color, ratio


def build_drift_samples(splits: Sequence[Split]) -> List[DriftSample]:
    """
    Per-km samples from splits, dropping splits without heart rate.

    Efficiency is hr / speed when both are present, else 0.
    """
    samples = []
    for idx, split in enumerate(splits):
        hr = split.average_heartrate or 0.0
        if hr <= 0:
            continue
        speed = split.average_speed_mps or 0.0
        samples.append(DriftSample(
            km=idx + 1,
            hr=hr,
            pace_min_km=speed_to_pace(speed),
            efficiency=hr / speed if speed > 0 else 0.0,
        ))
    return samples


def _thirds_delta(values: Sequence[float]) -> float:
    """Mean of the last third minus mean of the first third."""
    if not values:
        return 0.0
    third = max(1, len(values) // 3)
    first = values[:third]
    last = values[-third:]
    return sum(last) / len(last) - sum(first) / len(first)


def compute_drift(samples: Sequence[DriftSample]) -> float:
    """
    HR drift in bpm across a run.

    Uses floor(n/3) samples (at least 1) from each end. Positive values mean
    heart rate rose during the run.
    """
    return _thirds_delta([s.hr for s in samples])


def compute_efficiency_drift(samples: Sequence[DriftSample]) -> float:
    """Change in hr/speed between the first and last thirds of a run."""
    return _thirds_delta([s.efficiency for s in samples if s.efficiency > 0])


def is_drift_eligible(run: NormalizedRun, policy: AnalyticsPolicy = DEFAULT_POLICY) -> bool:
    """Steady, not-too-hilly run with heart rate, ignoring split detail."""
    return (
        run.has_hr
        and run.elev_per_km < policy.drift_max_elev_per_km
        and run.distance_km >= policy.drift_min_distance_km
        and 0 < run.gap_min_km < policy.drift_max_gap_min_km
    )


def analyze_drift(
    runs: Sequence[NormalizedRun],
    policy: AnalyticsPolicy = DEFAULT_POLICY,
) -> DriftReport:
    """
    Compute cardiac drift for every eligible run with split detail.

    Eligible runs with at least `drift_min_splits` splits carrying HR are
    analysed. The rest are listed as missing detail; those among them that
    already have enough splits, just without HR, are also listed as
    insufficient HR since enrichment cannot help them.

    Args:
        runs: Normalized runs (typically the filtered dashboard set)
        policy: Analytics policy with eligibility thresholds

    Returns:
        DriftReport with drift runs ordered oldest first
    """
    report = DriftReport()
    candidates: List[Tuple[NormalizedRun, List[DriftSample]]] = []

    for run in sorted(runs, key=lambda r: (r.timestamp, r.id)):
        if not is_drift_eligible(run, policy):
            continue

        splits = run.splits or ()
        if len(splits) < policy.drift_min_splits:
            report.missing_detail.append(run.id)
            continue

        samples = build_drift_samples(splits)
        if len(samples) < policy.drift_min_splits:
            report.missing_detail.append(run.id)
            report.insufficient_hr.append(run.id)
            continue

        candidates.append((run, samples))

    for rank, (run, samples) in enumerate(candidates):
        color, ratio = drift_color(rank, len(candidates))
        report.runs.append(DriftRun(
            run_id=run.id,
            name=f"{run.date_short} {run.name}",
            start=run.start,
            samples=tuple(samples),
            drift=compute_drift(samples),
            efficiency_drift=compute_efficiency_drift(samples),
            rank=rank,
            color=color,
            is_recent=ratio > policy.drift_recent_ratio,
        ))

    logger.debug(
        "Drift analysis: %d runs, %d missing detail, %d without split HR",
        len(report.runs), len(report.missing_detail), len(report.insufficient_hr),
    )
    return report
