"""
Rule-based training diagnosis.

Three independent rules, each with its own evidence:

1. HR deviation: on flat baseline runs, is heart rate over the last 30 days
   higher than before for the same kind of effort?
2. High drift: does any run show cardiac drift above 18 bpm?
3. Efficiency trend: is the HR cost per unit of GAP speed rising or falling?

The rules are heuristics and are reported as such; they never combine into
a single score and never raise on thin data (they fall back to neutral).
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

from ..config import AnalyticsPolicy, DEFAULT_POLICY
from ..models.analysis import (
    Diagnosis,
    DriftRun,
    EfficiencyPoint,
    EfficiencyTrend,
    Finding,
    FindingSeverity,
    NormalizedRun,
    RecommendedAction,
)
from .correlation import build_efficiency_dataset

logger = logging.getLogger(__name__)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_baseline_run(run: NormalizedRun, policy: AnalyticsPolicy = DEFAULT_POLICY) -> bool:
    """Flat, substantial run with heart rate."""
    return (
        run.has_hr
        and run.distance_km > policy.baseline_min_distance_km
        and run.elev_per_km < policy.baseline_max_elev_per_km
    )


def calculate_hr_deviation(
    runs: Sequence[NormalizedRun],
    now: Optional[datetime] = None,
    policy: AnalyticsPolicy = DEFAULT_POLICY,
) -> Tuple[float, List[NormalizedRun], List[NormalizedRun]]:
    """
    Mean avg HR of recent baseline runs minus that of older baseline runs.

    Args:
        runs: Normalized runs (full history)
        now: Reference time for the recent window (defaults to current UTC).
            Runs strictly newer than `now` minus the window are recent.
        policy: Analytics policy with baseline and window thresholds

    Returns:
        Tuple of (deviation in bpm, recent runs, older runs). The deviation
        is 0 unless both groups hold at least `min_group_runs` runs.
    """
    now = _as_aware(now or datetime.now(timezone.utc))
    cutoff = now - timedelta(days=policy.recent_window_days)

    recent, older = [], []
    for run in runs:
        if not is_baseline_run(run, policy):
            continue
        if _as_aware(run.start_utc or run.start) > cutoff:
            recent.append(run)
        else:
            older.append(run)

    if len(recent) < policy.min_group_runs or len(older) < policy.min_group_runs:
        return 0.0, recent, older

    deviation = _mean([r.avg_hr for r in recent]) - _mean([r.avg_hr for r in older])
    return deviation, recent, older


def detect_high_drift(
    drift_runs: Sequence[DriftRun],
    policy: AnalyticsPolicy = DEFAULT_POLICY,
) -> Tuple[bool, float, float]:
    """
    Check for runs with excessive cardiac drift.

    Returns:
        Tuple of (any drift above threshold, mean drift, max drift). Both
        magnitudes are 0 when there are no drift runs.
    """
    if not drift_runs:
        return False, 0.0, 0.0

    drifts = [d.drift for d in drift_runs]
    high = any(d > policy.high_drift_bpm for d in drifts)
    return high, _mean(drifts), max(drifts)


def classify_efficiency_trend(
    points: Sequence[EfficiencyPoint],
    policy: AnalyticsPolicy = DEFAULT_POLICY,
) -> Tuple[EfficiencyTrend, Optional[float], Optional[float]]:
    """
    Compare the HR/speed ratio at the start and end of the series.

    Needs at least `efficiency_min_points` points; the mean ratio of the
    first and last chunk (25% of the series, at least 2 points) are compared
    against a +/-5% band.

    Returns:
        Tuple of (trend, start ratio, end ratio); ratios are None when there
        are too few points.
    """
    if len(points) < policy.efficiency_min_points:
        return EfficiencyTrend.STABLE, None, None

    ordered = sorted(points, key=lambda p: (p.start.timestamp(), p.run_id))
    chunk = max(policy.efficiency_min_chunk, int(len(ordered) * policy.efficiency_chunk_fraction))

    start_ratio = _mean([p.ratio for p in ordered[:chunk]])
    end_ratio = _mean([p.ratio for p in ordered[-chunk:]])

    if end_ratio > start_ratio * (1 + policy.efficiency_band):
        trend = EfficiencyTrend.WORSENING
    elif end_ratio < start_ratio * (1 - policy.efficiency_band):
        trend = EfficiencyTrend.IMPROVING
    else:
        trend = EfficiencyTrend.STABLE

    return trend, start_ratio, end_ratio


def build_findings(diagnosis: Diagnosis, policy: AnalyticsPolicy = DEFAULT_POLICY) -> List[Finding]:
    """One finding per rule, worded from the rule's evidence."""
    findings = []

    if diagnosis.hr_deviation > policy.hr_deviation_alert_bpm:
        findings.append(Finding(
            kind="hr_deviation",
            severity=FindingSeverity.ALERT,
            title="Elevated heart rate on flat runs",
            message=(
                f"Flat runs show +{diagnosis.hr_deviation:.0f} bpm for the same effort "
                f"over the last {policy.recent_window_days} days "
                f"({diagnosis.recent_count} recent vs {diagnosis.baseline_count} older runs)."
            ),
        ))
    elif diagnosis.has_hr_deviation:
        findings.append(Finding(
            kind="hr_deviation",
            severity=FindingSeverity.OK,
            title="Heart rate stable",
            message=(
                f"Recent flat runs are within {policy.hr_deviation_alert_bpm:.0f} bpm "
                f"of earlier ones ({diagnosis.hr_deviation:+.1f} bpm)."
            ),
        ))
    else:
        findings.append(Finding(
            kind="hr_deviation",
            severity=FindingSeverity.OK,
            title="Not enough baseline runs",
            message=(
                f"Need at least {policy.min_group_runs} flat runs over "
                f"{policy.baseline_min_distance_km:.0f} km both in the last "
                f"{policy.recent_window_days} days and before."
            ),
        ))

    if diagnosis.high_drift:
        findings.append(Finding(
            kind="drift",
            severity=FindingSeverity.ALERT,
            title="High cardiac drift",
            message=(
                f"{diagnosis.high_drift_count} of {diagnosis.drift_run_count} runs drift "
                f"more than {policy.high_drift_bpm:.0f} bpm (max {diagnosis.max_drift:.0f}, "
                f"avg {diagnosis.avg_drift:.0f}). Possible dehydration or low iron."
            ),
        ))
    elif diagnosis.drift_run_count:
        findings.append(Finding(
            kind="drift",
            severity=FindingSeverity.OK,
            title="Cardiac drift normal",
            message=(
                f"Average drift of {diagnosis.avg_drift:.0f} bpm across "
                f"{diagnosis.drift_run_count} runs is within the normal range "
                f"(<{policy.high_drift_bpm:.0f} bpm)."
            ),
        ))
    else:
        findings.append(Finding(
            kind="drift",
            severity=FindingSeverity.OK,
            title="No drift data",
            message="No runs with per-km heart rate splits yet.",
        ))

    trend = diagnosis.efficiency_trend
    if trend == EfficiencyTrend.WORSENING:
        findings.append(Finding(
            kind="efficiency",
            severity=FindingSeverity.WATCH,
            title="Efficiency worsening",
            message=(
                f"Heart beats per m/s rose from {diagnosis.start_ratio:.1f} "
                f"to {diagnosis.end_ratio:.1f}: the same pace costs more effort."
            ),
        ))
    elif trend == EfficiencyTrend.IMPROVING:
        findings.append(Finding(
            kind="efficiency",
            severity=FindingSeverity.OK,
            title="Efficiency improving",
            message=(
                f"Heart beats per m/s fell from {diagnosis.start_ratio:.1f} "
                f"to {diagnosis.end_ratio:.1f}: aerobic fitness is building."
            ),
        ))
    elif diagnosis.start_ratio is not None:
        findings.append(Finding(
            kind="efficiency",
            severity=FindingSeverity.OK,
            title="Efficiency stable",
            message=f"HR cost per unit of speed held within {policy.efficiency_band:.0%}.",
        ))
    else:
        findings.append(Finding(
            kind="efficiency",
            severity=FindingSeverity.OK,
            title="Not enough efficiency data",
            message=f"Need at least {policy.efficiency_min_points} flat, steady runs with HR.",
        ))

    return findings


def recommend_actions(diagnosis: Diagnosis, policy: AnalyticsPolicy = DEFAULT_POLICY) -> List[RecommendedAction]:
    """Follow-up actions for the alerts raised, most urgent first."""
    actions = []
    elevated_hr = diagnosis.hr_deviation > policy.hr_deviation_alert_bpm

    if elevated_hr:
        actions.append(RecommendedAction(
            priority="critical",
            task="Blood test: ferritin, iron, hemoglobin and magnesium.",
        ))
    if diagnosis.high_drift:
        actions.append(RecommendedAction(
            priority="high",
            task="Hydration: at least 2.5 L of water a day, with electrolytes on long runs.",
        ))
    if elevated_hr:
        actions.append(RecommendedAction(
            priority="high",
            task="Monitor resting HR each morning; stop intense training if it rises more than 5 bpm.",
        ))
    if diagnosis.efficiency_trend == EfficiencyTrend.WORSENING:
        actions.append(RecommendedAction(
            priority="medium",
            task="Active rest: reduce training volume by 20% for a week.",
        ))

    return actions


def diagnose(
    runs: Sequence[NormalizedRun],
    drift_runs: Sequence[DriftRun],
    efficiency_points: Optional[Sequence[EfficiencyPoint]] = None,
    now: Optional[datetime] = None,
    policy: AnalyticsPolicy = DEFAULT_POLICY,
) -> Diagnosis:
    """
    Run all three rules and attach findings and actions.

    Args:
        runs: Normalized runs (full history, not the filtered view)
        drift_runs: Drift runs from the drift analyzer
        efficiency_points: Efficiency dataset; built from `runs` when omitted
        now: Reference time for the recent window
        policy: Analytics policy

    Returns:
        Diagnosis with per-rule evidence
    """
    if efficiency_points is None:
        efficiency_points = build_efficiency_dataset(runs, policy)

    deviation, recent, older = calculate_hr_deviation(runs, now, policy)
    high_drift, avg_drift, max_drift = detect_high_drift(drift_runs, policy)
    trend, start_ratio, end_ratio = classify_efficiency_trend(efficiency_points, policy)

    has_groups = len(recent) >= policy.min_group_runs and len(older) >= policy.min_group_runs

    diagnosis = Diagnosis(
        hr_deviation=deviation,
        recent_count=len(recent),
        baseline_count=len(older),
        recent_avg_hr=_mean([r.avg_hr for r in recent]) if has_groups else None,
        baseline_avg_hr=_mean([r.avg_hr for r in older]) if has_groups else None,
        high_drift=high_drift,
        avg_drift=avg_drift,
        max_drift=max_drift,
        drift_run_count=len(drift_runs),
        high_drift_count=sum(1 for d in drift_runs if d.drift > policy.high_drift_bpm),
        efficiency_trend=trend,
        efficiency_points=len(efficiency_points),
        start_ratio=start_ratio,
        end_ratio=end_ratio,
    )
    diagnosis.findings = build_findings(diagnosis, policy)
    diagnosis.actions = recommend_actions(diagnosis, policy)

    logger.debug(
        "Diagnosis: hr_deviation=%.1f high_drift=%s efficiency=%s",
        deviation, high_drift, trend.value,
    )
    return diagnosis
