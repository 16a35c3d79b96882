"""
Dashboard service.

One call turns the raw activity collection and the active filter into every
dataset the dashboard renders. Nothing is cached; each call recomputes from
scratch.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..analysis.aggregation import aggregate_monthly, apply_run_filter, available_years
from ..analysis.correlation import build_efficiency_dataset, build_scatter_dataset
from ..analysis.diagnosis import diagnose
from ..analysis.drift import analyze_drift
from ..analysis.normalizer import normalize_activities
from ..analysis.summary import find_personal_bests, summarize_heart_rate, summarize_totals
from ..config import AnalyticsPolicy, DEFAULT_POLICY
from ..models.activity import RawActivity
from ..models.analysis import (
    ActivityTotals,
    Diagnosis,
    DriftReport,
    EfficiencyPoint,
    HRSummary,
    MonthlyBucket,
    NormalizedRun,
    PersonalBest,
    RunFilter,
    ScatterPoint,
)
from .base import BaseService


@dataclass
class DashboardReport:
    """All derived datasets for one filter selection."""

    run_filter: RunFilter
    runs: List[NormalizedRun]
    monthly: List[MonthlyBucket]
    scatter: List[ScatterPoint]
    efficiency: List[EfficiencyPoint]
    drift: DriftReport
    totals: ActivityTotals
    diagnosis: Diagnosis
    hr_summary: Optional[HRSummary] = None
    personal_bests: List[PersonalBest] = field(default_factory=list)
    years: List[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.runs

    @property
    def has_hr_data(self) -> bool:
        """False when no run in the filtered set carries heart rate."""
        return any(r.has_hr for r in self.runs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filter": self.run_filter.to_dict(),
            "has_hr_data": self.has_hr_data,
            "runs": [r.to_dict() for r in self.runs],
            "monthly": [b.to_dict() for b in self.monthly],
            "scatter": [p.to_dict() for p in self.scatter],
            "efficiency": [p.to_dict() for p in self.efficiency],
            "drift": self.drift.to_dict(),
            "totals": self.totals.to_dict(),
            "hr_summary": self.hr_summary.to_dict() if self.hr_summary else None,
            "personal_bests": [pb.to_dict() for pb in self.personal_bests],
            "years": list(self.years),
            "diagnosis": self.diagnosis.to_dict(),
        }


class DashboardService(BaseService):
    """
    Builds DashboardReports from raw activities.

    The filtered views (monthly, scatter, efficiency, drift, summaries) use
    the active RunFilter. The diagnosis always looks at the full history so
    that the recent-vs-older comparison has an older group to compare with.
    """

    def __init__(
        self,
        policy: AnalyticsPolicy = DEFAULT_POLICY,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(logger)
        self._policy = policy

    @property
    def policy(self) -> AnalyticsPolicy:
        return self._policy

    def build(
        self,
        activities: Iterable[RawActivity],
        run_filter: Optional[RunFilter] = None,
        now: Optional[datetime] = None,
    ) -> DashboardReport:
        """
        Compute every dashboard dataset.

        Args:
            activities: Running activities (callers filter out other sports)
            run_filter: Active filter (defaults to the last 30 runs)
            now: Reference time for the diagnosis recent window

        Returns:
            DashboardReport
        """
        policy = self._policy
        run_filter = run_filter or RunFilter.last(policy.default_last_n)

        all_runs = normalize_activities(activities, policy)
        runs = apply_run_filter(all_runs, run_filter)

        drift = analyze_drift(runs, policy)
        efficiency = build_efficiency_dataset(runs, policy)

        history_drift = analyze_drift(all_runs, policy)
        history_efficiency = build_efficiency_dataset(all_runs, policy)
        diagnosis = diagnose(
            all_runs,
            history_drift.runs,
            efficiency_points=history_efficiency,
            now=now,
            policy=policy,
        )

        self._logger.debug(
            f"Dashboard built: {len(runs)}/{len(all_runs)} runs, "
            f"{len(drift.runs)} drift runs, {len(efficiency)} efficiency points"
        )

        return DashboardReport(
            run_filter=run_filter,
            runs=runs,
            monthly=aggregate_monthly(runs, policy.monthly_bucket_limit),
            scatter=build_scatter_dataset(runs, policy),
            efficiency=efficiency,
            drift=drift,
            totals=summarize_totals(runs),
            diagnosis=diagnosis,
            hr_summary=summarize_heart_rate(runs),
            personal_bests=find_personal_bests(runs),
            years=available_years(all_runs),
        )
