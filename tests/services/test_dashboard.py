"""Tests for the dashboard service."""

import json

import pytest

from gap_analytics.config import DEFAULT_POLICY
from gap_analytics.models.analysis import EfficiencyTrend, RunFilter
from gap_analytics.services.dashboard import DashboardService


@pytest.fixture
def service():
    return DashboardService()


@pytest.fixture
def history(make_activity, make_splits, days_ago):
    """Four months of runs: older baseline, recent higher HR, some with splits."""
    activities = []
    for i in range(1, 11):
        activities.append(make_activity(
            id=i,
            start=days_ago(40 + i * 7),
            average_heartrate=145,
            suffer_score=30,
        ))
    for i in range(11, 15):
        activities.append(make_activity(
            id=i,
            start=days_ago(i - 10),
            average_heartrate=156,
            splits=make_splits([148, 150, 152, 160, 166, 170]),
        ))
    return activities


class TestDashboardService:
    """Tests for DashboardService.build."""

    def test_default_filter_is_last_30(self, service, history):
        """Test the default filter is the last 30 runs."""
        report = service.build(history, now=history[-1].start_date)

        assert report.run_filter == RunFilter.last(30)
        assert len(report.runs) == 14

    def test_last_n_filter(self, service, history, days_ago):
        """Test filtered views only see the selected runs."""
        report = service.build(history, RunFilter.last(4), now=days_ago(0))

        assert [r.id for r in report.runs] == [14, 13, 12, 11]
        assert report.totals.count == 4
        assert [d.run_id for d in report.drift.runs] == [14, 13, 12, 11]
        assert sum(b.run_count for b in report.monthly) == 4

    def test_diagnosis_uses_full_history(self, service, history, days_ago):
        """Test the diagnosis compares recent runs with older ones outside the filter."""
        report = service.build(history, RunFilter.last(4), now=days_ago(0))
        diagnosis = report.diagnosis

        assert diagnosis.recent_count == 4
        assert diagnosis.baseline_count == 10
        assert diagnosis.hr_deviation == pytest.approx(11.0)
        assert diagnosis.high_drift is True
        assert diagnosis.drift_run_count == 4

    def test_efficiency_trend_from_history(self, service, history, days_ago):
        """Test rising HR at the same pace reads as worsening efficiency."""
        report = service.build(history, RunFilter.for_year("All"), now=days_ago(0))
        assert report.diagnosis.efficiency_trend == EfficiencyTrend.WORSENING

    def test_missing_detail_listed(self, service, history, days_ago):
        """Test runs without splits are reported for enrichment."""
        report = service.build(history, RunFilter.for_year("All"), now=days_ago(0))

        assert sorted(report.drift.missing_detail) == list(range(1, 11))

    def test_years(self, service, history, days_ago):
        """Test available years cover the whole history."""
        report = service.build(history, RunFilter.last(1), now=days_ago(0))
        assert report.years == [2024]

    def test_empty_collection(self, service):
        """Test no activities yields an empty, serializable report."""
        report = service.build([])

        assert report.is_empty is True
        assert report.has_hr_data is False
        assert report.monthly == []
        assert report.hr_summary is None
        assert report.diagnosis.actions == []

    def test_no_heart_rate(self, service, make_activity):
        """Test runs without HR still give volume but no HR views."""
        report = service.build([make_activity(average_heartrate=None)])

        assert report.is_empty is False
        assert report.has_hr_data is False
        assert report.scatter == []
        assert report.monthly[0].run_count == 1

    def test_to_dict_is_json_serializable(self, service, history, days_ago):
        """Test the report serializes to JSON."""
        data = service.build(history, now=days_ago(0)).to_dict()

        encoded = json.dumps(data)

        assert '"diagnosis"' in encoded
        assert data["filter"] == {"mode": "last", "last_n": 30, "year": "All"}

    def test_policy_overrides(self, history, days_ago):
        """Test a custom policy flows through to the views."""
        policy = DEFAULT_POLICY.with_overrides(scatter_min_distance_km=50.0)
        report = DashboardService(policy=policy).build(history, now=days_ago(0))

        assert report.scatter == []
