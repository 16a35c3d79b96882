"""Tests for cardiac drift analysis."""

import pytest

from gap_analytics.analysis.drift import (
    analyze_drift,
    build_drift_samples,
    compute_drift,
    compute_efficiency_drift,
    drift_color,
    is_drift_eligible,
)


class TestComputeDrift:
    """Tests for the thirds comparison."""

    def test_rising_heart_rate(self, make_splits):
        """Test [140 x3, 160 x3] drifts +20 bpm."""
        samples = build_drift_samples(make_splits([140, 140, 140, 160, 160, 160]))
        assert compute_drift(samples) == 20

    def test_falling_heart_rate(self, make_splits):
        """Test [160 x3, 140 x3] drifts -20 bpm."""
        samples = build_drift_samples(make_splits([160, 160, 160, 140, 140, 140]))
        assert compute_drift(samples) == -20

    def test_third_size_is_floored(self, make_splits):
        """Test 7 samples use 2 per side."""
        samples = build_drift_samples(make_splits([140, 142, 150, 150, 150, 158, 160]))
        assert compute_drift(samples) == pytest.approx((158 + 160) / 2 - (140 + 142) / 2)

    def test_minimum_one_per_side(self, make_splits):
        """Test fewer than 3 samples compare single endpoints."""
        samples = build_drift_samples(make_splits([140, 150]))
        assert compute_drift(samples) == 10

    def test_empty(self):
        """Test no samples give 0."""
        assert compute_drift([]) == 0.0

    def test_efficiency_drift(self, make_splits):
        """Test efficiency drift uses hr / speed per split."""
        samples = build_drift_samples(make_splits([150, 150, 165], speed_mps=3.0))
        assert compute_efficiency_drift(samples) == pytest.approx(165 / 3.0 - 150 / 3.0)


class TestBuildDriftSamples:
    """Tests for per-km samples."""

    def test_zero_and_missing_hr_filtered(self, make_splits):
        """Test splits without HR are dropped, keeping km positions."""
        samples = build_drift_samples(make_splits([140, 0, 150, None, 160]))

        assert [s.km for s in samples] == [1, 3, 5]
        assert [s.hr for s in samples] == [140, 150, 160]

    def test_pace_and_efficiency(self, make_splits):
        """Test pace and hr/speed per split."""
        sample = build_drift_samples(make_splits([150], speed_mps=10 / 3))[0]

        assert sample.pace_min_km == pytest.approx(5.0)
        assert sample.efficiency == pytest.approx(45.0)


class TestDriftColor:
    """Tests for recency colors."""

    def test_single_run(self):
        """Test a single run gets the oldest color."""
        assert drift_color(0, 1) == ("hsl(210, 30%, 75%)", 0.0)

    def test_endpoints(self):
        """Test oldest is muted slate and newest vivid indigo."""
        assert drift_color(0, 2)[0] == "hsl(210, 30%, 75%)"
        assert drift_color(1, 2)[0] == "hsl(255, 85%, 50%)"

    def test_midpoint(self):
        """Test fractional values print without padding."""
        assert drift_color(1, 3)[0] == "hsl(232.5, 57.5%, 62.5%)"


class TestAnalyzeDrift:
    """Tests for the drift report."""

    def test_eligibility_boundary(self, make_run, make_splits):
        """Test 2 splits is missing detail while 3 valid splits is analysed."""
        two = make_run(id=1, splits=make_splits([150, 160]))
        three = make_run(id=2, splits=make_splits([150, 155, 160]))

        report = analyze_drift([two, three])

        assert [d.run_id for d in report.runs] == [2]
        assert report.missing_detail == [1]
        assert report.runs[0].drift == 10

    def test_unenriched_runs_missing_detail(self, make_run):
        """Test eligible runs without splits are reported, not dropped."""
        report = analyze_drift([make_run(id=7)])

        assert report.is_empty
        assert report.missing_detail == [7]
        assert report.insufficient_hr == []

    def test_splits_without_hr(self, make_run, make_splits):
        """Test splits lacking HR are flagged as insufficient HR."""
        run = make_run(id=3, splits=make_splits([150, None, 0, None]))

        report = analyze_drift([run])

        assert report.missing_detail == [3]
        assert report.insufficient_hr == [3]

    def test_ineligible_runs_ignored(self, make_run, make_splits):
        """Test steep, short, slow and HR-less runs are not candidates."""
        splits = make_splits([150, 155, 160])
        runs = [
            make_run(id=1, elevation_gain_m=800, splits=splits),                         # 80 m/km
            make_run(id=2, distance_m=1900, moving_time_sec=570, splits=splits),
            make_run(id=3, moving_time_sec=6000, splits=splits),                         # 10:00/km
            make_run(id=4, average_heartrate=None, splits=splits),
        ]

        report = analyze_drift(runs)

        assert report.runs == []
        assert report.missing_detail == []

    def test_rank_color_and_recency(self, make_run, make_splits, days_ago):
        """Test drift runs are ranked oldest first with recency colors."""
        splits = make_splits([150, 150, 150, 160, 160, 160])
        runs = [make_run(id=i, start=days_ago(10 - i), splits=splits) for i in range(1, 5)]

        report = analyze_drift(list(reversed(runs)))

        assert [d.run_id for d in report.runs] == [1, 2, 3, 4]
        assert [d.rank for d in report.runs] == [0, 1, 2, 3]
        assert report.runs[0].color == "hsl(210, 30%, 75%)"
        assert report.runs[-1].color == "hsl(255, 85%, 50%)"
        assert [d.is_recent for d in report.runs] == [False, False, False, True]

    def test_name_includes_date(self, make_run, make_splits):
        """Test the run label carries the short date."""
        run = make_run(id=1, name="Tempo", splits=make_splits([150, 155, 160]))
        assert analyze_drift([run]).runs[0].name == "1/6 Tempo"

    def test_is_drift_eligible(self, make_run):
        """Test the eligibility predicate ignores splits."""
        assert is_drift_eligible(make_run(distance_m=2000, moving_time_sec=600)) is True
        assert is_drift_eligible(make_run(elevation_gain_m=790)) is True
