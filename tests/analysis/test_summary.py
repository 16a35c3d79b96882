"""Tests for HR summary, totals and personal bests."""

import pytest

from gap_analytics.analysis.summary import find_personal_bests, summarize_heart_rate, summarize_totals


class TestSummarizeHeartRate:
    """Tests for the HR summary."""

    def test_statistics(self, make_run, days_ago):
        """Test average, extremes, max ever and upper median."""
        runs = [
            make_run(id=1, start=days_ago(4), average_heartrate=140, max_heartrate=165),
            make_run(id=2, start=days_ago(3), average_heartrate=150, max_heartrate=181),
            make_run(id=3, start=days_ago(2), average_heartrate=160, max_heartrate=175),
            make_run(id=4, start=days_ago(1), average_heartrate=170),
        ]

        summary = summarize_heart_rate(runs)

        assert summary.run_count == 4
        assert summary.avg_hr == pytest.approx(155.0)
        assert summary.max_hr_ever == 181
        assert summary.median_hr == 160
        assert summary.lowest_avg_hr.run_id == 1
        assert summary.highest_avg_hr.run_id == 4
        assert summary.highest_avg_hr.value == 170

    def test_runs_without_hr_ignored(self, make_run):
        """Test HR-less runs do not count."""
        summary = summarize_heart_rate([make_run(id=1), make_run(id=2, average_heartrate=None)])
        assert summary.run_count == 1

    def test_no_hr_data(self, make_run):
        """Test None when no run has HR."""
        assert summarize_heart_rate([make_run(average_heartrate=None)]) is None
        assert summarize_heart_rate([]) is None


class TestSummarizeTotals:
    """Tests for totals."""

    def test_totals(self, make_run):
        """Test distance, time, climb and count add up."""
        totals = summarize_totals([
            make_run(id=1, elevation_gain_m=50),
            make_run(id=2, distance_m=5000, moving_time_sec=1500, elevation_gain_m=20),
        ])

        assert totals.distance_km == pytest.approx(15.0)
        assert totals.moving_time_sec == 4500
        assert totals.elevation_gain_m == pytest.approx(70.0)
        assert totals.count == 2
        assert totals.to_dict()["moving_time"] == "1:15:00"

    def test_empty(self):
        """Test an empty set gives zero totals."""
        assert summarize_totals([]).count == 0


class TestPersonalBests:
    """Tests for race-distance bests."""

    def test_fastest_in_window(self, make_run):
        """Test the quickest 10K wins and other windows are omitted."""
        runs = [
            make_run(id=1, distance_m=10050, moving_time_sec=2900),
            make_run(id=2, distance_m=10000, moving_time_sec=2700),
            make_run(id=3, distance_m=12000, moving_time_sec=3000),
        ]

        bests = find_personal_bests(runs)

        assert [b.key for b in bests] == ["10k"]
        assert bests[0].activity_id == 2
        assert bests[0].time == "45:00"
        assert bests[0].pace == "4:30"

    def test_window_edges(self, make_run):
        """Test window bounds are inclusive."""
        runs = [
            make_run(id=1, distance_m=4900, moving_time_sec=1500),
            make_run(id=2, distance_m=5201, moving_time_sec=1400),
        ]
        bests = find_personal_bests(runs)

        assert [(b.key, b.activity_id) for b in bests] == [("5k", 1)]

    def test_ties_go_to_earlier_run(self, make_run, days_ago):
        """Test equal times keep the earlier run."""
        runs = [
            make_run(id=2, start=days_ago(1), distance_m=5000, moving_time_sec=1200),
            make_run(id=1, start=days_ago(9), distance_m=5000, moving_time_sec=1200),
        ]
        assert find_personal_bests(runs)[0].activity_id == 1

    def test_ordering_and_labels(self, make_run):
        """Test windows come back shortest first with display labels."""
        runs = [
            make_run(id=1, distance_m=42195, moving_time_sec=12600),
            make_run(id=2, distance_m=21097.5, moving_time_sec=5700),
            make_run(id=3, distance_m=5000, moving_time_sec=1300),
        ]
        bests = find_personal_bests(runs)

        assert [b.label for b in bests] == ["5K", "Half Marathon", "Marathon"]
        assert bests[1].distance_m == 21097.5
