"""Shared fixtures: activity and run factories."""

from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import pytest

from gap_analytics.analysis.normalizer import normalize_activity
from gap_analytics.models.activity import RawActivity, Split


BASE_DATE = datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc)

# Marker for "derive average speed from distance and moving time"
DERIVE = object()


def build_activity(
    id: int = 1,
    name: str = "Morning Run",
    start: Optional[datetime] = None,
    distance_m: float = 10000.0,
    moving_time_sec: int = 3000,
    elevation_gain_m: float = 0.0,
    average_heartrate: Optional[float] = 150.0,
    max_heartrate: Optional[float] = None,
    average_speed_mps=DERIVE,
    sport_type: str = "Run",
    suffer_score: Optional[float] = None,
    splits: Optional[Sequence[Split]] = None,
    kudos_count: int = 0,
    start_local: Optional[datetime] = None,
) -> RawActivity:
    if average_speed_mps is DERIVE:
        average_speed_mps = distance_m / moving_time_sec if moving_time_sec else None
    start = start or BASE_DATE
    return RawActivity(
        id=id,
        name=name,
        start_date=start,
        start_date_local=start_local or start,
        distance_m=distance_m,
        moving_time_sec=moving_time_sec,
        elapsed_time_sec=moving_time_sec,
        total_elevation_gain_m=elevation_gain_m,
        average_speed_mps=average_speed_mps,
        average_heartrate=average_heartrate,
        max_heartrate=max_heartrate,
        sport_type=sport_type,
        activity_type=sport_type,
        suffer_score=suffer_score,
        kudos_count=kudos_count,
        splits=tuple(splits) if splits is not None else None,
    )


def build_splits(heart_rates: Sequence[Optional[float]], speed_mps: float = 10 / 3) -> tuple:
    return tuple(
        Split(
            split=i + 1,
            distance_m=1000.0,
            moving_time_sec=int(round(1000 / speed_mps)),
            elapsed_time_sec=int(round(1000 / speed_mps)),
            average_speed_mps=speed_mps,
            average_heartrate=hr,
        )
        for i, hr in enumerate(heart_rates)
    )


@pytest.fixture
def make_activity():
    """Factory for RawActivity (10 km in 50:00, flat, HR 150 by default)."""
    return build_activity


@pytest.fixture
def make_splits():
    """Factory for per-km splits from a list of heart rates."""
    return build_splits


@pytest.fixture
def make_run():
    """Factory for NormalizedRun built through the normalizer."""
    def _make_run(**kwargs):
        run = normalize_activity(build_activity(**kwargs))
        assert run is not None
        return run
    return _make_run


@pytest.fixture
def days_ago():
    """Aware datetime N days before BASE_DATE."""
    def _days_ago(days: float) -> datetime:
        return BASE_DATE - timedelta(days=days)
    return _days_ago


@pytest.fixture
def strava_payload():
    """A Strava /athlete/activities summary record."""
    return {
        "id": 123456,
        "name": "Test Run",
        "sport_type": "Run",
        "type": "Run",
        "start_date": "2024-01-15T10:00:00Z",
        "start_date_local": "2024-01-15T11:00:00Z",
        "elapsed_time": 3100,
        "moving_time": 3000,
        "distance": 10000.0,
        "average_speed": 3.333,
        "max_speed": 4.1,
        "average_heartrate": 150.0,
        "max_heartrate": 172.0,
        "total_elevation_gain": 100.0,
        "suffer_score": 42,
        "kudos_count": 10,
    }
