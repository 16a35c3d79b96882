"""
gap-analytics: grade-adjusted pace and heart-rate drift analytics for runs.

Quick start:
    from gap_analytics import DashboardService, RawActivity, RunFilter

    activities = [RawActivity.from_api_response(a) for a in strava_payloads]
    report = DashboardService().build(activities, RunFilter.last(30))
"""

__version__ = "0.1.0"

from .config import DEFAULT_POLICY, AnalyticsPolicy, Settings, get_settings
from .exceptions import GapAnalyticsError
from .models import NormalizedRun, RawActivity, RunFilter, Split
from .services import ActivityStore, DashboardReport, DashboardService

__all__ = [
    "__version__",
    "DEFAULT_POLICY",
    "AnalyticsPolicy",
    "Settings",
    "get_settings",
    "GapAnalyticsError",
    "NormalizedRun",
    "RawActivity",
    "RunFilter",
    "Split",
    "ActivityStore",
    "DashboardReport",
    "DashboardService",
]
