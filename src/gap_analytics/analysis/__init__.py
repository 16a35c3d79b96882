"""Analytics pipeline: normalize, aggregate, correlate, drift, diagnose."""

from .aggregation import aggregate_monthly, apply_run_filter, available_years
from .correlation import build_efficiency_dataset, build_scatter_dataset, is_efficiency_run
from .diagnosis import (
    calculate_hr_deviation,
    classify_efficiency_trend,
    detect_high_drift,
    diagnose,
)
from .drift import analyze_drift, build_drift_samples, compute_drift, drift_color
from .normalizer import MONTH_COLORS, month_color, normalize_activities, normalize_activity
from .summary import find_personal_bests, summarize_heart_rate, summarize_totals

__all__ = [
    "aggregate_monthly",
    "apply_run_filter",
    "available_years",
    "build_efficiency_dataset",
    "build_scatter_dataset",
    "is_efficiency_run",
    "calculate_hr_deviation",
    "classify_efficiency_trend",
    "detect_high_drift",
    "diagnose",
    "analyze_drift",
    "build_drift_samples",
    "compute_drift",
    "drift_color",
    "MONTH_COLORS",
    "month_color",
    "normalize_activities",
    "normalize_activity",
    "find_personal_bests",
    "summarize_heart_rate",
    "summarize_totals",
]
