"""Data models for activities and derived analytics."""

from .activity import RUNNING_TYPES, RawActivity, Split
from .analysis import (
    MONTH_LABELS,
    ActivityTotals,
    Diagnosis,
    DriftReport,
    DriftRun,
    DriftSample,
    EfficiencyPoint,
    EfficiencyTrend,
    Finding,
    FindingSeverity,
    HRSummary,
    MonthlyBucket,
    NormalizedRun,
    PersonalBest,
    RecommendedAction,
    RunFilter,
    RunRef,
    ScatterPoint,
)

__all__ = [
    "RUNNING_TYPES",
    "RawActivity",
    "Split",
    "MONTH_LABELS",
    "ActivityTotals",
    "Diagnosis",
    "DriftReport",
    "DriftRun",
    "DriftSample",
    "EfficiencyPoint",
    "EfficiencyTrend",
    "Finding",
    "FindingSeverity",
    "HRSummary",
    "MonthlyBucket",
    "NormalizedRun",
    "PersonalBest",
    "RecommendedAction",
    "RunFilter",
    "RunRef",
    "ScatterPoint",
]
