"""Derived analytics records.

Everything here is recomputed from the raw activity collection and the
active run filter; nothing is persisted or mutated in place.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from ..exceptions import ValidationError
from ..metrics.pace import format_duration, format_pace
from .activity import Split


MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def _round(value: Optional[float], digits: int = 2) -> Optional[float]:
    return round(value, digits) if value is not None else None


@dataclass(frozen=True)
class NormalizedRun:
    """A run with derived pace, GAP and calendar fields."""

    id: int
    name: str
    start: datetime
    distance_km: float
    moving_time_sec: int
    speed_mps: float
    raw_pace_min_km: float
    elevation_gain_m: float
    elev_per_km: float
    gap_min_km: float
    gap_speed_mps: float
    significant_adjustment: bool
    month_key: str              # 'YYYY-MM'
    year: int
    month: int                  # 1-12
    color: str
    avg_hr: Optional[float] = None
    max_hr: Optional[float] = None
    suffer_score: float = 0.0
    splits: Optional[Tuple[Split, ...]] = None
    start_utc: Optional[datetime] = None  # absolute start; `start` is wall-clock

    @property
    def timestamp(self) -> float:
        return self.start.timestamp()

    @property
    def has_hr(self) -> bool:
        return self.avg_hr is not None and self.avg_hr > 0

    @property
    def gap_adjustment_min(self) -> float:
        return self.raw_pace_min_km - self.gap_min_km

    @property
    def raw_pace(self) -> str:
        return format_pace(self.raw_pace_min_km)

    @property
    def gap(self) -> str:
        return format_pace(self.gap_min_km)

    @property
    def month_label(self) -> str:
        return MONTH_LABELS[self.month - 1]

    @property
    def date_short(self) -> str:
        return f"{self.start.day}/{self.start.month}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start": self.start.isoformat(),
            "distance_km": round(self.distance_km, 2),
            "moving_time": format_duration(self.moving_time_sec),
            "raw_pace": self.raw_pace,
            "gap": self.gap,
            "raw_pace_min_km": round(self.raw_pace_min_km, 3),
            "gap_min_km": round(self.gap_min_km, 3),
            "gap_speed_mps": round(self.gap_speed_mps, 3),
            "elevation_gain_m": round(self.elevation_gain_m, 1),
            "elev_per_km": round(self.elev_per_km, 1),
            "significant_adjustment": self.significant_adjustment,
            "avg_hr": _round(self.avg_hr, 1),
            "max_hr": _round(self.max_hr, 1),
            "suffer_score": self.suffer_score,
            "month_key": self.month_key,
            "color": self.color,
        }


@dataclass(frozen=True)
class MonthlyBucket:
    """Volume, load and heart rate for one calendar month."""

    key: str
    year: int
    month: int
    distance_km: float
    run_count: int
    hr_total: float
    hr_count: int
    total_load: float
    color: str

    @property
    def label(self) -> str:
        return MONTH_LABELS[self.month - 1]

    @property
    def avg_hr(self) -> float:
        if self.hr_count == 0:
            return 0.0
        return self.hr_total / self.hr_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "distance_km": round(self.distance_km, 2),
            "runs": self.run_count,
            "avg_hr": round(self.avg_hr, 1),
            "total_load": round(self.total_load, 1),
            "color": self.color,
        }


@dataclass(frozen=True)
class ScatterPoint:
    """One run on the GAP speed vs heart rate scatter."""

    run_id: int
    name: str
    start: datetime
    distance_km: float
    speed_mps: float            # GAP-adjusted, not raw
    hr: float
    gap: str
    raw_pace: str
    elevation_gain_m: float
    period: str
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "name": self.name,
            "start": self.start.isoformat(),
            "distance_km": round(self.distance_km, 2),
            "speed_mps": round(self.speed_mps, 3),
            "hr": round(self.hr, 1),
            "gap": self.gap,
            "raw_pace": self.raw_pace,
            "elevation_gain_m": round(self.elevation_gain_m, 1),
            "period": self.period,
            "color": self.color,
        }


@dataclass(frozen=True)
class EfficiencyPoint:
    """HR cost per unit of GAP speed for a flat, steady run."""

    run_id: int
    name: str
    start: datetime
    distance_km: float
    gap_speed_mps: float
    avg_hr: float
    ratio: float                # avg_hr / gap_speed, lower is better
    efficiency: float           # gap_speed / avg_hr * 1000, higher is better

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "name": self.name,
            "start": self.start.isoformat(),
            "distance_km": round(self.distance_km, 2),
            "gap_speed_mps": round(self.gap_speed_mps, 3),
            "avg_hr": round(self.avg_hr, 1),
            "ratio": round(self.ratio, 2),
            "efficiency": round(self.efficiency, 2),
        }


@dataclass(frozen=True)
class DriftSample:
    """Heart rate and pace for one split."""

    km: int
    hr: float
    pace_min_km: float
    efficiency: float           # hr / speed, 0 when speed is missing

    def to_dict(self) -> Dict[str, Any]:
        return {
            "km": self.km,
            "hr": round(self.hr, 1),
            "pace_min_km": round(self.pace_min_km, 2),
            "efficiency": round(self.efficiency, 2),
        }


@dataclass(frozen=True)
class DriftRun:
    """Intra-run cardiac drift for one run with split detail."""

    run_id: int
    name: str
    start: datetime
    samples: Tuple[DriftSample, ...]
    drift: float                # bpm, last third minus first third
    efficiency_drift: float
    rank: int                   # recency rank, oldest = 0
    color: str
    is_recent: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "name": self.name,
            "start": self.start.isoformat(),
            "drift": round(self.drift, 1),
            "efficiency_drift": round(self.efficiency_drift, 2),
            "rank": self.rank,
            "color": self.color,
            "is_recent": self.is_recent,
            "samples": [s.to_dict() for s in self.samples],
        }


@dataclass
class DriftReport:
    """Drift runs plus the eligible runs that could not be analysed."""

    runs: List[DriftRun] = field(default_factory=list)
    missing_detail: List[int] = field(default_factory=list)     # fewer than 3 splits with HR
    insufficient_hr: List[int] = field(default_factory=list)    # subset: splits present, HR missing

    @property
    def is_empty(self) -> bool:
        return not self.runs

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runs": [r.to_dict() for r in self.runs],
            "missing_detail": list(self.missing_detail),
            "insufficient_hr": list(self.insufficient_hr),
        }


class EfficiencyTrend(str, Enum):
    """Direction of the HR/speed ratio over time."""
    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"


class FindingSeverity(str, Enum):
    OK = "ok"
    WATCH = "watch"
    ALERT = "alert"


@dataclass(frozen=True)
class Finding:
    """One qualitative judgement with the rule that produced it."""

    kind: str                   # 'hr_deviation', 'drift', 'efficiency'
    severity: FindingSeverity
    title: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
        }


@dataclass(frozen=True)
class RecommendedAction:
    priority: str               # 'critical', 'high', 'medium'
    task: str

    def to_dict(self) -> Dict[str, Any]:
        return {"priority": self.priority, "task": self.task}


@dataclass
class Diagnosis:
    """
    Rule-based training diagnosis.

    The three rules are independent; each keeps its own evidence so a reader
    can see why a judgement was reached. No combined score is computed.
    """

    # Heart rate deviation on flat baseline runs
    hr_deviation: float = 0.0
    recent_count: int = 0
    baseline_count: int = 0
    recent_avg_hr: Optional[float] = None
    baseline_avg_hr: Optional[float] = None

    # Cardiac drift
    high_drift: bool = False
    avg_drift: float = 0.0
    max_drift: float = 0.0
    drift_run_count: int = 0
    high_drift_count: int = 0

    # Efficiency trend
    efficiency_trend: EfficiencyTrend = EfficiencyTrend.STABLE
    efficiency_points: int = 0
    start_ratio: Optional[float] = None
    end_ratio: Optional[float] = None

    findings: List[Finding] = field(default_factory=list)
    actions: List[RecommendedAction] = field(default_factory=list)

    @property
    def has_hr_deviation(self) -> bool:
        """True when both recent and older baseline groups were large enough."""
        return self.recent_avg_hr is not None and self.baseline_avg_hr is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hr_deviation": {
                "value": round(self.hr_deviation, 1),
                "recent_count": self.recent_count,
                "baseline_count": self.baseline_count,
                "recent_avg_hr": _round(self.recent_avg_hr, 1),
                "baseline_avg_hr": _round(self.baseline_avg_hr, 1),
            },
            "drift": {
                "high_drift": self.high_drift,
                "avg_drift": round(self.avg_drift, 1),
                "max_drift": round(self.max_drift, 1),
                "runs": self.drift_run_count,
                "high_drift_runs": self.high_drift_count,
            },
            "efficiency": {
                "trend": self.efficiency_trend.value,
                "points": self.efficiency_points,
                "start_ratio": _round(self.start_ratio, 2),
                "end_ratio": _round(self.end_ratio, 2),
            },
            "findings": [f.to_dict() for f in self.findings],
            "actions": [a.to_dict() for a in self.actions],
        }


@dataclass(frozen=True)
class RunFilter:
    """
    Dashboard time filter.

    mode 'last' keeps the most recent `last_n` runs; mode 'year' keeps one
    calendar year, or everything when year is 'All'.
    """

    mode: str = "last"
    last_n: int = 30
    year: Union[str, int] = "All"

    def __post_init__(self):
        if self.mode not in ("last", "year"):
            raise ValidationError(f"Unknown filter mode: {self.mode}", field="mode")
        if self.mode == "last" and self.last_n < 1:
            raise ValidationError("last_n must be at least 1", field="last_n")
        if self.mode == "year" and self.year != "All":
            try:
                int(self.year)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid year: {self.year}", field="year")

    @classmethod
    def last(cls, n: int = 30) -> "RunFilter":
        return cls(mode="last", last_n=n)

    @classmethod
    def for_year(cls, year: Union[str, int] = "All") -> "RunFilter":
        return cls(mode="year", year=year)

    def to_dict(self) -> Dict[str, Any]:
        return {"mode": self.mode, "last_n": self.last_n, "year": self.year}


@dataclass(frozen=True)
class RunRef:
    """Pointer to a run used as supporting evidence in a summary."""

    run_id: int
    name: str
    start: datetime
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "name": self.name,
            "start": self.start.isoformat(),
            "value": round(self.value, 1),
        }


@dataclass(frozen=True)
class HRSummary:
    """Heart rate statistics across runs with HR data."""

    run_count: int
    avg_hr: float
    max_hr_ever: float
    median_hr: float
    lowest_avg_hr: RunRef
    highest_avg_hr: RunRef

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runs": self.run_count,
            "avg_hr": round(self.avg_hr, 1),
            "max_hr_ever": round(self.max_hr_ever, 1),
            "median_hr": round(self.median_hr, 1),
            "lowest_avg_hr": self.lowest_avg_hr.to_dict(),
            "highest_avg_hr": self.highest_avg_hr.to_dict(),
        }


@dataclass(frozen=True)
class ActivityTotals:
    distance_km: float = 0.0
    moving_time_sec: int = 0
    elevation_gain_m: float = 0.0
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "distance_km": round(self.distance_km, 2),
            "moving_time": format_duration(self.moving_time_sec),
            "elevation_gain_m": round(self.elevation_gain_m, 1),
            "count": self.count,
        }


@dataclass(frozen=True)
class PersonalBest:
    """Fastest run inside a race-distance window."""

    key: str
    label: str
    activity_id: int
    activity_name: str
    start: datetime
    distance_m: float
    moving_time_sec: int
    pace: str

    @property
    def time(self) -> str:
        return format_duration(self.moving_time_sec)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "activity_id": self.activity_id,
            "activity_name": self.activity_name,
            "start": self.start.isoformat(),
            "distance_m": self.distance_m,
            "time": self.time,
            "pace": self.pace,
        }
