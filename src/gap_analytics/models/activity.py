"""Activity records as delivered by the fitness provider (Strava API v3)."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from ..exceptions import MalformedActivityError


# Strava sport types treated as runs
RUNNING_TYPES = frozenset({"Run", "TrailRun", "VirtualRun"})


def _opt_float(value: Any) -> Optional[float]:
    """Coerce to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a Strava ISO-8601 timestamp ('2024-01-15T10:00:00Z')."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Split:
    """One per-km (or per-mile) segment of an activity."""

    split: int
    distance_m: float = 0.0
    moving_time_sec: int = 0
    elapsed_time_sec: int = 0
    average_speed_mps: Optional[float] = None
    average_heartrate: Optional[float] = None
    elevation_difference_m: float = 0.0

    @property
    def has_heartrate(self) -> bool:
        return self.average_heartrate is not None and self.average_heartrate > 0

    def to_dict(self) -> dict:
        return {
            "split": self.split,
            "distance": self.distance_m,
            "moving_time": self.moving_time_sec,
            "elapsed_time": self.elapsed_time_sec,
            "average_speed": self.average_speed_mps,
            "average_heartrate": self.average_heartrate,
            "elevation_difference": self.elevation_difference_m,
        }

    @classmethod
    def from_api_response(cls, data: dict, index: int = 1) -> "Split":
        """Parse one entry of Strava's `splits_metric` array."""
        return cls(
            split=int(data.get("split") or index),
            distance_m=_opt_float(data.get("distance")) or 0.0,
            moving_time_sec=int(data.get("moving_time") or 0),
            elapsed_time_sec=int(data.get("elapsed_time") or 0),
            average_speed_mps=_opt_float(data.get("average_speed")),
            average_heartrate=_opt_float(data.get("average_heartrate")),
            elevation_difference_m=_opt_float(data.get("elevation_difference")) or 0.0,
        )


@dataclass(frozen=True)
class RawActivity:
    """
    One activity as fetched from Strava.

    Summary listings carry no splits; `splits` stays None until the activity
    is enriched through the single-activity endpoint.
    """

    id: int
    name: str
    start_date: datetime
    distance_m: float = 0.0
    moving_time_sec: int = 0
    elapsed_time_sec: int = 0
    total_elevation_gain_m: float = 0.0
    start_date_local: Optional[datetime] = None

    # Performance metrics
    average_speed_mps: Optional[float] = None
    max_speed_mps: Optional[float] = None
    average_heartrate: Optional[float] = None
    max_heartrate: Optional[float] = None

    # Strava-specific
    sport_type: str = "Run"
    activity_type: Optional[str] = None
    suffer_score: Optional[float] = None
    kudos_count: int = 0

    splits: Optional[Tuple[Split, ...]] = field(default=None)

    @property
    def distance_km(self) -> float:
        return self.distance_m / 1000

    @property
    def local_start(self) -> datetime:
        """Start time used for calendar bucketing."""
        return self.start_date_local or self.start_date

    @property
    def has_heartrate(self) -> bool:
        return self.average_heartrate is not None and self.average_heartrate > 0

    @property
    def has_splits(self) -> bool:
        return bool(self.splits)

    @property
    def is_running(self) -> bool:
        return self.sport_type in RUNNING_TYPES or self.activity_type in RUNNING_TYPES

    def to_dict(self) -> dict:
        """Serialize back to the Strava payload shape."""
        data = {
            "id": self.id,
            "name": self.name,
            "start_date": _isoformat(self.start_date),
            "start_date_local": _isoformat(self.start_date_local),
            "distance": self.distance_m,
            "moving_time": self.moving_time_sec,
            "elapsed_time": self.elapsed_time_sec,
            "total_elevation_gain": self.total_elevation_gain_m,
            "average_speed": self.average_speed_mps,
            "max_speed": self.max_speed_mps,
            "average_heartrate": self.average_heartrate,
            "max_heartrate": self.max_heartrate,
            "sport_type": self.sport_type,
            "type": self.activity_type,
            "suffer_score": self.suffer_score,
            "kudos_count": self.kudos_count,
        }
        if self.splits is not None:
            data["splits_metric"] = [s.to_dict() for s in self.splits]
        return data

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> "RawActivity":
        """
        Parse from a Strava API response.

        Raises:
            MalformedActivityError: If id or start date are missing or invalid
        """
        try:
            raw_splits = data.get("splits_metric")
            splits = None
            if raw_splits is not None:
                splits = tuple(
                    Split.from_api_response(s, index=i + 1)
                    for i, s in enumerate(raw_splits)
                )

            start_date = _parse_datetime(data["start_date"])
            if start_date is None:
                raise ValueError("start_date is empty")

            # start_date_local is wall-clock time labelled as UTC by Strava
            local = data.get("start_date_local")
            start_local = _parse_datetime(local) if local else None

            return cls(
                id=int(data["id"]),
                name=data.get("name") or "",
                start_date=start_date,
                start_date_local=start_local,
                distance_m=_opt_float(data.get("distance")) or 0.0,
                moving_time_sec=int(data.get("moving_time") or 0),
                elapsed_time_sec=int(data.get("elapsed_time") or 0),
                total_elevation_gain_m=_opt_float(data.get("total_elevation_gain")) or 0.0,
                average_speed_mps=_opt_float(data.get("average_speed")),
                max_speed_mps=_opt_float(data.get("max_speed")),
                average_heartrate=_opt_float(data.get("average_heartrate")),
                max_heartrate=_opt_float(data.get("max_heartrate")),
                sport_type=data.get("sport_type") or data.get("type") or "Workout",
                activity_type=data.get("type"),
                suffer_score=_opt_float(data.get("suffer_score")),
                kudos_count=int(data.get("kudos_count") or 0),
                splits=splits,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise MalformedActivityError(
                f"Cannot parse activity: {e}",
                activity_id=data.get("id") if isinstance(data, dict) else None,
            ) from e
