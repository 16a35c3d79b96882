"""Configuration settings for gap-analytics."""

from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


PACKAGE_ROOT = Path(__file__).parent  # src/gap_analytics/
PROJECT_ROOT = PACKAGE_ROOT.parent.parent


@dataclass(frozen=True)
class AnalyticsPolicy:
    """
    Thresholds and constants used by the analytics pipeline.

    The GAP constants are heuristics with no cited physiological derivation.
    The defaults reproduce the dashboard's published numbers.
    """

    # Grade Adjusted Pace
    gap_seconds_per_10m: float = 8.0      # s/km of pace per 10 m/km of climb
    gap_floor_ratio: float = 0.80         # GAP never drops below 80% of raw pace
    significant_adjustment_min: float = 0.05

    # Aggregation
    monthly_bucket_limit: int = 12
    default_last_n: int = 30

    # Pace/HR correlation
    scatter_min_distance_km: float = 3.0
    efficiency_max_elev_per_km: float = 25.0
    efficiency_min_distance_km: float = 3.5
    efficiency_max_gap_min_km: float = 7.0

    # Cardiac drift
    drift_max_elev_per_km: float = 80.0
    drift_min_distance_km: float = 2.0
    drift_max_gap_min_km: float = 10.0
    drift_min_splits: int = 3
    drift_recent_ratio: float = 0.85

    # Diagnosis
    baseline_min_distance_km: float = 5.0
    baseline_max_elev_per_km: float = 15.0
    recent_window_days: int = 30
    min_group_runs: int = 2
    high_drift_bpm: float = 18.0
    hr_deviation_alert_bpm: float = 5.0
    efficiency_min_points: int = 6
    efficiency_chunk_fraction: float = 0.25
    efficiency_min_chunk: int = 2
    efficiency_band: float = 0.05

    def with_overrides(self, **changes) -> "AnalyticsPolicy":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


DEFAULT_POLICY = AnalyticsPolicy()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Strava OAuth
    strava_client_id: str = ""
    strava_client_secret: str = ""
    strava_redirect_uri: str = "http://localhost:5173/callback"
    strava_access_token: str = ""
    strava_refresh_token: str = ""

    # Local cache
    cache_path: Path | None = None

    # Sync
    activity_fetch_count: int = Field(default=1000, ge=1)
    enrichment_delay_seconds: float = Field(default=1.0, ge=0)

    # Logging
    log_level: str = "INFO"

    # GAP policy overrides
    gap_seconds_per_10m: float = Field(default=DEFAULT_POLICY.gap_seconds_per_10m, ge=0)
    gap_floor_ratio: float = Field(default=DEFAULT_POLICY.gap_floor_ratio, gt=0, le=1)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(sorted(valid_levels))}")
        return v.upper()

    def model_post_init(self, __context) -> None:
        """Set default cache path after initialization."""
        if self.cache_path is None:
            self.cache_path = Path.home() / ".gap_analytics" / "cache.json"

    @property
    def strava_configured(self) -> bool:
        """True when OAuth client credentials are present."""
        return bool(self.strava_client_id and self.strava_client_secret)

    def analytics_policy(self) -> AnalyticsPolicy:
        """Build the analytics policy from the configured GAP constants."""
        return DEFAULT_POLICY.with_overrides(
            gap_seconds_per_10m=self.gap_seconds_per_10m,
            gap_floor_ratio=self.gap_floor_ratio,
        )

    class Config:
        env_file = str(PROJECT_ROOT / ".env")
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
