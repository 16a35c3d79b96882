"""Pace and GAP calculations."""

from .pace import (
    GapResult,
    calculate_gap,
    calculate_pace,
    format_duration,
    format_pace,
    is_significant_adjustment,
    pace_to_speed,
    speed_to_pace,
)

__all__ = [
    "GapResult",
    "calculate_gap",
    "calculate_pace",
    "format_duration",
    "format_pace",
    "is_significant_adjustment",
    "pace_to_speed",
    "speed_to_pace",
]
