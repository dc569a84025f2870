from .interpolation import (
    DAILY_SUMMARIES,
    HOURLY_POINTS,
    HourlySeries,
    interpolate_hourly,
    summarize_daily,
)

__all__ = [
    "DAILY_SUMMARIES",
    "HOURLY_POINTS",
    "HourlySeries",
    "interpolate_hourly",
    "summarize_daily",
]
