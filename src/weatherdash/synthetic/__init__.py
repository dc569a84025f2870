from .generator import (
    derive_seed,
    synthesize_current,
    synthesize_daily,
    synthesize_forecast,
    synthesize_hourly,
)
from .locations import MOCK_LOCATIONS, search_mock_locations

__all__ = [
    "MOCK_LOCATIONS",
    "derive_seed",
    "search_mock_locations",
    "synthesize_current",
    "synthesize_daily",
    "synthesize_forecast",
    "synthesize_hourly",
]
