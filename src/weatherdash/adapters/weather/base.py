from __future__ import annotations

from typing import Protocol

from ...domain.models import CurrentObservation, ForecastSample, LocationMatch


class WeatherAdapterError(RuntimeError):
    """Raised when a weather provider request cannot be completed."""


class ConfigError(WeatherAdapterError):
    """Raised before any network access when the provider credential is absent."""


class TransportError(WeatherAdapterError):
    """Raised on non-success status, malformed body or transport failure."""


class WeatherSource(Protocol):
    @property
    def has_credential(self) -> bool: ...

    async def search_locations(self, query: str, limit: int = 5) -> list[LocationMatch]:
        """Resolve a free-text place name to candidate coordinates."""

    async def get_current(self, lat: float, lon: float) -> CurrentObservation:
        """Fetch the current observation for the provided coordinates."""

    async def get_forecast_samples(self, lat: float, lon: float) -> list[ForecastSample]:
        """Fetch raw coarse-granularity forecast samples, oldest first."""

    async def reverse_geocode(self, lat: float, lon: float, limit: int = 1) -> list[LocationMatch]:
        """Resolve coordinates to place names."""
