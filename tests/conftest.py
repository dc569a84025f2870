from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from weatherdash.adapters.weather import ConfigError, TransportError, WeatherAdapterError
from weatherdash.domain.models import CurrentObservation, ForecastSample, LocationMatch
from weatherdash.settings import AppSettings, EnvSettings, build_settings
from weatherdash.storage import InMemoryKeyValueStore, TtlCache

FIXED_NOW = datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc)


class TimeController:
    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def advance(self, milliseconds: int) -> None:
        self.now += milliseconds

    def __call__(self) -> int:
        return self.now


def make_observation(temperature: int = 18, condition: str = "Clouds") -> CurrentObservation:
    return CurrentObservation(
        location="Seoul",
        temperature_c=temperature,
        condition=condition,
        description="구름많음",
        humidity_pct=60,
        wind_speed_ms=2.5,
        pressure_hpa=1012,
        visibility_km=10,
        uv_index=0,
        feels_like_c=temperature - 1,
        icon_code="03d",
        precipitation_chance_pct=20,
    )


def make_samples(
    count: int,
    *,
    start: datetime = FIXED_NOW,
    temperatures: list[float] | None = None,
) -> list[ForecastSample]:
    samples: list[ForecastSample] = []
    for index in range(count):
        temperature = temperatures[index] if temperatures else 10.0 + index
        samples.append(
            ForecastSample(
                timestamp=start + timedelta(hours=3 * index),
                temperature_c=temperature,
                condition="Rain" if index % 2 else "Clear",
                icon_code="10d" if index % 2 else "01d",
                humidity_pct=50.0 + index,
                wind_speed_ms=2.0 + index * 0.3,
            )
        )
    return samples


class FakeWeatherSource:
    """In-process stand-in for the OpenWeatherMap client."""

    def __init__(
        self,
        *,
        error: WeatherAdapterError | None = None,
        observation: CurrentObservation | None = None,
        samples: list[ForecastSample] | None = None,
        locations: list[LocationMatch] | None = None,
    ) -> None:
        self.error = error
        self.observation = observation or make_observation()
        self.samples = samples if samples is not None else make_samples(40)
        self.locations = locations or []
        self.calls: list[str] = []

    @property
    def has_credential(self) -> bool:
        return not isinstance(self.error, ConfigError)

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if self.error is not None:
            raise self.error

    async def search_locations(self, query: str, limit: int = 5) -> list[LocationMatch]:
        self._maybe_fail("search")
        return self.locations[:limit]

    async def get_current(self, lat: float, lon: float) -> CurrentObservation:
        self._maybe_fail("current")
        return self.observation

    async def get_forecast_samples(self, lat: float, lon: float) -> list[ForecastSample]:
        self._maybe_fail("forecast")
        return self.samples

    async def reverse_geocode(self, lat: float, lon: float, limit: int = 1) -> list[LocationMatch]:
        self._maybe_fail("reverse")
        return self.locations[:limit]


@pytest.fixture
def clock() -> TimeController:
    return TimeController()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def cache(store: InMemoryKeyValueStore, clock: TimeController) -> TtlCache:
    return TtlCache(store, clock=clock)


@pytest.fixture
def transport_error() -> TransportError:
    return TransportError("connection refused")


@pytest.fixture
def app_settings(tmp_path: Path) -> AppSettings:
    env = EnvSettings(
        _env_file=None,
        env="test",
        openweathermap_api_key=None,
        config_path=tmp_path / "missing.yaml",
    )
    return build_settings(env)
