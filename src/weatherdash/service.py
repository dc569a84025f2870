from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

from .adapters.weather import (
    OpenWeatherMapClient,
    TransportError,
    WeatherAdapterError,
    WeatherSource,
)
from .domain.models import CacheInfo, CurrentObservation, Forecast, LocationMatch
from .forecast.interpolation import WeekdayLocale, interpolate_hourly, summarize_daily
from .settings import AppSettings
from .storage.cache import TtlCache, cache_key
from .storage.store import InMemoryKeyValueStore, KeyValueStore, SqliteKeyValueStore
from .synthetic.generator import synthesize_current, synthesize_forecast
from .synthetic.locations import search_mock_locations

LOGGER = logging.getLogger(__name__)

CURRENT_DATA_CLASS = "weather"
FORECAST_DATA_CLASS = "forecast"
CURRENT_TTL_MS = 5 * 60 * 1000
FORECAST_TTL_MS = 15 * 60 * 1000

ModelT = TypeVar("ModelT", bound=BaseModel)


class Provenance(str, Enum):
    FROM_CACHE = "from_cache"
    FROM_REMOTE = "from_remote"
    SYNTHESIZED = "synthesized"


class ErrorPolicy(str, Enum):
    FALLBACK = "fallback"
    RAISE = "raise"


OPERATION_POLICIES: dict[str, ErrorPolicy] = {
    "search_locations": ErrorPolicy.FALLBACK,
    "get_current_weather": ErrorPolicy.FALLBACK,
    "get_forecast": ErrorPolicy.FALLBACK,
    "get_location_by_coords": ErrorPolicy.RAISE,
}


class LocationLookupError(RuntimeError):
    """Raised when coordinates cannot be resolved to a place name."""


@dataclass(frozen=True, slots=True)
class FetchResult(Generic[ModelT]):
    value: ModelT
    provenance: Provenance


class WeatherService:
    """Sequences cache lookup, remote fetch and synthetic fallback."""

    def __init__(
        self,
        source: WeatherSource,
        cache: TtlCache,
        *,
        current_ttl_ms: int = CURRENT_TTL_MS,
        forecast_ttl_ms: int = FORECAST_TTL_MS,
        tz: tzinfo = timezone.utc,
        weekday_locale: WeekdayLocale = "ko",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._cache = cache
        self._current_ttl_ms = current_ttl_ms
        self._forecast_ttl_ms = forecast_ttl_ms
        self._tz = tz
        self._weekday_locale = weekday_locale
        self._clock = clock or (lambda: datetime.now(tz))

    @property
    def cache(self) -> TtlCache:
        return self._cache

    @property
    def source(self) -> WeatherSource:
        return self._source

    async def fetch_with_fallback(
        self,
        data_class: str,
        lat: float,
        lon: float,
        *,
        ttl_ms: int,
        model: type[ModelT],
        remote: Callable[[], Awaitable[ModelT]],
        synthesize: Callable[[], ModelT],
    ) -> FetchResult[ModelT]:
        key = cache_key(data_class, lat, lon)
        async with self._cache.key_lock(key):
            cached = await asyncio.to_thread(self._cache.get, key)
            if cached is not None:
                try:
                    value = model.model_validate(cached)
                except ValidationError as exc:
                    LOGGER.warning("Discarding cached '%s' with unexpected shape: %s", key, exc)
                    await asyncio.to_thread(self._cache.remove, key)
                else:
                    LOGGER.debug("Using cached data for '%s'", key)
                    return FetchResult(value, Provenance.FROM_CACHE)

            try:
                value = await remote()
                provenance = Provenance.FROM_REMOTE
            except WeatherAdapterError as exc:
                LOGGER.warning("Remote fetch for '%s' failed, using synthetic data: %s", key, exc)
                value = synthesize()
                provenance = Provenance.SYNTHESIZED

            await asyncio.to_thread(self._cache.set, key, value.model_dump(mode="json"), ttl_ms)
            return FetchResult(value, provenance)

    async def get_current_weather_result(self, lat: float, lon: float) -> FetchResult[CurrentObservation]:
        return await self.fetch_with_fallback(
            CURRENT_DATA_CLASS,
            lat,
            lon,
            ttl_ms=self._current_ttl_ms,
            model=CurrentObservation,
            remote=lambda: self._source.get_current(lat, lon),
            synthesize=lambda: synthesize_current(lat, lon),
        )

    async def get_current_weather(self, lat: float, lon: float) -> CurrentObservation:
        return (await self.get_current_weather_result(lat, lon)).value

    async def _fetch_remote_forecast(self, lat: float, lon: float) -> Forecast:
        samples = await self._source.get_forecast_samples(lat, lon)
        try:
            hourly = interpolate_hourly(samples, now=self._clock())
        except (ValueError, OverflowError) as exc:
            raise TransportError(f"Forecast samples could not be interpolated: {exc}") from exc
        if hourly.is_short:
            raise TransportError(
                f"Forecast provided {len(samples)} samples, "
                f"enough for only {len(hourly.points)} of {hourly.expected} hourly points"
            )
        try:
            daily = summarize_daily(samples, tz=self._tz, locale=self._weekday_locale)
            return Forecast(hourly=hourly.points, daily=daily)
        except (ValueError, OverflowError) as exc:
            raise TransportError(f"Forecast samples could not be summarised: {exc}") from exc

    async def get_forecast_result(self, lat: float, lon: float) -> FetchResult[Forecast]:
        return await self.fetch_with_fallback(
            FORECAST_DATA_CLASS,
            lat,
            lon,
            ttl_ms=self._forecast_ttl_ms,
            model=Forecast,
            remote=lambda: self._fetch_remote_forecast(lat, lon),
            synthesize=lambda: synthesize_forecast(
                lat, lon, now=self._clock(), locale=self._weekday_locale
            ),
        )

    async def get_forecast(self, lat: float, lon: float) -> Forecast:
        return (await self.get_forecast_result(lat, lon)).value

    async def search_locations(self, query: str, limit: int = 5) -> list[LocationMatch]:
        if not query.strip():
            return []
        try:
            return await self._source.search_locations(query, limit)
        except WeatherAdapterError as exc:
            LOGGER.warning("Location search for '%s' failed, using mock locations: %s", query, exc)
            return search_mock_locations(query, limit)

    async def get_location_by_coords(self, lat: float, lon: float) -> LocationMatch | None:
        try:
            matches = await self._source.reverse_geocode(lat, lon, 1)
        except WeatherAdapterError as exc:
            LOGGER.error("Reverse geocoding for %.4f,%.4f failed: %s", lat, lon, exc)
            raise LocationLookupError(
                "Unable to resolve a place name for these coordinates"
            ) from exc
        return matches[0] if matches else None

    def get_cache_info(self) -> CacheInfo:
        return self._cache.info()

    def clear_all_cache(self) -> int:
        return self._cache.clear_all()


def build_store(settings: AppSettings) -> KeyValueStore:
    if settings.db_path is None:
        return InMemoryKeyValueStore()
    return SqliteKeyValueStore(settings.db_path)


def build_weather_service(
    settings: AppSettings,
    *,
    store: KeyValueStore | None = None,
    source: WeatherSource | None = None,
) -> WeatherService:
    cache_settings = settings.yaml.cache
    weather_settings = settings.yaml.weather
    if source is None:
        source = OpenWeatherMapClient(
            api_key=settings.env.openweathermap_api_key,
            base_url=settings.env.base_url,
            units=weather_settings.units,
            lang=weather_settings.lang,
            timeout_seconds=settings.env.http_timeout_seconds,
        )
    cache = TtlCache(store or build_store(settings), namespace=cache_settings.namespace)
    return WeatherService(
        source,
        cache,
        current_ttl_ms=cache_settings.current_ttl_ms,
        forecast_ttl_ms=cache_settings.forecast_ttl_ms,
        tz=settings.timezone,
        weekday_locale=weather_settings.weekday_locale,
    )
