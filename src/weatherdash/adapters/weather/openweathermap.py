from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Literal

import httpx
from pydantic import ValidationError

from ...domain.models import CurrentObservation, ForecastSample, LocationMatch
from ...domain.rounding import round_half_up, round_int
from .base import ConfigError, TransportError

LOGGER = logging.getLogger(__name__)

OPENWEATHERMAP_BASE_URL = "https://api.openweathermap.org"
DEFAULT_TIMEOUT_SECONDS = 10.0
PLACEHOLDER_API_KEYS = frozenset({"your_api_key_here", "undefined"})

DEFAULT_VISIBILITY_M = 10_000
CONDITION_PRECIPITATION_DEFAULTS = {"Rain": 80, "Clouds": 20}
FALLBACK_PRECIPITATION_PCT = 5


def is_placeholder_key(api_key: str | None) -> bool:
    if api_key is None:
        return True
    text = api_key.strip()
    return not text or text in PLACEHOLDER_API_KEYS


def _coerce_float(value: Any, *, field_name: str) -> float:
    if isinstance(value, bool):
        raise TransportError(f"Invalid numeric value for {field_name}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise TransportError(f"Invalid numeric value for {field_name}") from exc
    if not math.isfinite(number):
        raise TransportError(f"Non-finite numeric value for {field_name}")
    return number


def _coerce_int(value: Any, *, field_name: str) -> int:
    return round_int(_coerce_float(value, field_name=field_name))


def _clamp_pct(value: float) -> float:
    return max(0.0, min(100.0, value))


def _timestamp(value: Any) -> datetime:
    seconds = _coerce_float(value, field_name="list[].dt")
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise TransportError(f"Forecast timestamp {seconds!r} is out of range") from exc


def _mapping(value: Any, *, field_name: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise TransportError(f"OpenWeatherMap response field '{field_name}' was missing")
    return value


def _first_weather(payload: dict[str, Any]) -> dict[str, Any]:
    weather = payload.get("weather")
    if not isinstance(weather, list) or not weather:
        raise TransportError("OpenWeatherMap response did not include weather conditions")
    return _mapping(weather[0], field_name="weather[0]")


def _parse_location(item: Any) -> LocationMatch:
    if not isinstance(item, dict):
        raise TransportError("Unexpected OpenWeatherMap geocoding entry")
    local_names = item.get("local_names")
    try:
        return LocationMatch(
            name=str(item.get("name") or ""),
            country=str(item.get("country") or ""),
            state=item.get("state") if isinstance(item.get("state"), str) else None,
            lat=_coerce_float(item.get("lat"), field_name="lat"),
            lon=_coerce_float(item.get("lon"), field_name="lon"),
            local_names=local_names if isinstance(local_names, dict) else None,
        )
    except ValidationError as exc:
        raise TransportError("OpenWeatherMap geocoding entry was invalid") from exc


def _precipitation_chance(payload: dict[str, Any], condition: str) -> int:
    volume = 0.0
    for field_name in ("rain", "snow"):
        section = payload.get(field_name)
        if isinstance(section, dict) and section.get("1h"):
            volume = _coerce_float(section["1h"], field_name=f"{field_name}.1h")
            break
    chance = round_int(volume * 100)
    if not chance:
        chance = CONDITION_PRECIPITATION_DEFAULTS.get(condition, FALLBACK_PRECIPITATION_PCT)
    return max(0, min(100, chance))


class OpenWeatherMapClient:
    """Single-attempt async client for the OpenWeatherMap REST API."""

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = OPENWEATHERMAP_BASE_URL,
        units: Literal["metric", "imperial"] = "metric",
        lang: str = "kr",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key.strip() if api_key else None
        self._base_url = base_url.rstrip("/")
        self._units = units
        self._lang = lang
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    @property
    def has_credential(self) -> bool:
        return not is_placeholder_key(self._api_key)

    def _require_credential(self) -> str:
        if is_placeholder_key(self._api_key):
            raise ConfigError("OpenWeatherMap API key is not configured")
        return self._api_key  # type: ignore[return-value]

    async def _fetch_json(self, path: str, params: dict[str, Any]) -> Any:
        query = {**params, "appid": self._require_credential()}
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={"User-Agent": "weatherdash/0.1"},
            ) as client:
                response = await client.get(path, params=query)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"OpenWeatherMap request to {path} failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"OpenWeatherMap request to {path} failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"OpenWeatherMap response from {path} was not JSON") from exc

    async def search_locations(self, query: str, limit: int = 5) -> list[LocationMatch]:
        self._require_credential()
        if not query.strip():
            return []
        payload = await self._fetch_json("/geo/1.0/direct", {"q": query.strip(), "limit": limit})
        if not isinstance(payload, list):
            raise TransportError("Unexpected OpenWeatherMap geocoding response shape")
        return [_parse_location(item) for item in payload]

    async def reverse_geocode(self, lat: float, lon: float, limit: int = 1) -> list[LocationMatch]:
        payload = await self._fetch_json(
            "/geo/1.0/reverse", {"lat": lat, "lon": lon, "limit": limit}
        )
        if not isinstance(payload, list):
            raise TransportError("Unexpected OpenWeatherMap reverse geocoding response shape")
        return [_parse_location(item) for item in payload]

    async def get_current(self, lat: float, lon: float) -> CurrentObservation:
        payload = _mapping(
            await self._fetch_json(
                "/data/2.5/weather",
                {"lat": lat, "lon": lon, "units": self._units, "lang": self._lang},
            ),
            field_name="<root>",
        )
        main = _mapping(payload.get("main"), field_name="main")
        wind = _mapping(payload.get("wind"), field_name="wind")
        weather = _first_weather(payload)
        condition = str(weather.get("main") or "")
        visibility_m = payload.get("visibility") or DEFAULT_VISIBILITY_M

        try:
            return CurrentObservation(
                location=payload.get("name") if isinstance(payload.get("name"), str) else None,
                temperature_c=_coerce_int(main.get("temp"), field_name="main.temp"),
                condition=condition,
                description=str(weather.get("description") or ""),
                humidity_pct=_coerce_int(main.get("humidity"), field_name="main.humidity"),
                wind_speed_ms=round_half_up(
                    _coerce_float(wind.get("speed"), field_name="wind.speed"), 1
                ),
                pressure_hpa=_coerce_int(main.get("pressure"), field_name="main.pressure"),
                visibility_km=round_int(_coerce_float(visibility_m, field_name="visibility") / 1000),
                uv_index=0,
                feels_like_c=_coerce_int(main.get("feels_like"), field_name="main.feels_like"),
                icon_code=str(weather.get("icon") or ""),
                precipitation_chance_pct=_precipitation_chance(payload, condition),
            )
        except ValidationError as exc:
            raise TransportError("OpenWeatherMap current weather payload was invalid") from exc

    async def get_forecast_samples(self, lat: float, lon: float) -> list[ForecastSample]:
        payload = _mapping(
            await self._fetch_json(
                "/data/2.5/forecast",
                {"lat": lat, "lon": lon, "units": self._units, "lang": self._lang},
            ),
            field_name="<root>",
        )
        items = payload.get("list")
        if not isinstance(items, list):
            raise TransportError("OpenWeatherMap forecast payload did not include a sample list")

        samples: list[ForecastSample] = []
        for item in items:
            entry = _mapping(item, field_name="list[]")
            main = _mapping(entry.get("main"), field_name="list[].main")
            wind = _mapping(entry.get("wind"), field_name="list[].wind")
            weather = _first_weather(entry)
            pop = entry.get("pop")
            try:
                samples.append(
                    ForecastSample(
                        timestamp=_timestamp(entry.get("dt")),
                        temperature_c=_coerce_float(
                            main.get("temp"), field_name="list[].main.temp"
                        ),
                        condition=str(weather.get("main") or ""),
                        icon_code=str(weather.get("icon") or ""),
                        humidity_pct=_coerce_float(
                            main.get("humidity"), field_name="list[].main.humidity"
                        ),
                        wind_speed_ms=_coerce_float(
                            wind.get("speed"), field_name="list[].wind.speed"
                        ),
                        precipitation_chance_pct=(
                            _clamp_pct(_coerce_float(pop, field_name="list[].pop") * 100)
                            if pop is not None
                            else None
                        ),
                    )
                )
            except ValidationError as exc:
                raise TransportError("OpenWeatherMap forecast sample was invalid") from exc
        samples.sort(key=lambda sample: sample.timestamp)
        LOGGER.debug("Fetched %s forecast samples for %.2f,%.2f", len(samples), lat, lon)
        return samples
