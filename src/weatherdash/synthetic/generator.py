"""Deterministic stand-in weather used when the remote source cannot be reached.

Everything returned here is a pure function of the rounded coordinates: the
same place always gets the same weather "personality". The current instant is
only used for the timestamps and labels attached to forecast entries.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..domain.models import CurrentObservation, DailySummary, Forecast, HourlyPoint
from ..domain.rounding import round_half_up, round_int
from ..forecast.interpolation import (
    DAILY_SUMMARIES,
    HOURLY_POINTS,
    WeekdayLocale,
    time_label,
    weekday_label,
)


@dataclass(frozen=True, slots=True)
class WeatherPattern:
    condition: str
    description: str
    icon_code: str
    temp_offset: int
    humidity_base: int


PATTERNS: tuple[WeatherPattern, ...] = (
    WeatherPattern("Clear", "맑음", "01d", 2, 45),
    WeatherPattern("Clouds", "구름많음", "03d", 0, 65),
    WeatherPattern("Rain", "비", "10d", -3, 80),
    WeatherPattern("Snow", "눈", "13d", -8, 85),
    WeatherPattern("Mist", "안개", "50d", -1, 90),
)

DAY_ICONS = {"Clear": "01d", "Clouds": "03d", "Rain": "10d", "Snow": "13d", "Mist": "50d"}
NIGHT_ICONS = {"Clear": "01n", "Clouds": "03n"}

# Warmer regional baseline applies inside this (lat, lon) box.
REFERENCE_REGION = ((33.0, 39.0), (124.0, 132.0))
REGION_BASE_TEMP_C = 23
DEFAULT_BASE_TEMP_C = 20
REGION_LABEL = "서울"
DEFAULT_LABEL = "테스트 도시"


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def round_coordinate(value: float) -> float:
    # Same two-decimal text as cache keys.
    return float(f"{value:.2f}")


def derive_seed(lat: float, lon: float) -> int:
    lat, lon = round_coordinate(lat), round_coordinate(lon)
    return int(round_half_up(lat * 1000 + lon * 1000)) % 100


def select_pattern(seed: int) -> WeatherPattern:
    return PATTERNS[seed % len(PATTERNS)]


def in_reference_region(lat: float, lon: float) -> bool:
    lat, lon = round_coordinate(lat), round_coordinate(lon)
    (lat_min, lat_max), (lon_min, lon_max) = REFERENCE_REGION
    return lat_min <= lat <= lat_max and lon_min <= lon <= lon_max


def _precipitation_chance(condition: str, seed: int) -> int:
    if condition == "Rain":
        chance = 70 + (seed % 20) + 10
    elif condition == "Clouds":
        chance = 20 + seed % 30
    elif condition == "Snow":
        chance = 60 + seed % 30
    elif condition == "Clear":
        chance = seed % 10
    elif condition == "Mist":
        chance = 15 + seed % 20
    else:
        chance = seed % 15
    return int(_clamp(chance, 0, 100))


def _hourly_precipitation_chance(condition: str, seed: int, index: int) -> int:
    if condition == "Rain":
        chance = 70 + (seed + index * 3) % 25
    elif condition == "Clouds":
        chance = 20 + (seed + index * 2) % 30
    elif condition == "Snow":
        chance = 60 + (seed + index * 4) % 35
    else:
        chance = 5 + (seed + index) % 15
    return int(_clamp(chance, 0, 100))


def _icon_for(condition: str, hour_of_day: int) -> str:
    if 6 <= hour_of_day < 18:
        return DAY_ICONS.get(condition, "01d")
    return NIGHT_ICONS.get(condition, DAY_ICONS.get(condition, "01d"))


def synthesize_current(lat: float, lon: float) -> CurrentObservation:
    seed = derive_seed(lat, lon)
    pattern = select_pattern(seed)
    in_region = in_reference_region(lat, lon)

    base_temp = REGION_BASE_TEMP_C if in_region else DEFAULT_BASE_TEMP_C
    temperature = base_temp + pattern.temp_offset + (seed % 10 - 5)
    humidity = _clamp(pattern.humidity_base + (seed % 20 - 10), 30, 95)
    wind_speed = _clamp(3 + (seed % 6 - 3), 1, 8)

    return CurrentObservation(
        location=REGION_LABEL if in_region else DEFAULT_LABEL,
        temperature_c=round_int(temperature),
        condition=pattern.condition,
        description=pattern.description,
        humidity_pct=round_int(humidity),
        wind_speed_ms=round_half_up(wind_speed, 1),
        pressure_hpa=1013 + (seed % 30 - 15),
        visibility_km=int(_clamp(10 + (seed % 10 - 5), 1, 15)),
        uv_index=int(_clamp(5 + (seed % 6 - 3), 0, 11)),
        feels_like_c=round_int(temperature + (2 if humidity > 70 else -1)),
        icon_code=pattern.icon_code,
        precipitation_chance_pct=_precipitation_chance(pattern.condition, seed),
    )


def synthesize_hourly(
    lat: float,
    lon: float,
    *,
    now: datetime | None = None,
    hours: int = HOURLY_POINTS,
) -> list[HourlyPoint]:
    seed = derive_seed(lat, lon)
    current = synthesize_current(lat, lon)
    start = now or datetime.now(timezone.utc)
    alternate = "Clouds" if current.condition == "Clear" else "Clear"
    variations = (current.condition, current.condition, alternate)

    points: list[HourlyPoint] = []
    for index in range(hours):
        moment = start + timedelta(hours=index)
        # The synthetic day starts at midnight of the series.
        hour_of_day = index % 24
        diurnal = math.sin((hour_of_day - 6) * math.pi / 12) * 4
        trend = -index * 0.1
        jitter = ((seed + index * 7) % 10 - 5) * 0.3
        condition = variations[(index + seed) % len(variations)]

        points.append(
            HourlyPoint(
                timestamp=moment,
                time_label=time_label(moment),
                temperature_c=round_int(current.temperature_c + diurnal + trend + jitter),
                condition=condition,
                icon_code=_icon_for(condition, hour_of_day),
                humidity_pct=round_int(
                    _clamp(current.humidity_pct + (index * 2 - 4) + (seed % 10 - 5), 30, 90)
                ),
                wind_speed_ms=round_half_up(
                    _clamp(current.wind_speed_ms + ((seed + index) % 4 - 2), 0.5, 10), 1
                ),
                precipitation_chance_pct=_hourly_precipitation_chance(condition, seed, index),
            )
        )
    return points


def synthesize_daily(
    lat: float,
    lon: float,
    *,
    now: datetime | None = None,
    days: int = DAILY_SUMMARIES,
    locale: WeekdayLocale = "ko",
) -> list[DailySummary]:
    seed = derive_seed(lat, lon)
    current = synthesize_current(lat, lon)
    start = now or datetime.now(timezone.utc)
    progression = (current.condition, current.condition, "Clouds", "Rain", "Clear")

    summaries: list[DailySummary] = []
    for index in range(days):
        day = (start + timedelta(days=index)).date()
        trend = math.sin((index * 2 + seed * 0.1) * 0.3) * 3
        condition = progression[min(index, len(progression) - 1)]
        summaries.append(
            DailySummary(
                date=day,
                weekday_label=weekday_label(day, locale),
                max_temp_c=round_int(current.temperature_c + 5 + trend),
                min_temp_c=round_int(current.temperature_c - 3 + trend * 0.5),
                condition=condition,
                icon_code=DAY_ICONS.get(condition, "01d"),
                humidity_pct=round_int(
                    _clamp(current.humidity_pct + (index * 3 - 6) + (seed % 15 - 7), 40, 85)
                ),
                wind_speed_ms=round_half_up(
                    _clamp(current.wind_speed_ms + ((seed + index * 2) % 5 - 2), 1, 8), 1
                ),
            )
        )
    return summaries


def synthesize_forecast(
    lat: float,
    lon: float,
    *,
    now: datetime | None = None,
    locale: WeekdayLocale = "ko",
) -> Forecast:
    start = now or datetime.now(timezone.utc)
    return Forecast(
        hourly=synthesize_hourly(lat, lon, now=start),
        daily=synthesize_daily(lat, lon, now=start, locale=locale),
    )
