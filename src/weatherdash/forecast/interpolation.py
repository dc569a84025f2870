from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Literal

from ..domain.models import DailySummary, ForecastSample, HourlyPoint
from ..domain.rounding import round_half_up, round_int

LOGGER = logging.getLogger(__name__)

HOURLY_POINTS = 24
DAILY_SUMMARIES = 7
SAMPLE_SPACING_HOURS = 3

WeekdayLocale = Literal["ko", "en"]

WEEKDAY_LABELS: dict[str, tuple[str, ...]] = {
    "ko": ("월", "화", "수", "목", "금", "토", "일"),
    "en": ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"),
}


def weekday_label(day: date, locale: WeekdayLocale = "ko") -> str:
    labels = WEEKDAY_LABELS.get(locale, WEEKDAY_LABELS["en"])
    return labels[day.weekday()]


def time_label(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def _lerp(start: float, end: float, factor: float) -> float:
    return start + (end - start) * factor


@dataclass(slots=True)
class HourlySeries:
    """Interpolated hourly points plus the count that was asked for."""

    points: list[HourlyPoint] = field(default_factory=list)
    expected: int = HOURLY_POINTS

    @property
    def is_short(self) -> bool:
        return len(self.points) < self.expected


def interpolate_hourly(
    samples: Sequence[ForecastSample],
    *,
    now: datetime | None = None,
    hours: int = HOURLY_POINTS,
) -> HourlySeries:
    series = HourlySeries(expected=hours)
    if not samples:
        return series

    start = now or datetime.now(timezone.utc)
    last_index = len(samples) - 1

    for offset in range(hours):
        sample_index = offset // SAMPLE_SPACING_HOURS
        if sample_index > last_index:
            break
        next_index = min(sample_index + 1, last_index)
        factor = (offset % SAMPLE_SPACING_HOURS) / SAMPLE_SPACING_HOURS

        current = samples[sample_index]
        upcoming = samples[next_index]
        moment = start + timedelta(hours=offset)

        precipitation: int | None = None
        if current.precipitation_chance_pct is not None:
            end_value = upcoming.precipitation_chance_pct
            if end_value is None:
                end_value = current.precipitation_chance_pct
            precipitation = round_int(_lerp(current.precipitation_chance_pct, end_value, factor))

        series.points.append(
            HourlyPoint(
                timestamp=moment,
                time_label=time_label(moment),
                temperature_c=round_int(_lerp(current.temperature_c, upcoming.temperature_c, factor)),
                condition=current.condition,
                icon_code=current.icon_code,
                humidity_pct=round_int(_lerp(current.humidity_pct, upcoming.humidity_pct, factor)),
                wind_speed_ms=round_half_up(
                    _lerp(current.wind_speed_ms, upcoming.wind_speed_ms, factor), 1
                ),
                precipitation_chance_pct=precipitation,
            )
        )

    if series.is_short:
        LOGGER.warning(
            "Hourly interpolation produced %s of %s points from %s samples",
            len(series.points),
            hours,
            len(samples),
        )
    return series


def summarize_daily(
    samples: Sequence[ForecastSample],
    *,
    tz: tzinfo = timezone.utc,
    days: int = DAILY_SUMMARIES,
    locale: WeekdayLocale = "ko",
) -> list[DailySummary]:
    grouped: dict[date, list[ForecastSample]] = {}
    for sample in sorted(samples, key=lambda item: item.timestamp):
        timestamp = sample.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        grouped.setdefault(timestamp.astimezone(tz).date(), []).append(sample)

    summaries: list[DailySummary] = []
    for day in sorted(grouped)[:days]:
        day_samples = grouped[day]
        temperatures = [item.temperature_c for item in day_samples]
        first = day_samples[0]
        summaries.append(
            DailySummary(
                date=day,
                weekday_label=weekday_label(day, locale),
                max_temp_c=round_int(max(temperatures)),
                min_temp_c=round_int(min(temperatures)),
                condition=first.condition,
                icon_code=first.icon_code,
                humidity_pct=round_int(
                    sum(item.humidity_pct for item in day_samples) / len(day_samples)
                ),
                wind_speed_ms=round_half_up(
                    sum(item.wind_speed_ms for item in day_samples) / len(day_samples), 1
                ),
            )
        )
    return summaries
