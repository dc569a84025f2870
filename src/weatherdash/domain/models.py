from __future__ import annotations

from datetime import date, datetime

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from .rounding import round_int


class LocationCoordinate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class LocationMatch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    country: str
    state: str | None = None
    lat: float
    lon: float
    local_names: dict[str, str] | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("location name must not be empty")
        return text


class CurrentObservation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    location: str | None = None
    temperature_c: int
    condition: str
    description: str
    humidity_pct: int = Field(ge=0, le=100)
    wind_speed_ms: float = Field(ge=0)
    pressure_hpa: int
    visibility_km: int = Field(ge=0)
    uv_index: int = Field(ge=0)
    feels_like_c: int
    icon_code: str
    precipitation_chance_pct: int = Field(ge=0, le=100)


class ForecastSample(BaseModel):
    """One raw provider sample, nominally three hours apart from its neighbours."""

    model_config = ConfigDict(extra="ignore")

    timestamp: datetime
    temperature_c: float
    condition: str
    icon_code: str
    humidity_pct: float
    wind_speed_ms: float
    precipitation_chance_pct: float | None = None


class HourlyPoint(BaseModel):
    model_config = ConfigDict(extra="ignore")

    timestamp: datetime
    time_label: str
    temperature_c: int
    condition: str
    icon_code: str
    humidity_pct: int
    wind_speed_ms: float
    precipitation_chance_pct: int | None = Field(default=None, ge=0, le=100)


class DailySummary(BaseModel):
    model_config = ConfigDict(extra="ignore")

    date: date
    weekday_label: str
    max_temp_c: int
    min_temp_c: int
    condition: str
    icon_code: str
    humidity_pct: int
    wind_speed_ms: float

    @model_validator(mode="after")
    def validate_temperature_range(self) -> DailySummary:
        if self.max_temp_c < self.min_temp_c:
            raise ValueError("daily summary max_temp_c must be >= min_temp_c")
        return self


class Forecast(BaseModel):
    model_config = ConfigDict(extra="ignore")

    hourly: list[HourlyPoint] = Field(default_factory=list)
    daily: list[DailySummary] = Field(default_factory=list, max_length=7)


class CacheInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    count: int = 0
    total_size_bytes: int = 0
    oldest_key: str | None = None
    newest_key: str | None = None

    @computed_field
    @property
    def total_size_kb(self) -> int:
        return round_int(self.total_size_bytes / 1024)
