from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .adapters.weather.openweathermap import (
    DEFAULT_TIMEOUT_SECONDS,
    OPENWEATHERMAP_BASE_URL,
    is_placeholder_key,
)
from .storage.cache import DEFAULT_NAMESPACE

PROJECT_ROOT = Path(__file__).resolve().parents[2]

LOGGER = logging.getLogger(__name__)


class WeatherSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    units: Literal["metric", "imperial"] = "metric"
    lang: str = "kr"
    weekday_locale: Literal["ko", "en"] = "ko"
    search_limit: int = Field(default=5, ge=1, le=5)

    @field_validator("lang")
    @classmethod
    def validate_lang(cls, value: str) -> str:
        text = value.strip().lower()
        if not text:
            raise ValueError("weather.lang must not be empty")
        return text


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    namespace: str = DEFAULT_NAMESPACE
    current_ttl_minutes: int = Field(default=5, ge=1, le=24 * 60)
    forecast_ttl_minutes: int = Field(default=15, ge=1, le=24 * 60)
    prune_interval_minutes: int = Field(default=10, ge=1, le=24 * 60)

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("cache.namespace must not be empty")
        return text

    @property
    def current_ttl_ms(self) -> int:
        return self.current_ttl_minutes * 60 * 1000

    @property
    def forecast_ttl_ms(self) -> int:
        return self.forecast_ttl_minutes * 60 * 1000


class WeatherdashYamlSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    weather: WeatherSettings = Field(default_factory=WeatherSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)


class EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="weatherdash_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    env: Literal["dev", "test", "prod"] = "dev"
    timezone: str = "UTC"
    openweathermap_api_key: str | None = None
    base_url: str = OPENWEATHERMAP_BASE_URL
    http_timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0, le=120)
    config_path: Path = Path("config/weatherdash.yaml")
    db_path: Path | None = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        text = value.strip().rstrip("/")
        parsed = urlparse(text)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("base_url must be an absolute http(s) URL")
        return text

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class AppSettings(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    env: EnvSettings
    yaml: WeatherdashYamlSettings
    project_root: Path
    config_path: Path
    db_path: Path | None
    timezone: ZoneInfo

    @property
    def has_api_key(self) -> bool:
        return not is_placeholder_key(self.env.openweathermap_api_key)


def _resolve_project_path(path: Path) -> Path:
    if path.is_absolute():
        return path
    return (PROJECT_ROOT / path).resolve()


def _load_yaml_settings(path: Path) -> WeatherdashYamlSettings:
    if not path.exists():
        LOGGER.info("Config file %s not found, using defaults", path)
        return WeatherdashYamlSettings()

    raw_config = yaml.safe_load(path.read_text(encoding="utf-8"))
    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ValueError("Weatherdash config must be a YAML mapping/object at the top level")
    return WeatherdashYamlSettings.model_validate(raw_config)


def build_settings(env: EnvSettings) -> AppSettings:
    config_path = _resolve_project_path(env.config_path)
    db_path = _resolve_project_path(env.db_path) if env.db_path is not None else None
    return AppSettings(
        env=env,
        yaml=_load_yaml_settings(config_path),
        project_root=PROJECT_ROOT,
        config_path=config_path,
        db_path=db_path,
        timezone=ZoneInfo(env.timezone),
    )


@lru_cache(maxsize=1)
def load_settings() -> AppSettings:
    return build_settings(EnvSettings())
