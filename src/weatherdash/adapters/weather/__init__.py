from .base import ConfigError, TransportError, WeatherAdapterError, WeatherSource
from .openweathermap import OpenWeatherMapClient, is_placeholder_key

__all__ = [
    "ConfigError",
    "OpenWeatherMapClient",
    "TransportError",
    "WeatherAdapterError",
    "WeatherSource",
    "is_placeholder_key",
]
