"""Weather data sources."""

from __future__ import annotations

from functools import partial

from runmate import config

from .base import CallableWeatherDataSource, WeatherDataSource
from .open_meteo_client import GeocodeResult, fetch_forecast, geocode_city


def open_meteo_data_source(settings: config.Settings | None = None) -> CallableWeatherDataSource:
    """Default data source backed by the Open-Meteo APIs configured in `settings`."""
    cfg = settings or config.settings
    return CallableWeatherDataSource(
        geocode_fn=partial(geocode_city, url=cfg.open_meteo_geocoding_url, timeout=cfg.weather_timeout_sec),
        forecast_fn=partial(fetch_forecast, url=cfg.open_meteo_forecast_url, timeout=cfg.weather_timeout_sec),
    )


__all__ = [
    "CallableWeatherDataSource",
    "WeatherDataSource",
    "GeocodeResult",
    "fetch_forecast",
    "geocode_city",
    "open_meteo_data_source",
]
