"""Interfaces and helpers for weather data sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from runmate.data_sources.open_meteo_client import GeocodeResult


class WeatherDataSource(Protocol):
    """Interface for anything that can geocode a city and return a raw forecast."""

    def geocode(self, city: str) -> Optional[GeocodeResult]:
        """Return the best coordinates for `city`, or None if unknown."""
        ...

    def fetch_forecast(
        self,
        latitude: float,
        longitude: float,
        *,
        unit: str = "C",
        timezone: str = "auto",
    ) -> dict:
        """Return the raw Open-Meteo-shaped forecast payload."""
        ...


@dataclass
class CallableWeatherDataSource:
    """Adapter that wraps plain functions into a WeatherDataSource."""

    geocode_fn: Callable[..., Optional[GeocodeResult]]
    forecast_fn: Callable[..., dict]

    def geocode(self, city: str) -> Optional[GeocodeResult]:
        return self.geocode_fn(city)

    def fetch_forecast(
        self,
        latitude: float,
        longitude: float,
        *,
        unit: str = "C",
        timezone: str = "auto",
    ) -> dict:
        return self.forecast_fn(latitude, longitude, unit=unit, timezone=timezone)
