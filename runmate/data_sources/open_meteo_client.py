"""Helpers for geocoding cities and fetching forecasts from the Open-Meteo APIs."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import requests
import requests_cache
from retry_requests import retry

from runmate.config import settings
from runmate.errors import OpenMeteoError
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="open_meteo_client")

cache_session = requests_cache.CachedSession(
    "runmate_http_cache",
    expire_after=settings.weather_cache_seconds,
    allowable_codes=(200,),
)
session = retry(cache_session, retries=3, backoff_factor=0.2)

HOURLY_VARS = [
    "temperature_2m",
    "apparent_temperature",
    "relative_humidity_2m",
    "precipitation_probability",
    "weather_code",
    "wind_speed_10m",
    "wind_gusts_10m",
    "is_day",
]

DAILY_VARS = [
    "weather_code",
    "temperature_2m_max",
    "temperature_2m_min",
    "sunrise",
    "sunset",
]

UNIT_PARAMS = {
    "C": {"temperature_unit": "celsius", "wind_speed_unit": "kmh"},
    "F": {"temperature_unit": "fahrenheit", "wind_speed_unit": "mph"},
}


@dataclass
class GeocodeResult:
    """Best match for a city name."""
    latitude: float
    longitude: float
    name: str
    admin1: Optional[str] = None
    country: Optional[str] = None
    timezone: Optional[str] = None

    @property
    def display_name(self) -> str:
        """City plus region (or country) for human-facing labels."""
        region = self.admin1 or self.country
        if region and region != self.name:
            return f"{self.name}, {region}"
        return self.name


def _raise_for_error_payload(resp: requests.Response, *, context: str) -> dict:
    """Decode JSON and surface Open-Meteo's `{"error": true, "reason": ...}` payloads."""
    try:
        data = resp.json()
    except ValueError as exc:
        raise OpenMeteoError(f"Open-Meteo {context} returned non-JSON response (status {resp.status_code})") from exc
    if isinstance(data, dict) and data.get("error"):
        reason = data.get("reason") or "Unknown error"
        logger.warning("Open-Meteo error payload", extra={"context": context, "reason": reason})
        raise OpenMeteoError(str(reason))
    resp.raise_for_status()
    if not isinstance(data, dict):
        raise OpenMeteoError(f"Open-Meteo {context} returned an unexpected payload")
    return data


def geocode_city(
    city: str,
    *,
    url: str | None = None,
    timeout: float | None = None,
) -> GeocodeResult | None:
    """Resolve a city name to coordinates; None when Open-Meteo has no match."""
    params = {"name": city, "count": 1, "language": "en", "format": "json"}
    resp = session.get(url or settings.open_meteo_geocoding_url, params=params,
                       timeout=timeout or settings.weather_timeout_sec)
    data = _raise_for_error_payload(resp, context="geocoding")

    results = data.get("results") or []
    if not results:
        logger.info("No geocoding match", extra={"city": city})
        return None
    top = results[0]
    return GeocodeResult(
        latitude=float(top["latitude"]),
        longitude=float(top["longitude"]),
        name=top.get("name") or city,
        admin1=top.get("admin1"),
        country=top.get("country"),
        timezone=top.get("timezone"),
    )


def fetch_forecast(
    latitude: float,
    longitude: float,
    *,
    unit: str = "C",
    timezone: str = "auto",
    forecast_days: int = 2,
    url: str | None = None,
    timeout: float | None = None,
) -> dict:
    """Fetch raw daily + hourly forecast JSON for the given coordinates."""
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "hourly": ",".join(HOURLY_VARS),
        "daily": ",".join(DAILY_VARS),
        "current": "temperature_2m",
        "forecast_days": forecast_days,
        "timezone": timezone,
        "precipitation_unit": "mm",
        **UNIT_PARAMS.get(unit, UNIT_PARAMS["C"]),
    }
    resp = session.get(url or settings.open_meteo_forecast_url, params=params,
                       timeout=timeout or settings.weather_timeout_sec)
    data = _raise_for_error_payload(resp, context="forecast")
    if "hourly" not in data or "daily" not in data:
        raise OpenMeteoError("Open-Meteo forecast response is missing hourly or daily data")
    logger.debug("Fetched Open-Meteo forecast", extra={"latitude": latitude, "longitude": longitude, "unit": unit})
    return data
