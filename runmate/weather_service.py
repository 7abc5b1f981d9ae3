"""Turn Open-Meteo responses into the canonical daily forecast used by the dashboard."""
from __future__ import annotations

import datetime as dt
from statistics import fmean
from typing import List, Optional, Sequence

import requests

from runmate import config
from runmate.data_sources import WeatherDataSource, open_meteo_data_source
from runmate.errors import OpenMeteoError
from runmate.models import DetailedWeather, Forecast, ForecastError, HourlyForecast, WeatherUnit
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="weather_service")

NO_LOCATION_MESSAGE = "Please set a location in your profile for weather updates."
NOT_CONFIGURED_MESSAGE = "Weather service is not configured."
CITY_NOT_FOUND_MESSAGE = "City not found"

# WMO weather interpretation code -> (description, OpenWeatherMap-style icon stem)
WMO_CODES = {
    0: ("Clear sky", "01"),
    1: ("Mainly clear", "02"),
    2: ("Partly cloudy", "03"),
    3: ("Overcast", "04"),
    45: ("Fog", "50"),
    48: ("Depositing rime fog", "50"),
    51: ("Light drizzle", "09"),
    53: ("Drizzle", "09"),
    55: ("Dense drizzle", "09"),
    56: ("Light freezing drizzle", "09"),
    57: ("Freezing drizzle", "09"),
    61: ("Light rain", "10"),
    63: ("Rain", "10"),
    65: ("Heavy rain", "10"),
    66: ("Light freezing rain", "13"),
    67: ("Freezing rain", "13"),
    71: ("Light snow", "13"),
    73: ("Snow", "13"),
    75: ("Heavy snow", "13"),
    77: ("Snow grains", "13"),
    80: ("Light rain showers", "09"),
    81: ("Rain showers", "09"),
    82: ("Violent rain showers", "09"),
    85: ("Light snow showers", "13"),
    86: ("Snow showers", "13"),
    95: ("Thunderstorm", "11"),
    96: ("Thunderstorm with light hail", "11"),
    99: ("Thunderstorm with hail", "11"),
}


def describe_weather_code(code: Optional[int], is_day: Optional[object] = True) -> tuple[str, str]:
    """Return (description, icon code) for a WMO weather code."""
    try:
        description, stem = WMO_CODES[int(code)]
    except (KeyError, TypeError, ValueError):
        return "Unknown conditions", "03d"
    suffix = "n" if is_day in (0, False, "0") else "d"
    return description, f"{stem}{suffix}"


def _time_label(value: dt.datetime) -> str:
    """12-hour clock label, e.g. '9:00 AM'."""
    return value.strftime("%I:%M %p").lstrip("0")


def _date_label(value: dt.date) -> str:
    """Long date label, e.g. 'Tuesday, July 30'."""
    return f"{value:%A, %B} {value.day}"


def _first_index_from(times: Sequence[str], anchor: Optional[str]) -> int:
    """Index of the first hourly slot at or after the anchor's hour (0 if unknown)."""
    if not anchor:
        return 0
    hour_floor = anchor[:13] + ":00"
    for i, t in enumerate(times):
        if t >= hour_floor:
            return i
    return 0


def _at(values: Optional[Sequence], i: int):
    """Safe positional lookup for optional hourly arrays."""
    if not values or i >= len(values):
        return None
    return values[i]


def _round(value: Optional[float], ndigits: int = 1) -> Optional[float]:
    return None if value is None else round(float(value), ndigits)


def normalize_forecast(raw: dict, *, location_name: str, max_segments: int = 24) -> Forecast:
    """
    Build a `Forecast` from a raw Open-Meteo payload.

    Hourly segments start at the current local hour (from the `current` block)
    and run for at most `max_segments` slots. Daily fields come from the day
    containing that first segment. Raises KeyError/ValueError/TypeError on
    malformed payloads; callers convert those into a ForecastError.
    """
    hourly = raw["hourly"]
    daily = raw["daily"]
    times: List[str] = hourly["time"]
    anchor = (raw.get("current") or {}).get("time")

    start = _first_index_from(times, anchor)
    stop = min(start + max_segments, len(times))
    if start >= stop:
        raise ValueError("forecast has no hourly data")

    segments: List[HourlyForecast] = []
    humidity: List[float] = []
    wind: List[float] = []
    for i in range(start, stop):
        when = dt.datetime.fromisoformat(times[i])
        temp = _round(hourly["temperature_2m"][i])
        feels_like = _round(_at(hourly.get("apparent_temperature"), i))
        pop = _at(hourly.get("precipitation_probability"), i)
        wind_speed = _round(_at(hourly.get("wind_speed_10m"), i)) or 0.0
        rel_humidity = _at(hourly.get("relative_humidity_2m"), i)
        description, icon = describe_weather_code(
            _at(hourly.get("weather_code"), i), _at(hourly.get("is_day"), i)
        )

        segments.append(
            HourlyForecast(
                time=_time_label(when),
                temp=temp,
                feels_like=feels_like if feels_like is not None else temp,
                description=description,
                pop=min(100.0, max(0.0, float(pop or 0))),
                wind_speed=wind_speed,
                wind_gust=_round(_at(hourly.get("wind_gusts_10m"), i)),
                icon=icon,
            )
        )
        wind.append(wind_speed)
        if rel_humidity is not None:
            humidity.append(float(rel_humidity))

    first_day = times[start][:10]
    day_times: List[str] = daily["time"]
    day_idx = day_times.index(first_day) if first_day in day_times else 0
    overall, _icon = describe_weather_code(_at(daily.get("weather_code"), day_idx))

    return Forecast(
        location_name=location_name,
        date=_date_label(dt.date.fromisoformat(day_times[day_idx])),
        overall_description=overall,
        temp_min=_round(daily["temperature_2m_min"][day_idx]),
        temp_max=_round(daily["temperature_2m_max"][day_idx]),
        sunrise=_time_label(dt.datetime.fromisoformat(daily["sunrise"][day_idx])),
        sunset=_time_label(dt.datetime.fromisoformat(daily["sunset"][day_idx])),
        humidity_avg=round(fmean(humidity)) if humidity else 0,
        wind_avg=round(fmean(wind), 1) if wind else 0.0,
        hourly=segments,
    )


def get_detailed_weather(
    city: Optional[str],
    unit: WeatherUnit | str = WeatherUnit.CELSIUS,
    *,
    data_source: WeatherDataSource | None = None,
    settings: config.Settings | None = None,
) -> DetailedWeather:
    """
    Resolve `city` and return its forecast, or a ForecastError.

    Never raises: configuration gaps, unknown cities, provider error payloads
    and transport failures all come back as ForecastError with the best-known
    location name.
    """
    cfg = settings or config.settings
    unit_value = getattr(unit, "value", unit)
    city = (city or "").strip()

    if not city or city.lower() == "not set":
        return ForecastError(error=NO_LOCATION_MESSAGE)
    if not cfg.open_meteo_geocoding_url or not cfg.open_meteo_forecast_url:
        logger.error("Open-Meteo URLs are not configured")
        return ForecastError(error=NOT_CONFIGURED_MESSAGE, location_name=city)

    ds = data_source or open_meteo_data_source(cfg)
    logger.info("Resolving detailed weather", extra={"city": city, "unit": unit_value})
    location_name = city
    try:
        place = ds.geocode(city)
        if place is None:
            result = ForecastError(error=CITY_NOT_FOUND_MESSAGE, location_name=city)
        else:
            location_name = place.display_name
            raw = ds.fetch_forecast(place.latitude, place.longitude, unit=unit_value, timezone=place.timezone or "auto")
            try:
                result = normalize_forecast(raw, location_name=location_name, max_segments=cfg.hourly_segments)
            except (KeyError, IndexError, TypeError, ValueError) as exc:
                logger.warning("Malformed forecast payload", extra={"city": city, "error": str(exc)})
                result = ForecastError(error="Weather data for this location was malformed.", location_name=location_name)
    except OpenMeteoError as exc:
        return ForecastError(error=f"Weather provider error: {exc}", location_name=location_name)
    except requests.exceptions.RequestException as exc:
        logger.warning("Weather request failed", extra={"city": city, "error": str(exc)})
        return ForecastError(error="Could not connect to weather service.", location_name=location_name)
    except Exception as exc:
        logger.exception("Unexpected weather lookup failure: %s", exc)
        return ForecastError(error="Weather lookup failed unexpectedly.", location_name=location_name)

    if isinstance(result, ForecastError):
        logger.info("Weather unavailable", extra={"city": city, "error": result.error})
    return result
