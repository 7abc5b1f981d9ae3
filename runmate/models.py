"""Domain vocabulary and schemas for the daily dashboard pipeline.

These models are the contract between the weather/news lookups, the
generation service, the cache store and the HTTP surface. Field names are
snake_case in Python and camelCase on the wire and in persisted cache
records; either spelling is accepted on input.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, List, Optional, Tuple, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Base model with camelCase aliases; unknown keys are ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class WeatherUnit(str, Enum):
    """Temperature unit preference."""
    CELSIUS = "C"
    FAHRENHEIT = "F"


class NewsSearchCategory(str, Enum):
    """News topics a runner can follow."""
    GEOGRAPHIC_AREA = "geographic_area"
    TRACK_ROAD_TRAIL = "track_road_trail"
    RUNNING_TECH = "running_tech"
    RUNNING_APPAREL = "running_apparel"
    MARATHON_MAJORS = "marathon_majors"
    NUTRITION = "nutrition"
    TRAINING = "training"


class ClothingCategory(str, Enum):
    """Fixed set of garment categories for run clothing advice."""
    HAT = "hat"
    VISOR = "visor"
    SUNGLASSES = "sunglasses"
    HEADBAND = "headband"
    SHIRT = "shirt"
    TANK_TOP = "tank-top"
    LONG_SLEEVE = "long-sleeve"
    BASE_LAYER = "base-layer"
    MID_LAYER = "mid-layer"
    JACKET = "jacket"
    VEST = "vest"
    WINDBREAKER = "windbreaker"
    RAIN_JACKET = "rain-jacket"
    SHORTS = "shorts"
    CAPRIS = "capris"
    TIGHTS = "tights"
    PANTS = "pants"
    GLOVES = "gloves"
    MITTENS = "mittens"
    SOCKS = "socks"
    SHOES = "shoes"
    GAITER = "gaiter"
    BALACLAVA = "balaclava"
    ACCESSORY = "accessory"


MAX_TOP_STORIES = 5


def is_absolute_url(value: Any) -> bool:
    """True when `value` is a string that parses as an absolute http(s) URL."""
    if not isinstance(value, str) or not value or value != value.strip() or " " in value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


# ---------------------------------------------------------------------------
# Weather
# ---------------------------------------------------------------------------

class HourlyForecast(_CamelModel):
    """One forecast segment of the day."""
    time: str
    temp: float
    feels_like: float
    description: str
    pop: float = Field(ge=0, le=100)
    wind_speed: float
    wind_gust: Optional[float] = None
    icon: str


class Forecast(_CamelModel):
    """Canonical daily forecast with up to 24 hourly segments."""
    location_name: str
    date: str
    overall_description: str
    temp_min: float
    temp_max: float
    sunrise: str
    sunset: str
    humidity_avg: float
    wind_avg: float
    hourly: List[HourlyForecast] = Field(default_factory=list)


class ForecastError(_CamelModel):
    """Typed failure alternative to `Forecast`."""
    error: str
    location_name: Optional[str] = None


DetailedWeather = Union[ForecastError, Forecast]


def weather_has_error(value: Any) -> bool:
    """Return True if a detailed-weather value carries a non-empty error."""
    if isinstance(value, ForecastError):
        return bool(value.error)
    if isinstance(value, dict):
        err = value.get("error")
        return isinstance(err, str) and len(err) > 0
    return False


# ---------------------------------------------------------------------------
# News
# ---------------------------------------------------------------------------

class NewsArticle(_CamelModel):
    """Validated search hit as returned by the news retriever."""
    title: str = Field(min_length=1)
    link: str
    snippet: str = Field(min_length=1)
    source: Optional[str] = None

    @field_validator("link")
    @classmethod
    def link_is_absolute(cls, v: str) -> str:
        if not is_absolute_url(v):
            raise ValueError("link must be an absolute URL")
        return v


class NewsResult(_CamelModel):
    """News lookup outcome; `error` is set only when the lookup failed."""
    articles: List[NewsArticle] = Field(default_factory=list)
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Dashboard content
# ---------------------------------------------------------------------------

class NewsItem(_CamelModel):
    """A story shown on the dashboard."""
    title: str = Field(min_length=1)
    summary: str
    url: str
    source: Optional[str] = None

    @field_validator("url")
    @classmethod
    def url_is_absolute(cls, v: str) -> str:
        if not is_absolute_url(v):
            raise ValueError("url must be an absolute URL")
        return v


class ClothingItem(_CamelModel):
    """A single piece of run clothing advice."""
    item: str = Field(min_length=1)
    category: ClothingCategory


class DashboardContent(_CamelModel):
    """Synthesized daily dashboard."""
    greeting: str = Field(min_length=1)
    weather_summary: str
    workout_for_display: str
    top_stories: List[NewsItem] = Field(default_factory=list, max_length=MAX_TOP_STORIES)
    plan_end_notification: Optional[str] = None
    dress_my_run_suggestion: List[ClothingItem] = Field(default_factory=list)


CONTENT_FIELDS = tuple(DashboardContent.model_fields)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class Fingerprint(_CamelModel):
    """Inputs that affect cached content; categories compare as a set."""
    model_config = ConfigDict(frozen=True)

    location_city: str = ""
    weather_unit: WeatherUnit = WeatherUnit.CELSIUS
    news_search_categories: Tuple[str, ...] = ()
    training_plan_id: Optional[str] = None

    @field_validator("news_search_categories", mode="before")
    @classmethod
    def normalize_categories(cls, v):
        """Collapse to a sorted, de-duplicated tuple of plain strings."""
        return tuple(sorted({getattr(c, "value", c) for c in (v or [])}))

    @field_validator("location_city", mode="before")
    @classmethod
    def none_city_is_blank(cls, v):
        return v or ""


class CacheRecord(DashboardContent):
    """Persisted per-user dashboard: content plus the date and inputs it was built for."""
    id: str
    user_id: str
    cache_date: date
    cached_inputs: Fingerprint

    def content(self) -> DashboardContent:
        """Return the dashboard content portion of the record."""
        return DashboardContent.model_validate(self.model_dump(include=set(CONTENT_FIELDS)))

    def to_document(self) -> dict:
        """Serialize to the camelCase JSON layout stored in the cache."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Pipeline inputs
# ---------------------------------------------------------------------------

class DashboardInput(_CamelModel):
    """Everything the orchestrator needs for one generation."""
    user_id: str = ""
    user_name: str
    location_city: str = ""
    running_level: str = "Beginner"
    goal: str = "5K"
    todays_workout: str = ""
    detailed_weather: DetailedWeather
    weather_unit: WeatherUnit = WeatherUnit.CELSIUS
    news_search_categories: List[NewsSearchCategory] = Field(default_factory=list)


class DashboardProfile(_CamelModel):
    """Caller-supplied profile and plan state for a dashboard page load."""
    user_id: str = Field(min_length=1)
    user_name: str = "Runner"
    location_city: str = ""
    weather_unit: WeatherUnit = WeatherUnit.CELSIUS
    running_level: str = "Beginner"
    goal: str = "5K"
    news_search_categories: List[NewsSearchCategory] = Field(default_factory=list)
    training_plan_id: Optional[str] = None
    todays_workout: Optional[str] = None

    def fingerprint(self) -> Fingerprint:
        """Derive the cache fingerprint for this profile."""
        return Fingerprint(
            location_city=self.location_city,
            weather_unit=self.weather_unit,
            news_search_categories=self.news_search_categories,
            training_plan_id=self.training_plan_id,
        )

    def to_dashboard_input(self, detailed_weather: DetailedWeather) -> DashboardInput:
        """Combine the profile with resolved weather for the orchestrator."""
        return DashboardInput(
            user_id=self.user_id,
            user_name=self.user_name,
            location_city=self.location_city,
            running_level=self.running_level,
            goal=self.goal,
            todays_workout=self.todays_workout or "",
            detailed_weather=detailed_weather,
            weather_unit=self.weather_unit,
            news_search_categories=self.news_search_categories,
        )
