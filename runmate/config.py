"""Application configuration pulled from environment variables via pydantic."""
import os
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the RunMate dashboard service."""
    model_config = SettingsConfigDict(env_prefix="RUNMATE_", extra="ignore")

    api_key: str | None = None

    # per-user dashboard cache
    cache_redis_url: str | None = None
    cache_key_prefix: str = "dashboardCache:"
    cache_write_workers: int = 2

    # generation service
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.1"
    ollama_timeout_sec: float = 120.0
    generation_max_tool_rounds: int = 4
    ollama_options: dict = Field(
        default_factory=lambda: {
            "temperature": float(os.getenv("RUNMATE_OLLAMA_TEMPERATURE", 0.4)),
            "top_p": float(os.getenv("RUNMATE_OLLAMA_TOP_P", 0.9)),
        }
    )

    # weather provider
    open_meteo_geocoding_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    open_meteo_forecast_url: str = "https://api.open-meteo.com/v1/forecast"
    weather_timeout_sec: float = 10.0
    weather_cache_seconds: int = 900
    hourly_segments: int = 24

    # news provider
    google_search_api_key: str | None = None
    google_search_engine_id: str | None = None
    google_search_url: str = "https://www.googleapis.com/customsearch/v1"
    news_timeout_sec: float = 10.0
    news_window_days: int = 30
    news_max_articles: int = 5

    @field_validator("ollama_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @field_validator("hourly_segments", "news_max_articles", mode="after")
    @classmethod
    def positive_count(cls, v: int) -> int:
        """Reject zero/negative segment or article limits."""
        if v < 1:
            raise ValueError("must be at least 1")
        return v


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4)}")
