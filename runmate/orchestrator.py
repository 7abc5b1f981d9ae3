"""
Dashboard content synthesis: one tool-assisted generation, strict
sanitization of whatever comes back, and a step-by-step fallback when the
generation cannot be used.

The generation service is untrusted. Every invariant the dashboard relies on
(story bounds and URLs, no clothing advice without weather, no invented news)
is re-enforced here after parsing, whatever the model claims.
"""

from __future__ import annotations

from typing import Any, List, Optional, Set

from pydantic import ValidationError

from runmate.errors import GenerationError
from runmate.generation import GenerationClient, generation_client
from runmate.greeting import generate_greeting, static_greeting
from runmate.models import (
    MAX_TOP_STORIES,
    ClothingCategory,
    DashboardContent,
    DashboardInput,
    NewsItem,
    NewsResult,
    is_absolute_url,
    weather_has_error,
)
from runmate.news_service import fetch_running_news
from runmate.prompts import NEWS_TOOL, build_dashboard_messages
from runmate.tools import Greeter, NewsFetcher, build_dashboard_tools
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="orchestrator")

DEFAULT_WORKOUT_TEXT = "No workout information available."

_CATEGORY_VALUES = {c.value for c in ClothingCategory}
_CATEGORY_SYNONYMS = {
    "t-shirt": ClothingCategory.SHIRT.value,
    "tee": ClothingCategory.SHIRT.value,
    "tank": ClothingCategory.TANK_TOP.value,
    "cap": ClothingCategory.HAT.value,
    "beanie": ClothingCategory.HAT.value,
    "raincoat": ClothingCategory.RAIN_JACKET.value,
    "leggings": ClothingCategory.TIGHTS.value,
    "neck-gaiter": ClothingCategory.GAITER.value,
}

DASHBOARD_OUTPUT_SCHEMA = DashboardContent.model_json_schema(by_alias=True)


def weather_unavailable_summary(city: str, message: str) -> str:
    """Canonical summary for a failed forecast; ends with exactly one period."""
    text = f"Weather forecast for {city or 'your location'} is currently unavailable: {message}"
    return text if text.endswith((".", "!", "?")) else text + "."


def weather_not_summarized(city: str) -> str:
    """Fallback notice when weather exists but could not be narrated."""
    return (
        f"Could not generate weather summary and running recommendation for {city or 'your location'} "
        "at this time due to an AI processing issue. Please check back later."
    )


def _is_nonblank(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def normalize_clothing_category(value: str) -> str:
    """Map a free-form category onto the fixed set; unknown values become 'accessory'."""
    key = value.strip().lower().replace("_", "-").replace(" ", "-")
    if key in _CATEGORY_VALUES:
        return key
    return _CATEGORY_SYNONYMS.get(key, ClothingCategory.ACCESSORY.value)


def sanitize_top_stories(raw: Any, *, allowed_urls: Optional[Set[str]] = None) -> List[dict]:
    """
    Keep well-formed stories (title, string summary, absolute URL, optional
    string source), at most five. With `allowed_urls`, stories whose URL the
    news lookup never returned are dropped as invented.
    """
    if not isinstance(raw, list):
        return []
    kept: List[dict] = []
    for story in raw:
        if not isinstance(story, dict):
            continue
        source = story.get("source")
        if not (_is_nonblank(story.get("title"))
                and isinstance(story.get("summary"), str)
                and (source is None or isinstance(source, str))):
            continue
        url = story.get("url")
        if not is_absolute_url(url):
            logger.warning("Filtering out story with invalid URL", extra={"url": url, "title": story.get("title")})
            continue
        if allowed_urls is not None and url not in allowed_urls:
            logger.warning("Filtering out story not returned by the news lookup", extra={"url": url})
            continue
        item = {"title": story["title"], "summary": story["summary"], "url": url}
        if source is not None:
            item["source"] = source
        kept.append(item)
    return kept[:MAX_TOP_STORIES]


def sanitize_clothing(raw: Any) -> List[dict]:
    """Keep entries with non-empty `item` and `category`; normalize the category."""
    if not isinstance(raw, list):
        return []
    return [
        {"item": entry["item"].strip(), "category": normalize_clothing_category(entry["category"])}
        for entry in raw
        if isinstance(entry, dict) and _is_nonblank(entry.get("item")) and _is_nonblank(entry.get("category"))
    ]


def _news_urls(news_result: Optional[dict]) -> Set[str]:
    """URLs the news tool actually returned; empty when it failed or was never called."""
    if not isinstance(news_result, dict) or news_result.get("error"):
        return set()
    return {
        a.get("link") for a in news_result.get("articles") or []
        if isinstance(a, dict) and isinstance(a.get("link"), str)
    }


def sanitize_generated_output(
    output: Any,
    dashboard_input: DashboardInput,
    *,
    news_result: Optional[dict] = None,
) -> DashboardContent:
    """
    Validate raw model output and re-enforce cross-field invariants.

    Raises GenerationError when the output cannot be made schema-valid
    (missing greeting or weather summary, or not an object at all).
    """
    if not isinstance(output, dict):
        raise GenerationError("Generation output is not an object")

    greeting = output.get("greeting")
    summary = output.get("weatherSummary")
    if not _is_nonblank(greeting):
        raise GenerationError("Generation output has no greeting")
    if not _is_nonblank(summary):
        raise GenerationError("Generation output has no weather summary")

    workout = output.get("workoutForDisplay")
    if not isinstance(workout, str):
        workout = dashboard_input.todays_workout or DEFAULT_WORKOUT_TEXT

    top_stories = sanitize_top_stories(output.get("topStories"), allowed_urls=_news_urls(news_result))
    clothing = sanitize_clothing(output.get("dressMyRunSuggestion"))

    weather = dashboard_input.detailed_weather
    if weather_has_error(weather):
        if clothing:
            logger.warning("Discarding clothing advice generated without weather data")
        clothing = []
        summary = weather_unavailable_summary(dashboard_input.location_city, weather.error)

    plan_end = output.get("planEndNotification")
    if not _is_nonblank(plan_end):
        plan_end = None

    try:
        return DashboardContent(
            greeting=greeting,
            weather_summary=summary,
            workout_for_display=workout,
            top_stories=top_stories,
            plan_end_notification=plan_end,
            dress_my_run_suggestion=clothing,
        )
    except ValidationError as exc:
        raise GenerationError("Sanitized output failed schema validation", [str(exc)]) from exc


def _fallback_weather_summary(dashboard_input: DashboardInput) -> str:
    # Provider error or a generic notice only; no best-time narrative.
    weather = dashboard_input.detailed_weather
    if weather_has_error(weather):
        return weather_unavailable_summary(dashboard_input.location_city, weather.error)
    return weather_not_summarized(dashboard_input.location_city)


def _fallback_stories(news_result: NewsResult) -> List[NewsItem]:
    """Map retriever articles to dashboard stories, re-validated and bounded."""
    if news_result.error:
        return []
    raw = [
        {"title": a.title, "summary": a.snippet, "url": a.link, "source": a.source}
        for a in news_result.articles
    ]
    return [NewsItem.model_validate(s) for s in sanitize_top_stories(raw)]


def build_fallback_content(
    dashboard_input: DashboardInput,
    *,
    greeter: Greeter,
    news_fetcher: NewsFetcher,
) -> DashboardContent:
    """Assemble content from independently guarded steps, without the generation service."""
    greeting = static_greeting(dashboard_input.user_name)
    try:
        generated = greeter(dashboard_input.user_name)
        if _is_nonblank(generated):
            greeting = generated
    except Exception as exc:
        logger.warning("Fallback greeting failed; using static greeting", extra={"error": str(exc)})

    summary = _fallback_weather_summary(dashboard_input)

    stories: List[NewsItem] = []
    try:
        stories = _fallback_stories(
            news_fetcher(dashboard_input.location_city, list(dashboard_input.news_search_categories))
        )
    except Exception as exc:
        logger.warning("Fallback news lookup failed", extra={"error": str(exc)})

    return DashboardContent(
        greeting=greeting,
        weather_summary=summary,
        workout_for_display=dashboard_input.todays_workout or DEFAULT_WORKOUT_TEXT,
        top_stories=stories,
        plan_end_notification=None,
        dress_my_run_suggestion=[],
    )


def generate_dashboard_content(
    dashboard_input: DashboardInput,
    *,
    generator: GenerationClient | None = None,
    greeter: Greeter | None = None,
    news_fetcher: NewsFetcher | None = None,
) -> DashboardContent:
    """
    Produce the day's dashboard. Never raises: any failure of the generation
    or its validation switches to `build_fallback_content`.
    """
    gen = generator or generation_client
    greet = greeter or generate_greeting
    fetch_news = news_fetcher or fetch_running_news

    try:
        registry = build_dashboard_tools(dashboard_input, greeter=greet, news_fetcher=fetch_news)
        result = gen.generate(
            build_dashboard_messages(dashboard_input),
            tools=registry,
            output_schema=DASHBOARD_OUTPUT_SCHEMA,
        )
        if result.output is None:
            raise GenerationError("Generation produced no output", result.errors)
        content = sanitize_generated_output(result.output, dashboard_input, news_result=registry.result(NEWS_TOOL))
        logger.info(
            "Generated dashboard content",
            extra={"user_id": dashboard_input.user_id, "tools": result.tool_calls, "stories": len(content.top_stories)},
        )
        return content
    except Exception as exc:
        errors = exc.errors if isinstance(exc, GenerationError) and exc.errors else [str(exc)]
        logger.error(
            "Dashboard generation failed; using fallback",
            extra={"user_id": dashboard_input.user_id, "errors": errors},
        )

    try:
        return build_fallback_content(dashboard_input, greeter=greet, news_fetcher=fetch_news)
    except Exception as exc:
        logger.exception("Fallback assembly failed: %s", exc)
        return DashboardContent(
            greeting=static_greeting(dashboard_input.user_name),
            weather_summary=_fallback_weather_summary(dashboard_input),
            workout_for_display=dashboard_input.todays_workout or DEFAULT_WORKOUT_TEXT,
        )
