"""Prompt construction and output parsing for dashboard generation."""

from __future__ import annotations

import json

from runmate.models import ClothingCategory, DashboardInput, weather_has_error

GREETING_TOOL = "generateMotivationalPunTool"
NEWS_TOOL = "fetchGoogleRunningNewsTool"

CLOTHING_CATEGORY_LIST = ", ".join(c.value for c in ClothingCategory)

SYSTEM_PROMPT_DASHBOARD = f"""You are the assistant for "Shut Up and Run", a running companion app. You write all content for the user's daily dashboard.
Your final reply MUST be a single JSON object with exactly these keys:
greeting, weatherSummary, workoutForDisplay, topStories, planEndNotification, dressMyRunSuggestion.

Rules:
1. greeting: call {GREETING_TOOL} once with {{"userName": <name>}} and use its "greeting" value verbatim.
2. weatherSummary:
   - If the weather JSON has an "error" key, write exactly: "Weather forecast for <location> is currently unavailable: <error>." and return dressMyRunSuggestion as [].
   - Otherwise write one paragraph: "Today in <locationName> (<date>), expect <overallDescription>. High of <tempMax><unit>, low of <tempMin><unit>. Sunrise: <sunrise>, Sunset: <sunset>. Avg Humidity: <humidityAvg>%." then " The best time for your run looks to be <time> because <reason>." Pick the time from the hourly data: lowest pop, moderate feelsLike, lower windSpeed, daytime unless dawn/dusk is clearly better.
3. workoutForDisplay: copy today's workout text exactly.
4. topStories: call {NEWS_TOOL} once with {{"userLocation": <location>, "searchCategories": <categories>}}. Map each article to {{"title", "summary" (= snippet), "url" (= link), "source"}}, at most 5. If the tool returns an error or no articles, topStories MUST be []. Never invent articles or URLs.
5. planEndNotification: if today's workout mentions "plan completed", "final workout" or finishing the plan, congratulate the user by name and suggest setting a new goal; otherwise null.
6. dressMyRunSuggestion: [] when weather has an error. Otherwise an itemized list for the conditions at the recommended run time, each {{"item": "<specific garment>", "category": "<one of: {CLOTHING_CATEGORY_LIST}>"}}.
Call each tool at most once. No markdown, no commentary outside the JSON object."""


def strip_markdown_fences(text: str) -> str:
    """Remove surrounding Markdown code fences from text."""
    if not text:
        return text
    t = text.strip()
    if not t.startswith("```"):
        return t
    lines = t.splitlines()
    if lines and lines[0].strip().startswith("```"):
        lines = lines[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()


def build_dashboard_messages(dashboard_input: DashboardInput) -> list[dict]:
    """Prepare system+user messages; weather and categories are embedded as JSON strings."""
    weather = dashboard_input.detailed_weather
    weather_json = weather.model_dump_json(by_alias=True, exclude_none=True)
    categories_json = json.dumps([c.value for c in dashboard_input.news_search_categories])

    lines = [
        "User details:",
        f"- Name: {dashboard_input.user_name}",
        f"- Location: {dashboard_input.location_city or 'not set'}",
        f"- Running level: {dashboard_input.running_level}",
        f"- Goal: {dashboard_input.goal}",
        f"- Today's workout: {dashboard_input.todays_workout or 'No workout information available.'}",
        f"- Weather unit: {dashboard_input.weather_unit.value}",
        f"- Detailed weather (JSON): {weather_json}",
        f"- News search categories (JSON): {categories_json}",
    ]
    if weather_has_error(weather):
        lines.append("Weather is unavailable today; follow the error branch of rule 2 and rule 6.")

    return [
        {"role": "system", "content": SYSTEM_PROMPT_DASHBOARD},
        {"role": "user", "content": "\n".join(lines)},
    ]


def parse_json_output(raw_text: str) -> dict:
    """
    Parse the model's final reply into a JSON object.

    Tolerates Markdown fences and leading/trailing chatter around a single
    top-level object; raises ValueError when no object can be decoded.
    """
    text = strip_markdown_fences(raw_text or "").strip()
    if not text:
        raise ValueError("Empty model output")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("Model output is not JSON") from None
        data = json.loads(text[start:end + 1])
    if not isinstance(data, dict):
        raise ValueError("Model output is not a JSON object")
    return data
