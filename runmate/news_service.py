"""Running news lookups against the Google Custom Search JSON API."""
from __future__ import annotations

import datetime as dt
from typing import Any, Iterable, List, Optional
from urllib.parse import urlparse

import requests
from pydantic import ValidationError

from runmate import config
from runmate.models import NewsArticle, NewsResult, NewsSearchCategory
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="news_service")

BASE_KEYWORD = "running"
NEWS_KEYWORD = "news"
GENERIC_QUERY = "recent notable running news"
GEOGRAPHIC = NewsSearchCategory.GEOGRAPHIC_AREA.value


def _usable_location(location: Optional[str]) -> Optional[str]:
    """Return a trimmed location, or None for blanks and the 'not set' placeholder."""
    loc = (location or "").strip()
    if not loc or loc.lower() == "not set":
        return None
    return loc


def build_news_query(location: Optional[str], categories: Iterable[NewsSearchCategory | str] | None) -> str:
    """
    Build the search phrase for a location/category preference.

    Category keywords are OR-combined (``running (nutrition OR training) news``).
    ``geographic_area`` is not a keyword: when a location is known it scopes
    the query with `` in {location}`` instead. Without categories the generic
    "recent notable running news" query is used, still scoped by location.
    """
    loc = _usable_location(location)
    cats: List[str] = []
    for c in categories or []:
        value = getattr(c, "value", c)
        if value not in cats:
            cats.append(value)

    if not cats:
        return f"{GENERIC_QUERY} in {loc}" if loc else GENERIC_QUERY

    scope = loc if GEOGRAPHIC in cats else None
    keywords = [c.replace("_", " ") for c in cats if not (scope and c == GEOGRAPHIC)]

    if keywords:
        query = f"{BASE_KEYWORD} ({' OR '.join(keywords)}) {NEWS_KEYWORD}"
    else:
        query = f"{BASE_KEYWORD} {NEWS_KEYWORD}"
    if scope:
        query += f" in {scope}"
    return query


def _text(value):
    """Strip strings; anything else is passed through for validation to reject."""
    return value.strip() if isinstance(value, str) else value


def _error_message(error) -> Optional[str]:
    """Message from a Google error body, which is an object or a bare string."""
    if isinstance(error, dict):
        message = error.get("message")
        return message if isinstance(message, str) and message else None
    if isinstance(error, str) and error:
        return error
    return None


def _article_source(item: dict) -> Optional[str]:
    """Pick a display source: og:site_name, then displayLink, then hostname."""
    pagemap = item.get("pagemap")
    metatags = pagemap.get("metatags") if isinstance(pagemap, dict) else None
    if isinstance(metatags, list) and metatags and isinstance(metatags[0], dict):
        site_name = metatags[0].get("og:site_name")
        if isinstance(site_name, str) and site_name:
            return site_name
    display_link = item.get("displayLink")
    if isinstance(display_link, str) and display_link:
        return display_link
    link = item.get("link")
    if not isinstance(link, str):
        return None
    try:
        host = urlparse(link).hostname
    except ValueError:
        return None
    if host:
        return host[4:] if host.startswith("www.") else host
    return None


def parse_search_items(items: Any, *, limit: int) -> List[NewsArticle]:
    """Validate raw search hits, dropping any without title, absolute link or snippet."""
    articles: List[NewsArticle] = []
    if not isinstance(items, list):
        return []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            article = NewsArticle(
                title=_text(item.get("title") or ""),
                link=item.get("link") or "",
                snippet=_text(item.get("snippet") or ""),
                source=_article_source(item),
            )
        except ValidationError:
            logger.debug("Dropping invalid search hit", extra={"link": item.get("link")})
            continue
        articles.append(article)
        if len(articles) >= limit:
            break
    return articles


def fetch_running_news(
    location: Optional[str],
    categories: Iterable[NewsSearchCategory | str] | None = None,
    *,
    settings: config.Settings | None = None,
    session: requests.Session | None = None,
    today: dt.date | None = None,
) -> NewsResult:
    """
    Search recent running news; never raises.

    An empty article list without `error` means the search worked but found
    nothing usable.
    """
    cfg = settings or config.settings
    if not cfg.google_search_api_key or not cfg.google_search_engine_id:
        logger.error("Google Custom Search API key or engine id is missing")
        return NewsResult(error="News service is not configured. API Key or Search Engine ID missing.")

    query = build_news_query(location, categories)
    since = (today or dt.date.today()) - dt.timedelta(days=cfg.news_window_days)
    params = {
        "key": cfg.google_search_api_key,
        "cx": cfg.google_search_engine_id,
        "q": f"{query} after:{since.isoformat()}",
        "dateRestrict": f"d{cfg.news_window_days}",
        "num": 10,
    }
    http = session or requests

    logger.info("Searching running news", extra={"query": query})
    try:
        resp = http.get(cfg.google_search_url, params=params, timeout=cfg.news_timeout_sec)
    except requests.exceptions.RequestException as exc:
        logger.warning("News request failed", extra={"error": str(exc)})
        return NewsResult(error=f"Error processing news request: {exc}")

    try:
        data = resp.json()
    except ValueError:
        data = {}

    if resp.status_code != 200:
        api_error = _error_message(data.get("error")) if isinstance(data, dict) else None
        logger.error("News API returned status %s", resp.status_code)
        return NewsResult(error=f"Error fetching news from Google: {api_error or f'HTTP error! status: {resp.status_code}'}")
    if not isinstance(data, dict):
        return NewsResult(error="Error fetching news from Google: unexpected response payload")
    if data.get("error"):
        message = _error_message(data["error"])
        return NewsResult(error=f"Google Search API error: {message or 'Unknown error from API.'}")

    articles = parse_search_items(data.get("items") or [], limit=cfg.news_max_articles)
    if not articles:
        logger.info("No usable articles found", extra={"query": query})
    return NewsResult(articles=articles)
