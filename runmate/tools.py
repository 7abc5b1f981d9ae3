"""Tools the generation service may call while writing the dashboard."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from runmate.models import DashboardInput, NewsResult
from runmate.prompts import GREETING_TOOL, NEWS_TOOL
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="tools")

Greeter = Callable[[str], str]
NewsFetcher = Callable[..., NewsResult]


@dataclass
class Tool:
    """A named function exposed to the model, described by a JSON schema."""
    name: str
    description: str
    parameters: dict
    handler: Callable[[dict], dict]

    def to_ollama(self) -> dict:
        """Function-tool definition in Ollama's chat format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ToolRegistry:
    """
    Dispatches model tool calls, running each tool at most once.

    A repeated call returns the first result without re-running the handler,
    so a chatty model cannot multiply provider load. Handler failures are
    returned to the model as ``{"error": ...}``.
    """
    tools: Dict[str, Tool] = field(default_factory=dict)
    _results: Dict[str, dict] = field(default_factory=dict, init=False, repr=False)

    @classmethod
    def of(cls, tools: Iterable[Tool]) -> "ToolRegistry":
        return cls(tools={t.name: t for t in tools})

    def definitions(self) -> List[dict]:
        return [t.to_ollama() for t in self.tools.values()]

    def invoke(self, name: str, arguments: Any = None) -> dict:
        """Run tool `name` (once) and return its JSON-safe result."""
        tool = self.tools.get(name)
        if tool is None:
            logger.warning("Model requested unknown tool", extra={"tool": name})
            return {"error": f"Unknown tool '{name}'"}
        if name in self._results:
            logger.warning("Tool called more than once; replaying first result", extra={"tool": name})
            return self._results[name]

        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments)
            except json.JSONDecodeError:
                arguments = {}
        try:
            result = tool.handler(arguments if isinstance(arguments, dict) else {})
        except Exception as exc:
            logger.warning("Tool handler failed", extra={"tool": name, "error": str(exc)})
            result = {"error": f"{name} failed: {exc}"}
        self._results[name] = result
        return result

    def result(self, name: str) -> Optional[dict]:
        """Result of an already-invoked tool, or None if the model never called it."""
        return self._results.get(name)


def build_dashboard_tools(dashboard_input: DashboardInput, *, greeter: Greeter, news_fetcher: NewsFetcher) -> ToolRegistry:
    """
    Greeting and news tools bound to this user's profile.

    The handlers use the profile's own name, location and categories; the
    arguments the model passes are only logged when they disagree.
    """
    def greeting_handler(args: dict) -> dict:
        if args.get("userName") not in (None, dashboard_input.user_name):
            logger.debug("Ignoring model-supplied userName", extra={"userName": args.get("userName")})
        return {"greeting": greeter(dashboard_input.user_name)}

    def news_handler(args: dict) -> dict:
        if args.get("userLocation") not in (None, "", dashboard_input.location_city):
            logger.debug("Ignoring model-supplied userLocation", extra={"userLocation": args.get("userLocation")})
        result = news_fetcher(dashboard_input.location_city, list(dashboard_input.news_search_categories))
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)

    return ToolRegistry.of([
        Tool(
            name=GREETING_TOOL,
            description="Generates a friendly, motivational greeting with a running-related pun for the user.",
            parameters={
                "type": "object",
                "properties": {"userName": {"type": "string", "description": "Name to greet."}},
                "required": ["userName"],
            },
            handler=greeting_handler,
        ),
        Tool(
            name=NEWS_TOOL,
            description=(
                "Fetches recent running news (last 30 days), tailored by location and categories. "
                "Returns {articles: [{title, link, snippet, source}], error?}."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "userLocation": {"type": "string", "description": "User city; may be empty."},
                    "searchCategories": {"type": "array", "items": {"type": "string"}},
                },
            },
            handler=news_handler,
        ),
    ])
