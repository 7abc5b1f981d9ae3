"""Short personalized greetings built around an LLM-written running pun."""

from __future__ import annotations

import random

from .prompts import strip_markdown_fences
from .ollama_client import OllamaClient, ollama_client
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="greeting")

PUN_PROMPT = "Generate a short, witty, running-related pun. Reply with the pun only, one sentence, no preamble."

GREETING_TEMPLATES = (
    "Hey {name}, ready to hit the pavement? Remember: {pun}",
    "Hello {name}! Here's a little something to get you moving: {pun}",
    "Hi {name}, time to lace up! And here's a thought: {pun}",
    "{name}, let's get those legs moving! Quick pun for you: {pun}",
)


def static_greeting(user_name: str) -> str:
    """Greeting used when nothing could be generated."""
    return f"Hello {user_name or 'Runner'}, your personalized dashboard content could not be generated at this time."


def generate_greeting(user_name: str, *, client: OllamaClient | None = None, rng: random.Random | None = None) -> str:
    """
    Ask the LLM for a pun and wrap it in a greeting for `user_name`.

    Raises whatever the client raises (or ValueError on an empty pun); callers
    fall back to `static_greeting`.
    """
    llm = client or ollama_client
    raw = llm.chat([{"role": "user", "content": PUN_PROMPT}], options={"temperature": 0.6})
    pun = strip_markdown_fences(raw).strip().strip('"')
    if not pun:
        raise ValueError("LLM returned an empty pun")
    template = (rng or random).choice(GREETING_TEMPLATES)
    greeting = template.format(name=user_name or "Runner", pun=pun)
    logger.debug("Generated greeting", extra={"chars": len(greeting)})
    return greeting
