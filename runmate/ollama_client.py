"""Thin client for calling the Ollama chat API (plain text, tools, JSON schema output)."""

import os
import time
from typing import Any

import requests

from .config import settings
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="ollama_client")


def _base_url() -> str:
    """Return Ollama base URL without a trailing slash."""
    return str(settings.ollama_base_url).rstrip("/")


class OllamaClient:
    """Minimal client for the Ollama chat API."""
    def __init__(self, *, model: str | None = None, timeout: float | None = None):
        """Initialize client configuration from settings."""
        self.url = f"{_base_url()}/api/chat"
        self.model = model or settings.ollama_model
        self.options = settings.ollama_options
        self.timeout = timeout or settings.ollama_timeout_sec
        self.max_retries = int(os.getenv("RUNMATE_OLLAMA_RETRIES", "1"))
        self.retry_backoff_sec = float(os.getenv("RUNMATE_OLLAMA_RETRY_BACKOFF_SEC", "0.5"))

    def chat_message(
        self,
        messages: list[dict],
        *,
        tools: list[dict] | None = None,
        format: dict | str | None = None,
        options: dict | None = None,
    ) -> dict[str, Any]:
        """Send a chat request and return the assistant message (content and any tool_calls)."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {**self.options, **(options or {})},
        }
        if tools:
            payload["tools"] = tools
        if format is not None:
            payload["format"] = format

        last_error = None
        for attempt in range(self.max_retries + 1):
            try:
                logger.debug("Ollama POST payload: %s", payload)
                r = requests.post(self.url, json=payload, timeout=self.timeout)
                logger.info(
                    "Ollama POST took %.2fs, response: %s",
                    r.elapsed.total_seconds(),
                    r.text[:200],
                )
            except requests.exceptions.RequestException as exc:
                last_error = exc
                logger.warning("Ollama POST failed on attempt %d: %s", attempt + 1, exc)
                if attempt < self.max_retries:
                    time.sleep(self.retry_backoff_sec)
                    continue
                raise

            if r.status_code == 200:
                break

            error_text = (r.text or "")[:200]
            if "EOF" in error_text and attempt < self.max_retries:
                logger.warning("Ollama returned EOF; retrying (attempt %d/%d).", attempt + 1, self.max_retries + 1)
                time.sleep(self.retry_backoff_sec)
                continue
            raise RuntimeError(
                f"Ollama POST failed with status {r.status_code}: {error_text} "
                f"(model={self.model}, url={self.url})"
            )
        else:
            if last_error is not None:
                raise RuntimeError(f"Ollama POST failed after retries: {last_error}") from last_error

        try:
            data = r.json()
        except ValueError as exc:
            raise RuntimeError(f"Ollama returned non-JSON response: {r.text[:200]}") from exc
        message = data.get("message") or {}
        if not isinstance(message, dict):
            raise RuntimeError("Ollama response is missing the assistant message")
        return message

    def chat(self, messages: list[dict], *, options: dict | None = None) -> str:
        """Send a plain chat request and return the assistant content as text."""
        content = self.chat_message(messages, options=options).get("content", "")
        # Normalize non-string content to string
        if isinstance(content, (dict, list)):
            content = str(content)
        return content or ""


ollama_client = OllamaClient()
