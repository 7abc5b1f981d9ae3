"""One structured generation with tool calls against the Ollama chat API."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from runmate.config import settings
from runmate.ollama_client import OllamaClient, ollama_client
from runmate.prompts import parse_json_output
from runmate.tools import ToolRegistry
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="generation")


@dataclass
class GenerationResult:
    """Parsed model output (None on failure) plus everything that went wrong."""
    output: Optional[dict]
    errors: List[str] = field(default_factory=list)
    tool_calls: List[str] = field(default_factory=list)


class GenerationClient:
    """Runs the chat/tool-call loop until the model answers with a JSON object."""

    def __init__(self, client: OllamaClient | None = None, *, max_tool_rounds: int | None = None):
        self.client = client or ollama_client
        self.max_tool_rounds = max_tool_rounds if max_tool_rounds is not None else settings.generation_max_tool_rounds

    def generate(
        self,
        messages: list[dict],
        *,
        tools: ToolRegistry | None = None,
        output_schema: dict | None = None,
    ) -> GenerationResult:
        """
        Drive the conversation: execute requested tools, feed results back,
        and parse the final reply. Never raises for transport or parse
        problems; they are reported in `errors` with `output=None`.
        """
        convo = list(messages)
        errors: List[str] = []
        called: List[str] = []
        definitions = tools.definitions() if tools else None

        for round_no in range(self.max_tool_rounds + 1):
            try:
                message = self.client.chat_message(convo, tools=definitions, format=output_schema)
            except (requests.exceptions.RequestException, RuntimeError) as exc:
                errors.append(f"Generation request failed: {exc}")
                return GenerationResult(output=None, errors=errors, tool_calls=called)

            tool_calls = message.get("tool_calls") or []
            if tool_calls and tools is not None:
                convo.append({"role": "assistant", "content": message.get("content") or "", "tool_calls": tool_calls})
                for call in tool_calls:
                    fn = call.get("function") or {}
                    name = fn.get("name") or ""
                    result = tools.invoke(name, fn.get("arguments"))
                    called.append(name)
                    convo.append({"role": "tool", "tool_name": name, "content": json.dumps(result)})
                logger.debug("Tool round complete", extra={"round": round_no, "tools": called})
                continue

            try:
                output = parse_json_output(message.get("content") or "")
            except ValueError as exc:
                errors.append(f"Unparseable model output: {exc}")
                return GenerationResult(output=None, errors=errors, tool_calls=called)
            return GenerationResult(output=output, errors=errors, tool_calls=called)

        errors.append(f"Model kept calling tools after {self.max_tool_rounds} rounds")
        return GenerationResult(output=None, errors=errors, tool_calls=called)


generation_client = GenerationClient()
