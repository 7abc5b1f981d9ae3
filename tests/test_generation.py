import json
import unittest

import requests

from runmate.generation import GenerationClient
from runmate.tools import Tool, ToolRegistry


class ScriptedLLM:
    """Returns queued assistant messages; records every conversation it was sent."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.sent = []

    def chat_message(self, messages, *, tools=None, format=None, options=None):
        self.sent.append({"messages": list(messages), "tools": tools, "format": format})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _tool_call(name, arguments=None):
    return {"role": "assistant", "content": "", "tool_calls": [{"function": {"name": name, "arguments": arguments or {}}}]}


def _final(payload):
    return {"role": "assistant", "content": json.dumps(payload)}


class TestGenerationClient(unittest.TestCase):
    def setUp(self):
        self.registry = ToolRegistry.of([Tool("echo", "", {}, lambda args: {"echo": args.get("v")})])

    def test_tool_round_then_answer(self):
        llm = ScriptedLLM(_tool_call("echo", {"v": 1}), _final({"greeting": "hi"}))
        result = GenerationClient(llm, max_tool_rounds=3).generate(
            [{"role": "user", "content": "go"}], tools=self.registry, output_schema={"type": "object"}
        )

        self.assertEqual(result.output, {"greeting": "hi"})
        self.assertEqual(result.errors, [])
        self.assertEqual(result.tool_calls, ["echo"])
        second_convo = llm.sent[1]["messages"]
        self.assertEqual(second_convo[-1], {"role": "tool", "tool_name": "echo", "content": json.dumps({"echo": 1})})
        self.assertEqual(llm.sent[0]["format"], {"type": "object"})

    def test_transport_failure_is_reported(self):
        llm = ScriptedLLM(requests.exceptions.ReadTimeout("slow"))
        result = GenerationClient(llm).generate([], tools=self.registry)
        self.assertIsNone(result.output)
        self.assertIn("slow", result.errors[0])

    def test_unparseable_output(self):
        result = GenerationClient(ScriptedLLM({"content": "sorry, no"})).generate([])
        self.assertIsNone(result.output)
        self.assertTrue(result.errors[0].startswith("Unparseable model output"))

    def test_tool_loop_is_bounded(self):
        llm = ScriptedLLM(*[_tool_call("echo") for _ in range(3)])
        result = GenerationClient(llm, max_tool_rounds=2).generate([], tools=self.registry)
        self.assertIsNone(result.output)
        self.assertEqual(len(llm.sent), 3)
        self.assertIn("2 rounds", result.errors[-1])


if __name__ == "__main__":
    unittest.main()
