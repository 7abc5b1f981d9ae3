import random
import unittest

import pytest

from runmate.greeting import GREETING_TEMPLATES, generate_greeting, static_greeting


class FakeLLM:
    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    def chat(self, messages, *, options=None):
        self.calls.append({"messages": messages, "options": options})
        return self.reply


class TestGreeting(unittest.TestCase):
    def test_wraps_pun_with_name(self):
        llm = FakeLLM('"Why did the runner bring string? To tie up loose ends."')
        greeting = generate_greeting("Alex", client=llm, rng=random.Random(0))
        self.assertIn("Alex", greeting)
        self.assertIn("To tie up loose ends.", greeting)
        self.assertFalse(greeting.endswith('"'))
        self.assertEqual(llm.calls[0]["options"], {"temperature": 0.6})

    def test_uses_one_of_the_templates(self):
        greeting = generate_greeting("Sam", client=FakeLLM("Pun."), rng=random.Random(3))
        rendered = {t.format(name="Sam", pun="Pun.") for t in GREETING_TEMPLATES}
        self.assertIn(greeting, rendered)

    def test_static_greeting(self):
        self.assertEqual(
            static_greeting("Alex"),
            "Hello Alex, your personalized dashboard content could not be generated at this time.",
        )


def test_empty_pun_raises():
    with pytest.raises(ValueError):
        generate_greeting("Alex", client=FakeLLM("```\n\n```"))


if __name__ == "__main__":
    unittest.main()
