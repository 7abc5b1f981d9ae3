import unittest

from runmate.ollama_client import OllamaClient


class DummyResponse:
    def __init__(self, status_code=200, content="ok", message=None):
        self.status_code = status_code
        self._message = message if message is not None else {"role": "assistant", "content": content}
        self.text = content
        # mimic requests.Response.elapsed
        self.elapsed = type("Elapsed", (), {"total_seconds": lambda self: 0.123})()

    def json(self):
        return {"message": self._message}


class TestOllamaClient(unittest.TestCase):
    def setUp(self):
        from runmate import ollama_client as oc
        self.oc = oc
        self._orig_post = oc.requests.post
        self.calls = []

    def tearDown(self):
        self.oc.requests.post = self._orig_post

    def _install(self, *responses):
        queue = list(responses)

        def fake_post(url, json=None, timeout=None):
            self.calls.append(json)
            return queue.pop(0)

        self.oc.requests.post = fake_post

    def test_chat_success(self):
        self._install(DummyResponse(200, "hi"))
        out = OllamaClient().chat([{"role": "user", "content": "hi"}])
        self.assertEqual(out, "hi")

    def test_chat_non_200(self):
        self._install(DummyResponse(500, "err"))
        with self.assertRaises(RuntimeError):
            OllamaClient().chat([])

    def test_chat_message_sends_tools_and_format(self):
        tool_call = {"function": {"name": "fetchGoogleRunningNewsTool", "arguments": {}}}
        self._install(DummyResponse(200, "", message={"role": "assistant", "content": "", "tool_calls": [tool_call]}))

        message = OllamaClient(model="m").chat_message(
            [{"role": "user", "content": "x"}],
            tools=[{"type": "function", "function": {"name": "t"}}],
            format={"type": "object"},
        )

        self.assertEqual(message["tool_calls"], [tool_call])
        sent = self.calls[0]
        self.assertEqual(sent["model"], "m")
        self.assertFalse(sent["stream"])
        self.assertEqual(sent["format"], {"type": "object"})
        self.assertEqual(len(sent["tools"]), 1)

    def test_eof_is_retried(self):
        self._install(DummyResponse(500, "unexpected EOF"), DummyResponse(200, "done"))
        client = OllamaClient()
        client.max_retries = 1
        client.retry_backoff_sec = 0
        self.assertEqual(client.chat([]), "done")
        self.assertEqual(len(self.calls), 2)

    def test_per_call_options_override_defaults(self):
        self._install(DummyResponse(200, "pun"))
        OllamaClient().chat([], options={"temperature": 0.6})
        self.assertEqual(self.calls[0]["options"]["temperature"], 0.6)
        self.assertIn("top_p", self.calls[0]["options"])


if __name__ == "__main__":
    unittest.main()
