import unittest

import requests

from runmate.check_ollama import check_ollama, get_ollama_status


class DummyResp:
    def __init__(self, json_payload, status_code=200):
        self._payload = json_payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code != 200:
            raise requests.exceptions.HTTPError("bad status")

    def json(self):
        return self._payload


class TestCheckOllama(unittest.TestCase):
    def setUp(self):
        import runmate.check_ollama as co
        self.co = co
        self._orig_get = co.requests.get

    def tearDown(self):
        self.co.requests.get = self._orig_get

    def test_get_ollama_status_ok(self):
        self.co.requests.get = lambda url, timeout=None: DummyResp({"models": [{"name": "llama3.1:latest"}]})
        status = get_ollama_status(required_models=["llama3.1"])
        self.assertTrue(status["reachable"])
        self.assertTrue(status["models_ok"])
        self.assertTrue(status["ok"])

    def test_get_ollama_status_missing(self):
        self.co.requests.get = lambda url, timeout=None: DummyResp({"models": []})
        status = get_ollama_status(required_models=["missing-model"])
        self.assertTrue(status["reachable"])
        self.assertFalse(status["models_ok"])
        self.assertIn("missing-model", status["missing_models"])

    def test_get_ollama_status_unreachable(self):
        def fake_get(url, timeout=None):
            raise requests.exceptions.ConnectionError("refused")

        self.co.requests.get = fake_get
        status = get_ollama_status(required_models=["llama3.1"])
        self.assertFalse(status["reachable"])
        self.assertFalse(status["ok"])
        self.assertIn("refused", status["error"])

    def test_check_ollama_exits_when_model_missing_and_no_pull(self):
        self.co.requests.get = lambda url, timeout=None: DummyResp({"models": []})
        with self.assertRaises(SystemExit):
            check_ollama(required_models=["llama3.1"], auto_pull=False)


if __name__ == "__main__":
    unittest.main()
