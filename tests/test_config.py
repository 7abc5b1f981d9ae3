import os
import unittest

import pytest
from pydantic import ValidationError

from runmate.config import Settings


class _EnvOverride:
    def __init__(self, **values):
        self.values = values
        self.previous = {}

    def __enter__(self):
        for key, value in self.values.items():
            self.previous[key] = os.environ.get(key)
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        return self

    def __exit__(self, *exc):
        for key, value in self.previous.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


class TestConfig(unittest.TestCase):
    def test_settings_defaults(self):
        with _EnvOverride(RUNMATE_OLLAMA_BASE_URL=None, RUNMATE_CACHE_KEY_PREFIX=None, RUNMATE_NEWS_MAX_ARTICLES=None):
            s = Settings()
            self.assertEqual(s.ollama_base_url, "http://localhost:11434")
            self.assertEqual(s.cache_key_prefix, "dashboardCache:")
            self.assertEqual(s.news_max_articles, 5)
            self.assertEqual(s.news_window_days, 30)
            self.assertEqual(s.hourly_segments, 24)

    def test_settings_env_override_strips_trailing_slash(self):
        with _EnvOverride(RUNMATE_OLLAMA_BASE_URL="http://ollama:11434/"):
            s = Settings()
            self.assertEqual(s.ollama_base_url, "http://ollama:11434")

    def test_google_credentials_from_env(self):
        with _EnvOverride(RUNMATE_GOOGLE_SEARCH_API_KEY="k", RUNMATE_GOOGLE_SEARCH_ENGINE_ID="cx"):
            s = Settings()
            self.assertEqual(s.google_search_api_key, "k")
            self.assertEqual(s.google_search_engine_id, "cx")


def test_zero_segments_rejected():
    with _EnvOverride(RUNMATE_HOURLY_SEGMENTS="0"):
        with pytest.raises(ValidationError):
            Settings()


if __name__ == "__main__":
    unittest.main()
