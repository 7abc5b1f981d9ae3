import unittest

from fastapi.testclient import TestClient

from runmate.cache_manager import DashboardResult
from runmate.main import app as fastapi_app
from runmate.models import DashboardContent


def _content():
    return DashboardContent(
        greeting="Hey Alex, ready to hit the pavement?",
        weather_summary="Weather forecast for Austin is currently unavailable: City not found.",
        workout_for_display="Easy 5K",
    )


class FakeManager:
    def __init__(self, status="generated"):
        self.status = status
        self.profiles = []
        self.store = object()

    def get_dashboard(self, profile, *, today=None):
        self.profiles.append(profile)
        return DashboardResult(content=_content(), status=self.status)


class TestApi(unittest.TestCase):
    def setUp(self):
        import runmate.api as api_mod
        from runmate.config import settings

        self.api_mod = api_mod
        self._orig_manager = api_mod.MANAGER
        self._orig_status = api_mod.get_ollama_status
        self._orig_api_key = settings.api_key
        self.manager = FakeManager()
        api_mod.MANAGER = self.manager

    def tearDown(self):
        from runmate.config import settings

        self.api_mod.MANAGER = self._orig_manager
        self.api_mod.get_ollama_status = self._orig_status
        settings.api_key = self._orig_api_key

    def test_dashboard_200(self):
        client = TestClient(fastapi_app)
        resp = client.post(
            "/v1/dashboard",
            json={"userId": "u1", "userName": "Alex", "locationCity": "Austin", "weatherUnit": "F",
                  "newsSearchCategories": ["training"]},
        )
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["cacheStatus"], "generated")
        self.assertEqual(data["content"]["workoutForDisplay"], "Easy 5K")
        self.assertEqual(data["content"]["dressMyRunSuggestion"], [])
        self.assertEqual(self.manager.profiles[0].weather_unit.value, "F")

    def test_dashboard_rejects_bad_payload(self):
        client = TestClient(fastapi_app)
        resp = client.post("/v1/dashboard", json={"userName": "Alex", "newsSearchCategories": ["gossip"]})
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(self.manager.profiles, [])

    def test_requires_api_key_when_configured(self):
        from runmate.config import settings

        settings.api_key = "secret"
        client = TestClient(fastapi_app)
        body = {"userId": "u1"}
        self.assertEqual(client.post("/v1/dashboard", json=body).status_code, 401)
        self.assertEqual(client.post("/v1/dashboard", json=body, headers={"X-API-Key": "wrong"}).status_code, 401)
        self.assertEqual(client.post("/v1/dashboard", json=body, headers={"X-API-Key": "secret"}).status_code, 200)

    def test_health_reports_ollama_status(self):
        self.api_mod.get_ollama_status = lambda required_models=None: {"ok": False, "reachable": False, "error": "down"}
        client = TestClient(fastapi_app)
        resp = client.get("/v1/health")
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertFalse(data["ok"])
        self.assertEqual(data["ollama"]["error"], "down")
        self.assertEqual(data["cache_backend"], "object")


if __name__ == "__main__":
    unittest.main()
