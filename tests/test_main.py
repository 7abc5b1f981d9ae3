import unittest

from runmate.main import app


class TestMain(unittest.TestCase):
    def test_app_metadata(self):
        self.assertEqual(app.title, "RunMate Dashboard")

    def test_routes_are_versioned(self):
        paths = {route.path for route in app.routes}
        self.assertIn("/v1/dashboard", paths)
        self.assertIn("/v1/health", paths)


if __name__ == "__main__":
    unittest.main()
